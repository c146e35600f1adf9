"""LedgerStore — concrete implementation of LedgerStoreProtocol.

Balance and stock mutations are relative PostgreSQL UPDATE ... RETURNING
statements guarded in the WHERE clause, so a value can never be written from a
stale read. A result of 0 rows means the guard rejected the update (it would
go negative) or the row does not exist.

Transaction ownership: the CALLER (TransactionRunner) opens, commits and rolls
back the transaction; nothing here commits.
"""

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.errors import InternalError
from src.mp_ledger.domain.models import (
    Account,
    Attachment,
    LedgerEntry,
    Listing,
    NewLedgerEntry,
    NewListing,
)

# ---------------------------------------------------------------------------
# SQL: reads
# ---------------------------------------------------------------------------

_ACCOUNT_COLUMNS = "id, username, balance_cents, is_admin, created_at"
_LISTING_COLUMNS = "id, title, description, price_cents, stock, seller_id, created_at"
_ATTACHMENT_COLUMNS = (
    "id, file_path, thumbnail_path, uploader_id, listing_id, uploaded_at"
)
_LEDGER_COLUMNS = (
    "id, payer_id, receiver_id, amount_cents, listing_id, quantity, transacted_at"
)

_GET_ACCOUNT = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = :account_id"
_GET_ACCOUNT_BY_USERNAME = (
    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE username = :username"
)
_GET_LISTING = f"SELECT {_LISTING_COLUMNS} FROM listings WHERE id = :listing_id"

_GET_ACCOUNT_SQL = text(_GET_ACCOUNT)
_GET_ACCOUNT_FOR_UPDATE_SQL = text(_GET_ACCOUNT + " FOR UPDATE")
_GET_ACCOUNT_BY_USERNAME_SQL = text(_GET_ACCOUNT_BY_USERNAME)
_GET_ACCOUNT_BY_USERNAME_FOR_UPDATE_SQL = text(_GET_ACCOUNT_BY_USERNAME + " FOR UPDATE")
_GET_LISTING_SQL = text(_GET_LISTING)
_GET_LISTING_FOR_UPDATE_SQL = text(_GET_LISTING + " FOR UPDATE")

_FIND_BINDABLE_ATTACHMENTS_SQL = text(f"""
    SELECT {_ATTACHMENT_COLUMNS}
    FROM attachments
    WHERE id IN :attachment_ids
      AND uploader_id = :uploader_id
      AND listing_id IS NULL
    ORDER BY id
    FOR UPDATE
""").bindparams(bindparam("attachment_ids", expanding=True))

_LIST_ACCOUNT_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE payer_id = :account_id OR receiver_id = :account_id
    ORDER BY id DESC
    OFFSET :offset LIMIT :limit
""")

_LIST_ALL_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    ORDER BY id DESC
    OFFSET :offset LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL: mutations
# ---------------------------------------------------------------------------

_ADJUST_BALANCE_SQL = text(f"""
    UPDATE accounts
    SET balance_cents = balance_cents + :delta
    WHERE id = :account_id AND balance_cents + :delta >= 0
    RETURNING {_ACCOUNT_COLUMNS}
""")

_ADJUST_STOCK_SQL = text(f"""
    UPDATE listings
    SET stock = stock + :delta
    WHERE id = :listing_id AND stock + :delta >= 0
    RETURNING {_LISTING_COLUMNS}
""")

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO ledger_entries
        (payer_id, receiver_id, amount_cents, listing_id, quantity, transacted_at)
    VALUES
        (:payer_id, :receiver_id, :amount_cents, :listing_id, :quantity, :transacted_at)
    RETURNING {_LEDGER_COLUMNS}
""")

_INSERT_LISTING_SQL = text(f"""
    INSERT INTO listings
        (title, description, price_cents, stock, seller_id, created_at)
    VALUES
        (:title, :description, :price_cents, :stock, :seller_id, :created_at)
    RETURNING {_LISTING_COLUMNS}
""")

# Re-checks owner and "still unbound" so a binding can never be stolen or reused
_BIND_ATTACHMENTS_SQL = text(f"""
    UPDATE attachments
    SET listing_id = :listing_id
    WHERE id IN :attachment_ids
      AND uploader_id = :uploader_id
      AND listing_id IS NULL
    RETURNING {_ATTACHMENT_COLUMNS}
""").bindparams(bindparam("attachment_ids", expanding=True))

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def row_to_account(row: object) -> Account:
    return Account(
        id=row.id,  # type: ignore[attr-defined]
        username=row.username,  # type: ignore[attr-defined]
        balance_cents=row.balance_cents,  # type: ignore[attr-defined]
        is_admin=row.is_admin,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def row_to_listing(row: object) -> Listing:
    return Listing(
        id=row.id,  # type: ignore[attr-defined]
        title=row.title,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        price_cents=row.price_cents,  # type: ignore[attr-defined]
        stock=row.stock,  # type: ignore[attr-defined]
        seller_id=row.seller_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def row_to_attachment(row: object) -> Attachment:
    return Attachment(
        id=row.id,  # type: ignore[attr-defined]
        file_path=row.file_path,  # type: ignore[attr-defined]
        thumbnail_path=row.thumbnail_path,  # type: ignore[attr-defined]
        uploader_id=row.uploader_id,  # type: ignore[attr-defined]
        listing_id=row.listing_id,  # type: ignore[attr-defined]
        uploaded_at=row.uploaded_at,  # type: ignore[attr-defined]
    )


def row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        payer_id=row.payer_id,  # type: ignore[attr-defined]
        receiver_id=row.receiver_id,  # type: ignore[attr-defined]
        amount_cents=row.amount_cents,  # type: ignore[attr-defined]
        listing_id=row.listing_id,  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        transacted_at=row.transacted_at,  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LedgerStore:
    """Concrete ledger store; every mutation is a single guarded statement."""

    async def get_account(
        self, db: AsyncSession, account_id: int, for_update: bool = False
    ) -> Account | None:
        sql = _GET_ACCOUNT_FOR_UPDATE_SQL if for_update else _GET_ACCOUNT_SQL
        result = await db.execute(sql, {"account_id": account_id})
        row = result.fetchone()
        return row_to_account(row) if row else None

    async def get_account_by_username(
        self, db: AsyncSession, username: str, for_update: bool = False
    ) -> Account | None:
        sql = (
            _GET_ACCOUNT_BY_USERNAME_FOR_UPDATE_SQL
            if for_update
            else _GET_ACCOUNT_BY_USERNAME_SQL
        )
        result = await db.execute(sql, {"username": username})
        row = result.fetchone()
        return row_to_account(row) if row else None

    async def get_listing(
        self, db: AsyncSession, listing_id: int, for_update: bool = False
    ) -> Listing | None:
        sql = _GET_LISTING_FOR_UPDATE_SQL if for_update else _GET_LISTING_SQL
        result = await db.execute(sql, {"listing_id": listing_id})
        row = result.fetchone()
        return row_to_listing(row) if row else None

    async def adjust_balance(
        self, db: AsyncSession, account_id: int, delta_cents: int
    ) -> Account | None:
        result = await db.execute(
            _ADJUST_BALANCE_SQL, {"account_id": account_id, "delta": delta_cents}
        )
        row = result.fetchone()
        return row_to_account(row) if row else None

    async def adjust_stock(
        self, db: AsyncSession, listing_id: int, delta_units: int
    ) -> Listing | None:
        result = await db.execute(
            _ADJUST_STOCK_SQL, {"listing_id": listing_id, "delta": delta_units}
        )
        row = result.fetchone()
        return row_to_listing(row) if row else None

    async def append_log_entry(
        self, db: AsyncSession, entry: NewLedgerEntry
    ) -> LedgerEntry:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "payer_id": entry.payer_id,
                "receiver_id": entry.receiver_id,
                "amount_cents": entry.amount_cents,
                "listing_id": entry.listing_id,
                "quantity": entry.quantity,
                "transacted_at": entry.transacted_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return row_to_ledger(row)

    async def find_bindable_attachments(
        self, db: AsyncSession, attachment_ids: list[int], uploader_id: int
    ) -> list[Attachment]:
        if not attachment_ids:
            return []
        result = await db.execute(
            _FIND_BINDABLE_ATTACHMENTS_SQL,
            {"attachment_ids": attachment_ids, "uploader_id": uploader_id},
        )
        return [row_to_attachment(row) for row in result.fetchall()]

    async def insert_listing(
        self, db: AsyncSession, listing: NewListing
    ) -> Listing:
        result = await db.execute(
            _INSERT_LISTING_SQL,
            {
                "title": listing.title,
                "description": listing.description,
                "price_cents": listing.price_cents,
                "stock": listing.stock,
                "seller_id": listing.seller_id,
                "created_at": listing.created_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Listing insert returned no rows")
        return row_to_listing(row)

    async def bind_attachments(
        self,
        db: AsyncSession,
        attachment_ids: list[int],
        listing_id: int,
        uploader_id: int,
    ) -> list[Attachment]:
        if not attachment_ids:
            return []
        result = await db.execute(
            _BIND_ATTACHMENTS_SQL,
            {
                "attachment_ids": attachment_ids,
                "listing_id": listing_id,
                "uploader_id": uploader_id,
            },
        )
        return [row_to_attachment(row) for row in result.fetchall()]

    async def list_log_entries(
        self,
        db: AsyncSession,
        account_id: int | None,
        offset: int,
        limit: int,
    ) -> list[LedgerEntry]:
        """Newest first. account_id=None lists every entry (debug only)."""
        if account_id is None:
            sql, params = _LIST_ALL_LEDGER_SQL, {}
        else:
            sql, params = _LIST_ACCOUNT_LEDGER_SQL, {"account_id": account_id}
        result = await db.execute(sql, {**params, "offset": offset, "limit": limit})
        return [row_to_ledger(row) for row in result.fetchall()]
