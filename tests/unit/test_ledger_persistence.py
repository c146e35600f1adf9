"""Unit tests for LedgerStore using MagicMock AsyncSession."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.mp_common.errors import InternalError
from src.mp_ledger.domain.models import NewLedgerEntry, NewListing
from src.mp_ledger.infrastructure.persistence import LedgerStore


def _make_account_row(**kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", 1)
    row.username = kwargs.get("username", "alice")
    row.balance_cents = kwargs.get("balance_cents", 500)
    row.is_admin = kwargs.get("is_admin", False)
    row.created_at = datetime.now(UTC)
    return row


def _make_listing_row(**kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", 10)
    row.title = "Lamp"
    row.description = ""
    row.price_cents = kwargs.get("price_cents", 111)
    row.stock = kwargs.get("stock", 3)
    row.seller_id = kwargs.get("seller_id", 1)
    row.created_at = datetime.now(UTC)
    return row


def _make_attachment_row(**kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", 5)
    row.file_path = "abc.png"
    row.thumbnail_path = "abc.thumb.webp"
    row.uploader_id = kwargs.get("uploader_id", 1)
    row.listing_id = kwargs.get("listing_id")
    row.uploaded_at = datetime.now(UTC)
    return row


def _make_ledger_row(**kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", 1)
    row.payer_id = kwargs.get("payer_id", 2)
    row.receiver_id = kwargs.get("receiver_id", 1)
    row.amount_cents = kwargs.get("amount_cents", 222)
    row.listing_id = kwargs.get("listing_id", 10)
    row.quantity = kwargs.get("quantity", 2)
    row.transacted_at = datetime.now(UTC)
    return row


def _result(one=None, many=None):
    result = MagicMock()
    result.fetchone.return_value = one
    result.fetchall.return_value = many or []
    return result


@pytest.fixture
def db():
    return MagicMock()


def _sql(db) -> str:
    return str(db.execute.call_args.args[0])


class TestReads:
    async def test_get_account_found(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_account_row(id=7)))
        account = await LedgerStore().get_account(db, 7)
        assert account is not None
        assert account.id == 7
        assert "FOR UPDATE" not in _sql(db)

    async def test_get_account_for_update(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_account_row()))
        await LedgerStore().get_account(db, 1, for_update=True)
        assert "FOR UPDATE" in _sql(db)

    async def test_get_account_missing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(None))
        assert await LedgerStore().get_account(db, 1) is None

    async def test_get_account_by_username(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_account_row(username="bob")))
        account = await LedgerStore().get_account_by_username(db, "bob", for_update=True)
        assert account is not None
        assert account.username == "bob"
        assert db.execute.call_args.args[1] == {"username": "bob"}
        assert "FOR UPDATE" in _sql(db)

    async def test_get_listing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_listing_row(stock=3)))
        listing = await LedgerStore().get_listing(db, 10)
        assert listing is not None
        assert listing.stock == 3


class TestGuardedUpdates:
    async def test_adjust_balance_is_relative_and_guarded(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_account_row(balance_cents=278)))
        account = await LedgerStore().adjust_balance(db, 2, -222)
        sql = _sql(db)
        assert "balance_cents = balance_cents + :delta" in sql
        assert "balance_cents + :delta >= 0" in sql
        assert db.execute.call_args.args[1] == {"account_id": 2, "delta": -222}
        assert account is not None
        assert account.balance_cents == 278

    async def test_adjust_balance_rejected_returns_none(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(None))
        assert await LedgerStore().adjust_balance(db, 2, -10_000) is None

    async def test_adjust_stock_guarded(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(None))
        assert await LedgerStore().adjust_stock(db, 10, -4) is None
        assert "stock + :delta >= 0" in _sql(db)


class TestInserts:
    async def test_append_log_entry(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_ledger_row(id=9)))
        entry = await LedgerStore().append_log_entry(
            db,
            NewLedgerEntry(
                payer_id=2,
                receiver_id=1,
                amount_cents=222,
                transacted_at=datetime.now(UTC),
                listing_id=10,
                quantity=2,
            ),
        )
        assert entry.id == 9
        params = db.execute.call_args.args[1]
        assert params["amount_cents"] == 222
        assert params["quantity"] == 2

    async def test_append_log_entry_no_row_raises(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(None))
        with pytest.raises(InternalError):
            await LedgerStore().append_log_entry(
                db, NewLedgerEntry(None, 1, 10, datetime.now(UTC))
            )

    async def test_insert_listing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_listing_row(id=44)))
        listing = await LedgerStore().insert_listing(
            db, NewListing("Lamp", "", 111, 3, 1, datetime.now(UTC))
        )
        assert listing.id == 44


class TestAttachments:
    async def test_empty_ids_skip_query(self, db) -> None:
        db.execute = AsyncMock()
        store = LedgerStore()
        assert await store.find_bindable_attachments(db, [], 1) == []
        assert await store.bind_attachments(db, [], 10, 1) == []
        db.execute.assert_not_awaited()

    async def test_find_bindable_filters_owner_and_unbound(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(many=[_make_attachment_row(id=5)]))
        found = await LedgerStore().find_bindable_attachments(db, [5, 6], 1)
        sql = _sql(db)
        assert "uploader_id = :uploader_id" in sql
        assert "listing_id IS NULL" in sql
        assert "FOR UPDATE" in sql
        assert [a.id for a in found] == [5]

    async def test_bind_rechecks_unbound(self, db) -> None:
        db.execute = AsyncMock(
            return_value=_result(many=[_make_attachment_row(id=5, listing_id=10)])
        )
        bound = await LedgerStore().bind_attachments(db, [5], 10, 1)
        assert "listing_id IS NULL" in _sql(db)
        assert bound[0].listing_id == 10


class TestListLogEntries:
    async def test_own_entries(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(many=[_make_ledger_row()]))
        entries = await LedgerStore().list_log_entries(db, 2, 0, 50)
        assert len(entries) == 1
        assert db.execute.call_args.args[1] == {"account_id": 2, "offset": 0, "limit": 50}
        assert "payer_id = :account_id OR receiver_id = :account_id" in _sql(db)

    async def test_everyone(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(many=[]))
        await LedgerStore().list_log_entries(db, None, 5, 10)
        assert db.execute.call_args.args[1] == {"offset": 5, "limit": 10}
        assert "account_id" not in _sql(db)
