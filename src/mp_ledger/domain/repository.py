"""Ledger store Protocol: the transactional primitives the engine is built on.

Every method takes the caller's AsyncSession, which is the transaction handle
opened by TransactionRunner. Unit tests inject an AsyncMock conforming to this
Protocol; the infrastructure layer provides the PostgreSQL implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_ledger.domain.models import (
    Account,
    Attachment,
    LedgerEntry,
    Listing,
    NewLedgerEntry,
    NewListing,
)


class LedgerStoreProtocol(Protocol):
    async def get_account(
        self, db: AsyncSession, account_id: int, for_update: bool = False
    ) -> Account | None: ...

    async def get_account_by_username(
        self, db: AsyncSession, username: str, for_update: bool = False
    ) -> Account | None: ...

    async def get_listing(
        self, db: AsyncSession, listing_id: int, for_update: bool = False
    ) -> Listing | None: ...

    async def adjust_balance(
        self, db: AsyncSession, account_id: int, delta_cents: int
    ) -> Account | None: ...

    async def adjust_stock(
        self, db: AsyncSession, listing_id: int, delta_units: int
    ) -> Listing | None: ...

    async def append_log_entry(
        self, db: AsyncSession, entry: NewLedgerEntry
    ) -> LedgerEntry: ...

    async def find_bindable_attachments(
        self, db: AsyncSession, attachment_ids: list[int], uploader_id: int
    ) -> list[Attachment]: ...

    async def insert_listing(
        self, db: AsyncSession, listing: NewListing
    ) -> Listing: ...

    async def bind_attachments(
        self,
        db: AsyncSession,
        attachment_ids: list[int],
        listing_id: int,
        uploader_id: int,
    ) -> list[Attachment]: ...

    async def list_log_entries(
        self,
        db: AsyncSession,
        account_id: int | None,
        offset: int,
        limit: int,
    ) -> list[LedgerEntry]: ...
