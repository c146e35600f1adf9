"""Domain models for mp_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    id: int
    username: str
    balance_cents: int
    is_admin: bool
    created_at: datetime


@dataclass
class Listing:
    id: int
    title: str
    description: str
    price_cents: int      # unit price
    stock: int
    seller_id: int
    created_at: datetime


@dataclass
class Attachment:
    id: int
    file_path: str
    thumbnail_path: str
    uploader_id: int
    listing_id: int | None   # None = unbound, eligible for cleanup
    uploaded_at: datetime


@dataclass
class LedgerEntry:
    id: int
    payer_id: int | None      # None for admin adjustments
    receiver_id: int
    amount_cents: int
    listing_id: int | None = None
    quantity: int | None = None
    transacted_at: datetime | None = None

    @property
    def kind(self) -> str:
        if self.payer_id is None:
            return "ADMIN_ADJUST"
        if self.listing_id is not None:
            return "PURCHASE"
        return "TRANSFER"


@dataclass
class NewLedgerEntry:
    payer_id: int | None
    receiver_id: int
    amount_cents: int
    transacted_at: datetime
    listing_id: int | None = None
    quantity: int | None = None


@dataclass
class NewListing:
    title: str
    description: str
    price_cents: int
    stock: int
    seller_id: int
    created_at: datetime
