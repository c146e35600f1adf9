"""Pydantic schemas for the trading API (listings, purchases, transfers, log).

Only storage limits (BIGINT ids and amounts) are encoded here. Business bounds
are checked by TransactionEngine, which raises the typed AppError, so the HTTP
layer and direct callers see the same errors.
"""

from typing import Annotated

from pydantic import BaseModel, Field

from src.mp_attachment.application.schemas import AttachmentItem
from src.mp_common.cents import MAX_CENTS, cents_to_display
from src.mp_common.database import MAX_ID
from src.mp_ledger.domain.models import Attachment, LedgerEntry, Listing

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class NewItemRequest(BaseModel):
    title: str
    description: str = ""
    quantity: int
    price: str = Field(..., description="Decimal unit price, e.g. '9.95' or '9,95'")
    attachments: list[Annotated[int, Field(ge=1, le=MAX_ID)]] = Field(default_factory=list)


class BuyRequest(BaseModel):
    quantity: int = 1


class TransferRequest(BaseModel):
    recipient: str = Field(..., description="Recipient username")
    amount_cents: int = Field(..., le=MAX_CENTS)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ListingItem(BaseModel):
    id: int
    title: str
    description: str
    price_cents: int
    price_display: str
    stock: int
    seller_id: int
    created_at: str  # ISO8601 string
    attachments: list[AttachmentItem] = Field(default_factory=list)

    @classmethod
    def from_domain(
        cls, listing: Listing, attachments: list[Attachment] | None = None
    ) -> "ListingItem":
        return cls(
            id=listing.id,
            title=listing.title,
            description=listing.description,
            price_cents=listing.price_cents,
            price_display=cents_to_display(listing.price_cents),
            stock=listing.stock,
            seller_id=listing.seller_id,
            created_at=listing.created_at.isoformat(),
            attachments=[AttachmentItem.from_domain(a) for a in attachments or []],
        )


class PurchaseResponse(BaseModel):
    listing_id: int
    quantity: int
    total_cents: int
    total_display: str
    remaining_stock: int
    balance_cents: int
    balance_display: str
    ledger_entry_id: int


class TransferResponse(BaseModel):
    recipient_id: int
    amount_cents: int
    amount_display: str
    balance_cents: int
    balance_display: str
    ledger_entry_id: int


class LedgerEntryItem(BaseModel):
    id: int
    kind: str  # PURCHASE | TRANSFER | ADMIN_ADJUST
    payer_id: int | None
    receiver_id: int
    amount_cents: int
    amount_display: str
    listing_id: int | None
    quantity: int | None
    transacted_at: str | None  # ISO8601 string

    @classmethod
    def from_domain(cls, entry: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            kind=entry.kind,
            payer_id=entry.payer_id,
            receiver_id=entry.receiver_id,
            amount_cents=entry.amount_cents,
            amount_display=cents_to_display(entry.amount_cents),
            listing_id=entry.listing_id,
            quantity=entry.quantity,
            transacted_at=entry.transacted_at.isoformat() if entry.transacted_at else None,
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    offset: int
    limit: int
