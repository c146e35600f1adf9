"""TransactionEngine: the only writer of balances, stock and the ledger.

Every operation follows the same shape:
  1. pure input validation, before any store access
  2. TransactionRunner.run(unit_of_work): SERIALIZABLE, retried on conflict
  3. inside the unit of work: re-read the authoritative rows (FOR UPDATE),
     check business rules, apply relative mutations, append one ledger entry
Raising anywhere inside the unit of work aborts the whole transaction.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.cents import (
    checked_add,
    checked_mul,
    validate_listing_quantity,
    validate_price,
)
from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.errors import (
    AccountNotFoundError,
    AttachmentUnavailableError,
    InsufficientFundsError,
    InsufficientStockError,
    InternalError,
    InvalidAmountError,
    ListingNotFoundError,
    RecipientNotFoundError,
    SelfTransferError,
    ValidationError,
)
from src.mp_ledger.domain.models import (
    Account,
    Attachment,
    LedgerEntry,
    Listing,
    NewLedgerEntry,
    NewListing,
)
from src.mp_ledger.domain.repository import LedgerStoreProtocol
from src.mp_ledger.infrastructure.persistence import LedgerStore
from src.mp_ledger.infrastructure.transaction import TransactionRunner

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500
MAX_ATTACHMENTS = 5


@dataclass
class PurchaseResult:
    listing: Listing
    buyer: Account
    seller: Account
    entry: LedgerEntry


@dataclass
class ListingResult:
    listing: Listing
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class TransferResult:
    payer: Account
    recipient: Account
    entry: LedgerEntry


@dataclass
class AdjustResult:
    account: Account
    requested_cents: int
    applied_cents: int
    entry: LedgerEntry


def dedupe_ids(ids: list[int]) -> list[int]:
    """Drop repeated ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))


class TransactionEngine:
    def __init__(
        self,
        store: LedgerStoreProtocol | None = None,
        runner: TransactionRunner | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store: LedgerStoreProtocol = store or LedgerStore()
        self._runner = runner or TransactionRunner()
        self._clock = clock

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    async def purchase(
        self, buyer_id: int, listing_id: int, quantity: int
    ) -> PurchaseResult:
        if quantity <= 0:
            raise InvalidAmountError(f"quantity must be positive, got {quantity}")

        async def unit_of_work(db: AsyncSession) -> PurchaseResult:
            listing = await self._store.get_listing(db, listing_id, for_update=True)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if listing.stock < quantity:
                raise InsufficientStockError(quantity, listing.stock)

            total = checked_mul(quantity, listing.price_cents)

            # The account may have been removed since the session was validated
            buyer = await self._store.get_account(db, buyer_id, for_update=True)
            if buyer is None:
                raise AccountNotFoundError(buyer_id)
            if buyer.balance_cents < total:
                raise InsufficientFundsError(total, buyer.balance_cents)

            # FK guarantees the seller exists while the listing does
            seller_id = listing.seller_id

            updated_listing = await self._store.adjust_stock(db, listing_id, -quantity)
            if updated_listing is None:
                raise InsufficientStockError(quantity, listing.stock)
            updated_buyer = await self._store.adjust_balance(db, buyer_id, -total)
            if updated_buyer is None:
                raise InsufficientFundsError(total, buyer.balance_cents)
            updated_seller = await self._store.adjust_balance(db, seller_id, total)
            if updated_seller is None:
                raise InternalError(f"Seller account {seller_id} vanished mid-purchase")

            entry = await self._store.append_log_entry(
                db,
                NewLedgerEntry(
                    payer_id=buyer_id,
                    receiver_id=seller_id,
                    amount_cents=total,
                    listing_id=listing_id,
                    quantity=quantity,
                    transacted_at=self._clock(),
                ),
            )
            return PurchaseResult(
                listing=updated_listing,
                buyer=updated_buyer,
                seller=updated_seller,
                entry=entry,
            )

        result = await self._runner.run(unit_of_work)
        logger.info(
            "Purchase committed: buyer=%s listing=%s qty=%d total=%d entry=%s",
            buyer_id,
            listing_id,
            quantity,
            result.entry.amount_cents,
            result.entry.id,
        )
        return result

    # ------------------------------------------------------------------
    # CreateListing
    # ------------------------------------------------------------------

    async def create_listing(
        self,
        seller_id: int,
        title: str,
        description: str,
        price_cents: int,
        quantity: int,
        attachment_ids: list[int],
    ) -> ListingResult:
        title = title.strip()
        description = description.strip()
        if not title:
            raise ValidationError("Title must not be empty")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title can be at most {MAX_TITLE_LENGTH} characters long")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description can be at most {MAX_DESCRIPTION_LENGTH} characters long"
            )
        validate_listing_quantity(quantity)
        validate_price(price_cents)

        wanted = dedupe_ids(attachment_ids)
        if len(wanted) > MAX_ATTACHMENTS:
            raise ValidationError(f"Amount of attachments can be at most {MAX_ATTACHMENTS}")

        async def unit_of_work(db: AsyncSession) -> ListingResult:
            candidates = await self._store.find_bindable_attachments(db, wanted, seller_id)
            if len(candidates) != len(wanted):
                found = {a.id for a in candidates}
                raise AttachmentUnavailableError([i for i in wanted if i not in found])

            listing = await self._store.insert_listing(
                db,
                NewListing(
                    title=title,
                    description=description,
                    price_cents=price_cents,
                    stock=quantity,
                    seller_id=seller_id,
                    created_at=self._clock(),
                ),
            )

            bound = await self._store.bind_attachments(db, wanted, listing.id, seller_id)
            if len(bound) != len(wanted):
                taken = {a.id for a in bound}
                raise AttachmentUnavailableError([i for i in wanted if i not in taken])
            return ListingResult(listing=listing, attachments=bound)

        result = await self._runner.run(unit_of_work)
        logger.info(
            "Listing created: id=%s seller=%s stock=%d price=%d attachments=%d",
            result.listing.id,
            seller_id,
            quantity,
            price_cents,
            len(result.attachments),
        )
        return result

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    async def transfer(
        self, payer_id: int, recipient_username: str, amount_cents: int
    ) -> TransferResult:
        if amount_cents <= 0:
            raise ValidationError("Transfer amount must be positive")

        async def unit_of_work(db: AsyncSession) -> TransferResult:
            payer = await self._store.get_account(db, payer_id, for_update=True)
            if payer is None:
                raise AccountNotFoundError(payer_id)
            if payer.balance_cents < amount_cents:
                raise InsufficientFundsError(amount_cents, payer.balance_cents)

            recipient = await self._store.get_account_by_username(
                db, recipient_username, for_update=True
            )
            if recipient is None:
                raise RecipientNotFoundError(recipient_username)
            if recipient.id == payer.id:
                raise SelfTransferError()
            checked_add(recipient.balance_cents, amount_cents)

            updated_payer = await self._store.adjust_balance(db, payer.id, -amount_cents)
            if updated_payer is None:
                raise InsufficientFundsError(amount_cents, payer.balance_cents)
            updated_recipient = await self._store.adjust_balance(db, recipient.id, amount_cents)
            if updated_recipient is None:
                raise RecipientNotFoundError(recipient_username)

            entry = await self._store.append_log_entry(
                db,
                NewLedgerEntry(
                    payer_id=payer.id,
                    receiver_id=recipient.id,
                    amount_cents=amount_cents,
                    transacted_at=self._clock(),
                ),
            )
            return TransferResult(
                payer=updated_payer, recipient=updated_recipient, entry=entry
            )

        result = await self._runner.run(unit_of_work)
        logger.info(
            "Transfer committed: payer=%s recipient=%s amount=%d entry=%s",
            payer_id,
            result.recipient.id,
            amount_cents,
            result.entry.id,
        )
        return result

    # ------------------------------------------------------------------
    # AdminAdjust (privileged)
    # ------------------------------------------------------------------

    async def admin_adjust(self, target_id: int, delta_cents: int) -> AdjustResult:
        """Grant or remove balance with no counterparty (payer is NULL in the log).

        Privileged bypass: a reduction never fails for lack of funds. It is
        clamped so the balance lands on 0 instead of going negative, and the
        ledger records the amount actually applied. Callers must have checked
        the privilege already.
        """
        if delta_cents == 0:
            raise ValidationError("Adjustment amount must not be zero")

        async def unit_of_work(db: AsyncSession) -> AdjustResult:
            account = await self._store.get_account(db, target_id, for_update=True)
            if account is None:
                raise AccountNotFoundError(target_id)

            applied = max(delta_cents, -account.balance_cents)
            checked_add(account.balance_cents, applied)
            updated = await self._store.adjust_balance(db, target_id, applied)
            if updated is None:
                raise InternalError(f"Balance adjustment rejected for account {target_id}")

            entry = await self._store.append_log_entry(
                db,
                NewLedgerEntry(
                    payer_id=None,
                    receiver_id=target_id,
                    amount_cents=applied,
                    transacted_at=self._clock(),
                ),
            )
            return AdjustResult(
                account=updated,
                requested_cents=delta_cents,
                applied_cents=applied,
                entry=entry,
            )

        result = await self._runner.run(unit_of_work)
        if result.applied_cents != delta_cents:
            logger.warning(
                "Admin adjustment clamped: account=%s requested=%d applied=%d",
                target_id,
                delta_cents,
                result.applied_cents,
            )
        else:
            logger.info("Admin adjustment: account=%s delta=%d", target_id, delta_cents)
        return result
