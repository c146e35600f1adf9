"""Trading REST API: create listing, buy, transfer, transaction log.

Every mutation goes through TransactionEngine; the router only resolves the
caller, parses the request and renders the result.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.cents import cents_to_display, parse_decimal_to_cents
from src.mp_common.database import MAX_ID, get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import (
    get_current_account_id,
    get_optional_account_id,
)
from src.mp_trading.application.engine import TransactionEngine
from src.mp_trading.application.schemas import (
    BuyRequest,
    ListingItem,
    NewItemRequest,
    PurchaseResponse,
    TransferRequest,
    TransferResponse,
)
from src.mp_trading.application.service import TransactionLogService

items_router = APIRouter(prefix="/items", tags=["items"])
transactions_router = APIRouter(prefix="/transactions", tags=["transactions"])

_engine = TransactionEngine()
_log_service = TransactionLogService()


def get_engine() -> TransactionEngine:
    return _engine


@items_router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def create_item(
    request: Request,
    body: NewItemRequest,
    seller_id: Annotated[int, Depends(get_current_account_id)],
    engine: Annotated[TransactionEngine, Depends(get_engine)],
) -> ApiResponse:
    price_cents = parse_decimal_to_cents(body.price)
    result = await engine.create_listing(
        seller_id=seller_id,
        title=body.title,
        description=body.description,
        price_cents=price_cents,
        quantity=body.quantity,
        attachment_ids=body.attachments,
    )
    data = ListingItem.from_domain(result.listing, result.attachments)
    return success_response(data.model_dump(), request)


@items_router.post("/{listing_id}/buy", response_model=ApiResponse)
async def buy_item(
    request: Request,
    listing_id: Annotated[int, Path(ge=1, le=MAX_ID)],
    buyer_id: Annotated[int, Depends(get_current_account_id)],
    engine: Annotated[TransactionEngine, Depends(get_engine)],
    body: BuyRequest | None = None,
) -> ApiResponse:
    quantity = body.quantity if body is not None else 1
    result = await engine.purchase(buyer_id, listing_id, quantity)
    data = PurchaseResponse(
        listing_id=listing_id,
        quantity=quantity,
        total_cents=result.entry.amount_cents,
        total_display=cents_to_display(result.entry.amount_cents),
        remaining_stock=result.listing.stock,
        balance_cents=result.buyer.balance_cents,
        balance_display=cents_to_display(result.buyer.balance_cents),
        ledger_entry_id=result.entry.id,
    )
    return success_response(data.model_dump(), request)


@transactions_router.post("/transfer", response_model=ApiResponse)
async def transfer(
    request: Request,
    body: TransferRequest,
    payer_id: Annotated[int, Depends(get_current_account_id)],
    engine: Annotated[TransactionEngine, Depends(get_engine)],
) -> ApiResponse:
    result = await engine.transfer(payer_id, body.recipient.strip().lower(), body.amount_cents)
    data = TransferResponse(
        recipient_id=result.recipient.id,
        amount_cents=body.amount_cents,
        amount_display=cents_to_display(body.amount_cents),
        balance_cents=result.payer.balance_cents,
        balance_display=cents_to_display(result.payer.balance_cents),
        ledger_entry_id=result.entry.id,
    )
    return success_response(data.model_dump(), request)


@transactions_router.get("/log", response_model=ApiResponse)
async def transaction_log(
    request: Request,
    caller_id: Annotated[int | None, Depends(get_optional_account_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    account_id: int | None = Query(
        None, ge=1, le=MAX_ID, description="Debug only: another account"
    ),
    everyone: bool = Query(False, description="Debug only: every entry"),
    offset: int = Query(0, ge=0, le=MAX_ID),
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse:
    data = await _log_service.list_log(
        db, caller_id, account_id=account_id, everyone=everyone, offset=offset, limit=limit
    )
    return success_response(data.model_dump(), request)
