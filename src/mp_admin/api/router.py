"""Admin REST API: privileged balance grants and debug maintenance."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_admin.application.service import AdminService
from src.mp_common.cents import MAX_CENTS
from src.mp_common.database import MAX_ID, get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import require_privileged

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


class GiveRequest(BaseModel):
    account_id: int | None = Field(None, ge=1, le=MAX_ID)
    amount_cents: int = Field(..., ge=-MAX_CENTS, le=MAX_CENTS)


@router.post("/give")
async def give_balance(
    request: Request,
    body: GiveRequest,
    caller_id: Annotated[int | None, Depends(require_privileged)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.give(db, caller_id, body.account_id, body.amount_cents)
    return success_response(data, request)


@router.post("/db/clear")
async def clear_db(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    async with db.begin():
        await _service.clear_db(db)
    return success_response(None, request)


@router.get("/invariants")
async def check_invariants(
    request: Request,
    _caller_id: Annotated[int | None, Depends(require_privileged)],
) -> ApiResponse:
    data = await _service.check_invariants()
    return success_response(data, request)
