"""Catalog REST API: public listing search (no login required)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_catalog.application.service import DEFAULT_LIMIT, CatalogService
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, success_response

router = APIRouter(prefix="/items", tags=["items"])

_service = CatalogService()


@router.get("", response_model=ApiResponse)
async def search_items(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    search: str | None = Query(None, description="Case-insensitive title substring"),
    offset: int = Query(0),
    limit: int = Query(DEFAULT_LIMIT),
    include_out_of_stock: bool = Query(False),
) -> ApiResponse:
    data = await _service.search(db, search, offset, limit, include_out_of_stock)
    return success_response(data.model_dump(), request)
