"""Pydantic schemas for listing search."""

from pydantic import BaseModel

from src.mp_trading.application.schemas import ListingItem


class SearchResponse(BaseModel):
    items: list[ListingItem]
    offset: int
    limit: int
