"""CatalogService: search listings for sale."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_catalog.application.schemas import SearchResponse
from src.mp_catalog.infrastructure.persistence import CatalogRepository
from src.mp_common.database import MAX_ID
from src.mp_common.errors import ValidationError
from src.mp_trading.application.schemas import ListingItem

SEARCH_MAX_LENGTH = 50
MIN_LIMIT = 1
MAX_LIMIT = 100
DEFAULT_LIMIT = 20


class CatalogService:
    def __init__(self, repo: CatalogRepository | None = None) -> None:
        self._repo = repo or CatalogRepository()

    async def search(
        self,
        db: AsyncSession,
        term: str | None = None,
        offset: int = 0,
        limit: int = DEFAULT_LIMIT,
        include_out_of_stock: bool = False,
    ) -> SearchResponse:
        if term is not None and len(term) > SEARCH_MAX_LENGTH:
            raise ValidationError("Search term too long")
        if not (0 <= offset <= MAX_ID):
            raise ValidationError(f"Offset must be at least 0 and at most {MAX_ID}")
        if not (MIN_LIMIT <= limit <= MAX_LIMIT):
            raise ValidationError(
                f"Limit must be at least {MIN_LIMIT} and at max {MAX_LIMIT}"
            )

        listings = await self._repo.search_listings(
            db,
            term or None,
            offset,
            limit,
            min_stock=0 if include_out_of_stock else 1,
        )
        attachments = await self._repo.attachments_by_listing(db, [x.id for x in listings])
        return SearchResponse(
            items=[ListingItem.from_domain(x, attachments.get(x.id)) for x in listings],
            offset=offset,
            limit=limit,
        )
