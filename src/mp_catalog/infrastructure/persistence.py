"""CatalogRepository: read-only listing search with attachments.

Runs on the request session outside any engine transaction; results may be a
slightly stale snapshot.
"""

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_ledger.domain.models import Attachment, Listing
from src.mp_ledger.infrastructure.persistence import row_to_attachment, row_to_listing

_SEARCH_SELECT = """
    SELECT id, title, description, price_cents, stock, seller_id, created_at
    FROM listings
    WHERE stock >= :min_stock
"""
_SEARCH_ORDER = """
    ORDER BY created_at DESC, id DESC
    OFFSET :offset LIMIT :limit
"""

_SEARCH_LISTINGS_SQL = text(_SEARCH_SELECT + _SEARCH_ORDER)
_SEARCH_LISTINGS_BY_TITLE_SQL = text(
    _SEARCH_SELECT + "      AND title ILIKE :pattern ESCAPE '\\'\n" + _SEARCH_ORDER
)

_ATTACHMENTS_FOR_LISTINGS_SQL = text("""
    SELECT id, file_path, thumbnail_path, uploader_id, listing_id, uploaded_at
    FROM attachments
    WHERE listing_id IN :listing_ids
    ORDER BY id
""").bindparams(bindparam("listing_ids", expanding=True))


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CatalogRepository:
    async def search_listings(
        self,
        db: AsyncSession,
        term: str | None,
        offset: int,
        limit: int,
        min_stock: int,
    ) -> list[Listing]:
        params: dict[str, object] = {"min_stock": min_stock, "offset": offset, "limit": limit}
        if term:
            params["pattern"] = f"%{escape_like(term)}%"
            result = await db.execute(_SEARCH_LISTINGS_BY_TITLE_SQL, params)
        else:
            result = await db.execute(_SEARCH_LISTINGS_SQL, params)
        return [row_to_listing(row) for row in result.fetchall()]

    async def attachments_by_listing(
        self, db: AsyncSession, listing_ids: list[int]
    ) -> dict[int, list[Attachment]]:
        grouped: dict[int, list[Attachment]] = {i: [] for i in listing_ids}
        if not listing_ids:
            return grouped
        result = await db.execute(
            _ATTACHMENTS_FOR_LISTINGS_SQL, {"listing_ids": listing_ids}
        )
        for row in result.fetchall():
            attachment = row_to_attachment(row)
            grouped.setdefault(attachment.listing_id, []).append(attachment)  # type: ignore[arg-type]
        return grouped
