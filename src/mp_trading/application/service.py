"""Read side of trading: the transaction log.

Readers run on the request session outside TransactionEngine and may see a
slightly stale snapshot; they never take part in invariant enforcement.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_common.errors import (
    AccountNotFoundError,
    FeatureUnavailableError,
    UnauthorizedError,
)
from src.mp_ledger.domain.repository import LedgerStoreProtocol
from src.mp_ledger.infrastructure.persistence import LedgerStore
from src.mp_trading.application.schemas import LedgerEntryItem, LedgerResponse


class TransactionLogService:
    def __init__(self, store: LedgerStoreProtocol | None = None) -> None:
        self._store: LedgerStoreProtocol = store or LedgerStore()

    async def list_log(
        self,
        db: AsyncSession,
        caller_id: int | None,
        account_id: int | None = None,
        everyone: bool = False,
        offset: int = 0,
        limit: int = 50,
    ) -> LedgerResponse:
        """Own entries by default; another account or everyone only in DEBUG."""
        if account_id is not None or everyone:
            if not settings.DEBUG:
                raise FeatureUnavailableError()
            if everyone:
                target: int | None = None
            else:
                if await self._store.get_account(db, account_id) is None:
                    raise AccountNotFoundError(account_id)
                target = account_id
        else:
            if caller_id is None:
                raise UnauthorizedError()
            target = caller_id

        entries = await self._store.list_log_entries(db, target, offset, limit)
        return LedgerResponse(
            items=[LedgerEntryItem.from_domain(e) for e in entries],
            offset=offset,
            limit=limit,
        )
