"""Admin application service: balance grants, debug reset, invariant check."""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.mp_common.cents import cents_to_display
from src.mp_common.database import async_session_factory
from src.mp_common.errors import (
    AccountNotFoundError,
    FeatureUnavailableError,
    UnauthorizedError,
)
from src.mp_ledger.domain.invariants import verify_ledger_invariants
from src.mp_ledger.infrastructure.persistence import LedgerStore
from src.mp_trading.application.engine import TransactionEngine

logger = logging.getLogger(__name__)

# Children before parents (FK order)
_CLEAR_SQL = (
    text("DELETE FROM attachments"),
    text("DELETE FROM ledger_entries"),
    text("DELETE FROM listings"),
    text("DELETE FROM accounts"),
)


class AdminService:
    def __init__(
        self,
        engine: TransactionEngine | None = None,
        store: LedgerStore | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._engine = engine or TransactionEngine()
        self._store = store or LedgerStore()
        self._session_factory = session_factory or async_session_factory

    async def give(
        self,
        db: AsyncSession,
        caller_id: int | None,
        target_id: int | None,
        delta_cents: int,
    ) -> dict[str, Any]:
        """AdminAdjust; the target defaults to the caller. Privilege is checked upstream."""
        if target_id is None:
            if caller_id is None:
                raise UnauthorizedError()
            target_id = caller_id
        elif await self._store.get_account(db, target_id) is None:
            raise AccountNotFoundError(target_id)

        result = await self._engine.admin_adjust(target_id, delta_cents)
        return {
            "account_id": result.account.id,
            "requested_cents": result.requested_cents,
            "applied_cents": result.applied_cents,
            "applied_display": cents_to_display(result.applied_cents),
            "balance_cents": result.account.balance_cents,
            "balance_display": cents_to_display(result.account.balance_cents),
            "ledger_entry_id": result.entry.id,
        }

    async def clear_db(self, db: AsyncSession) -> None:
        """Delete every row of every table. DEBUG only; caller commits."""
        if not settings.DEBUG:
            raise FeatureUnavailableError()
        for stmt in _CLEAR_SQL:
            await db.execute(stmt)
        logger.warning("Database cleared (debug reset)")

    async def check_invariants(self) -> dict[str, Any]:
        """Audit the ledger in one REPEATABLE READ transaction on its own session."""
        async with self._session_factory() as db:
            async with db.begin():
                # Must be the first statement of the transaction
                await db.connection(
                    execution_options={"isolation_level": "REPEATABLE READ"}
                )
                violations = await verify_ledger_invariants(db)
        return {"ok": not violations, "violations": violations}
