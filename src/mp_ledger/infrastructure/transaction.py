"""TransactionRunner — run a unit of work inside one SERIALIZABLE transaction.

    result = await runner.run(fn)      # fn: async (AsyncSession) -> T

Each attempt opens a fresh session, starts a transaction at SERIALIZABLE
isolation, awaits fn(db) and commits. Leaving the `db.begin()` block by any
exception (AppError, driver error, CancelledError, deadline) rolls the
transaction back before the exception reaches the caller.

Failure translation:
  SQLSTATE 40001 / 40P01        -> StoreConflictError, retried with backoff
  bad input (SQLSTATE class 22) -> ValidationError
  connection-level failures     -> StoreUnavailableError, never retried here
  attempt deadline exceeded     -> StoreTimeoutError
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, DataError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.mp_common.database import async_session_factory
from src.mp_common.errors import (
    StoreConflictError,
    StoreTimeoutError,
    StoreUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

_MAX_BACKOFF_SECONDS = 1.0


def sqlstate_of(exc: DBAPIError) -> str | None:
    """Extract the SQLSTATE from a wrapped driver error (asyncpg or psycopg)."""
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_data_error(exc: DBAPIError) -> bool:
    """Input the store refused as a value, not a failure of the store itself.

    asyncpg reports argument encoding failures (e.g. an int outside BIGINT) as
    DataError, a ValueError that SQLAlchemy surfaces as InterfaceError.
    """
    if isinstance(exc, DataError):
        return True
    state = sqlstate_of(exc)
    if state is not None and state.startswith("22"):
        return True
    orig = exc.orig
    return isinstance(orig, ValueError) or isinstance(
        getattr(orig, "__cause__", None), ValueError
    )


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential backoff with jitter: base * 2^(attempt-1), scaled by [0.5, 1.0)."""
    delay = min(base_delay * (2 ** (attempt - 1)), _MAX_BACKOFF_SECONDS)
    return delay * (0.5 + random.random() * 0.5)


class TransactionRunner:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._max_attempts = max_attempts or settings.TX_MAX_ATTEMPTS
        self._base_delay = (
            base_delay if base_delay is not None else settings.TX_RETRY_BASE_DELAY_SECONDS
        )
        self._timeout = timeout if timeout is not None else settings.TX_TIMEOUT_SECONDS

    async def run(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await self._run_once(fn)
            except StoreConflictError:
                if attempt >= self._max_attempts:
                    logger.warning(
                        "Transaction conflict persisted after %d attempts", attempt
                    )
                    raise
                delay = backoff_delay(attempt, self._base_delay)
                logger.info(
                    "Transaction conflict, retrying in %.3fs (attempt %d/%d)",
                    delay,
                    attempt,
                    self._max_attempts,
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _run_once(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with asyncio.timeout(self._timeout):
                async with self._session_factory() as db:
                    async with db.begin():
                        # Must be the first statement of the transaction
                        await db.connection(
                            execution_options={"isolation_level": "SERIALIZABLE"}
                        )
                        return await fn(db)
        except TimeoutError:
            logger.warning("Transaction exceeded %.1fs deadline, rolled back", self._timeout)
            raise StoreTimeoutError(self._timeout) from None
        except DBAPIError as exc:
            if sqlstate_of(exc) in RETRYABLE_SQLSTATES:
                raise StoreConflictError() from exc
            if is_data_error(exc):
                logger.warning("Store rejected a value: %s", exc.orig)
                raise ValidationError("Value out of range or malformed") from exc
            if exc.connection_invalidated or isinstance(exc, (OperationalError, InterfaceError)):
                logger.error("Store unavailable: %s", exc.orig)
                raise StoreUnavailableError() from exc
            raise
        except OSError as exc:
            logger.error("Store unreachable: %s", exc)
            raise StoreUnavailableError() from exc
