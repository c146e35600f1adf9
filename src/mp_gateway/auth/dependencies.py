"""FastAPI dependencies resolving the session cookie to an account.

Usage in any protected router:
    from src.mp_gateway.auth.dependencies import get_current_account_id

    @router.post("/protected")
    async def protected(account_id: int = Depends(get_current_account_id)):
        ...

Tests swap the resolver through `app.dependency_overrides[get_session_store]`.
"""

from typing import Annotated

from fastapi import Cookie, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_common.database import get_db_session
from src.mp_common.errors import ForbiddenError, UnauthorizedError
from src.mp_common.redis_client import get_redis
from src.mp_gateway.auth.session import RedisSessionStore, SessionResolver
from src.mp_ledger.domain.models import Account
from src.mp_ledger.infrastructure.persistence import LedgerStore

_store = LedgerStore()


async def get_session_store() -> RedisSessionStore:
    return RedisSessionStore(await get_redis())


async def get_session_token(
    token: Annotated[str | None, Cookie(alias=settings.SESSION_COOKIE_NAME)] = None,
) -> str | None:
    return token


async def get_optional_account_id(
    token: Annotated[str | None, Depends(get_session_token)],
    resolver: Annotated[SessionResolver, Depends(get_session_store)],
) -> int | None:
    """Account id of the caller, or None when there is no valid session."""
    if not token:
        return None
    try:
        return await resolver.resolve_session(token)
    except UnauthorizedError:
        return None


async def get_current_account_id(
    token: Annotated[str | None, Depends(get_session_token)],
    resolver: Annotated[SessionResolver, Depends(get_session_store)],
) -> int:
    """Raises UnauthorizedError (401) if the cookie is missing, forged or revoked."""
    if not token:
        raise UnauthorizedError()
    return await resolver.resolve_session(token)


async def get_current_account(
    account_id: Annotated[int, Depends(get_current_account_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> Account:
    account = await _store.get_account(db, account_id)
    if account is None:
        # Session outlived its account (e.g. after a debug reset)
        raise UnauthorizedError()
    return account


async def require_privileged(
    account_id: Annotated[int | None, Depends(get_optional_account_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> int | None:
    """Gate for privileged endpoints: open in DEBUG, admin accounts otherwise.

    Returns the caller's account id (None only in DEBUG with no session).
    """
    if settings.DEBUG:
        return account_id
    if account_id is None:
        raise UnauthorizedError()
    account = await _store.get_account(db, account_id)
    if account is None:
        raise UnauthorizedError()
    if not account.is_admin:
        raise ForbiddenError()
    return account_id
