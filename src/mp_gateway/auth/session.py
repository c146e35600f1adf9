"""Cookie session tokens backed by a Redis session registry.

A session token is a signed JWT (HS256 by default):
    {"sub": "<account id>", "sid": "<random hex>", "iat": ..., "exp": ...}

The signature alone is not enough to be logged in: the `sid` must also be
present in Redis under `session:{sid}`, which is what makes logout revoke a
token before it expires.
"""

import secrets
from datetime import timedelta
from typing import Protocol

import redis.asyncio as aioredis
from jose import JWTError, jwt

from config.settings import settings
from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.errors import UnauthorizedError

_KEY_PREFIX = "session:"


class SessionResolver(Protocol):
    """Resolve an opaque session token to the logged-in account id."""

    async def resolve_session(self, token: str) -> int: ...


def session_key(sid: str) -> str:
    return f"{_KEY_PREFIX}{sid}"


class RedisSessionStore:
    def __init__(
        self,
        redis: aioredis.Redis,
        secret: str | None = None,
        algorithm: str | None = None,
        ttl: timedelta | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._redis = redis
        self._secret = secret or settings.SESSION_SECRET
        self._algorithm = algorithm or settings.SESSION_ALGORITHM
        self._ttl = ttl or timedelta(days=settings.SESSION_TTL_DAYS)
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    async def create_session(self, account_id: int) -> str:
        """Register a new session and return its signed token."""
        sid = secrets.token_hex(16)
        now = self._clock()
        payload = {
            "sub": str(account_id),
            "sid": sid,
            "iat": now,
            "exp": now + self._ttl,
        }
        await self._redis.set(session_key(sid), str(account_id), ex=self.ttl_seconds)
        return str(jwt.encode(payload, self._secret, algorithm=self._algorithm))

    async def resolve_session(self, token: str) -> int:
        sid, account_id = self._decode(token)
        stored = await self._redis.get(session_key(sid))
        if stored is None or stored != str(account_id):
            raise UnauthorizedError()
        return account_id

    async def revoke_session(self, token: str) -> None:
        """Forget the session. Raises UnauthorizedError if it was not live."""
        sid, _ = self._decode(token)
        removed = await self._redis.delete(session_key(sid))
        if not removed:
            raise UnauthorizedError()

    def _decode(self, token: str) -> tuple[str, int]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError:
            raise UnauthorizedError() from None

        sid = payload.get("sid")
        sub = payload.get("sub")
        if not sid or not sub:
            raise UnauthorizedError()
        try:
            return str(sid), int(sub)
        except ValueError:
            raise UnauthorizedError() from None
