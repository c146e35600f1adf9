"""Account identity service: register, login, lookups.

All DB operations use the injected AsyncSession. Transactions are managed
by the caller (router layer) via `async with db.begin()`. Session tokens are
issued by the router once the account is known.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_common.errors import (
    AccountNotFoundError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.mp_gateway.auth.password import PasswordHasher
from src.mp_gateway.user.db_models import AccountModel


class UserService:
    """Stateless service: instantiate once, reuse across requests."""

    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        self._hasher = hasher or PasswordHasher(settings.PASSWORD_SALT)

    async def register(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> AccountModel:
        """Create an account with a zero balance. Caller wraps in `db.begin()`."""
        result = await db.execute(
            select(AccountModel).where(AccountModel.username == username)
        )
        if result.scalar_one_or_none() is not None:
            raise UsernameExistsError()

        account = AccountModel(
            username=username,
            password_hash=self._hasher.hash(password),
        )
        db.add(account)
        try:
            await db.flush()  # populate id / server defaults
        except IntegrityError:
            # Lost a race with a concurrent registration of the same name
            raise UsernameExistsError() from None
        await db.refresh(account)
        return account

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> AccountModel:
        """Unknown user and wrong password both raise InvalidCredentialsError."""
        result = await db.execute(
            select(AccountModel).where(AccountModel.username == username)
        )
        account = result.scalar_one_or_none()

        if account is None or not self._hasher.verify(password, account.password_hash):
            raise InvalidCredentialsError()
        return account

    async def get_by_id(self, account_id: int, db: AsyncSession) -> AccountModel:
        account = await db.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_by_username(self, username: str, db: AsyncSession) -> AccountModel:
        result = await db.execute(
            select(AccountModel).where(AccountModel.username == username.strip().lower())
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(username)
        return account
