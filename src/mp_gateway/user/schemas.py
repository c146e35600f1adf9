"""Pydantic request/response schemas for mp_gateway.

All responses are wrapped in ApiResponse at the router layer.
"""

from pydantic import BaseModel, Field, field_validator

from src.mp_common.cents import cents_to_display


class CredentialsRequest(BaseModel):
    """Body of both /auth/register and /auth/login."""

    username: str = Field(..., max_length=64)
    password: str = Field(..., min_length=4, max_length=128)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        return v.strip().lower()


class RegisterRequest(CredentialsRequest):
    @field_validator("username")
    @classmethod
    def username_format(cls, v: str) -> str:
        v = v.strip().lower()
        if not (3 <= len(v) <= 20):
            raise ValueError("Username must be 3 to 20 characters long")
        if not (v.isascii() and v.isalnum()):
            raise ValueError("Username may only contain letters and digits")
        return v


class LoginRequest(CredentialsRequest):
    pass


class UserInfo(BaseModel):
    account_id: int
    username: str
    balance_cents: int
    balance_display: str
    is_admin: bool
    created_at: str  # ISO8601 string

    @classmethod
    def from_account(
        cls,
        account_id: int,
        username: str,
        balance_cents: int,
        is_admin: bool,
        created_at: str,
    ) -> "UserInfo":
        return cls(
            account_id=account_id,
            username=username,
            balance_cents=balance_cents,
            balance_display=cents_to_display(balance_cents),
            is_admin=is_admin,
            created_at=created_at,
        )
