"""Shared helpers for integration tests."""

import uuid

from httpx import AsyncClient

from config.settings import settings

PASSWORD = "TestPass1"
COOKIE = settings.SESSION_COOKIE_NAME


def unique_username() -> str:
    return f"u{uuid.uuid4().hex[:12]}"


async def fund(client: AsyncClient, account_id: int, amount_cents: int) -> None:
    """Grant balance through the admin endpoint (open in DEBUG)."""
    resp = await client.post(
        "/api/v1/admin/give",
        json={"account_id": account_id, "amount_cents": amount_cents},
    )
    assert resp.status_code == 200, resp.text


async def balance_of(client: AsyncClient, account_id: int) -> int:
    resp = await client.get(f"/api/v1/users/{account_id}")
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["balance_cents"]
