"""Unit tests for gateway request schemas."""

import pytest
from pydantic import ValidationError

from src.mp_gateway.user.schemas import LoginRequest, RegisterRequest, UserInfo


class TestRegisterRequest:
    def test_username_is_trimmed_and_lowercased(self) -> None:
        req = RegisterRequest(username="  Alice42 ", password="test")
        assert req.username == "alice42"

    @pytest.mark.parametrize("username", ["ab", "a" * 21, "al ice", "al_ice", "älice"])
    def test_bad_usernames(self, username: str) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username=username, password="test")

    @pytest.mark.parametrize("password", ["abc", "x" * 129])
    def test_password_length(self, password: str) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", password=password)


def test_login_normalizes_username() -> None:
    assert LoginRequest(username=" BOB", password="test").username == "bob"


def test_user_info_display() -> None:
    info = UserInfo.from_account(1, "alice", 278, False, "2026-10-18T00:00:00+00:00")
    assert info.balance_display == "$2.78"
