"""Tests for mp_common.cents — integer arithmetic utilities."""

import pytest

from src.mp_common.cents import (
    MAX_CENTS,
    checked_add,
    checked_mul,
    cents_to_display,
    parse_decimal_to_cents,
    validate_listing_quantity,
    validate_price,
)
from src.mp_common.errors import InvalidAmountError, ValidationError


class TestValidatePrice:
    def test_valid_prices(self) -> None:
        for p in [1, 111, 1500]:
            validate_price(p)  # Should not raise

    def test_zero_raises(self) -> None:
        with pytest.raises(ValidationError, match=r"1 cents.*1500 cents"):
            validate_price(0)

    def test_above_max_raises(self) -> None:
        with pytest.raises(ValidationError):
            validate_price(1501)


class TestValidateListingQuantity:
    def test_bounds_inclusive(self) -> None:
        validate_listing_quantity(1)
        validate_listing_quantity(50)

    @pytest.mark.parametrize("qty", [0, -1, 51])
    def test_out_of_range(self, qty: int) -> None:
        with pytest.raises(ValidationError):
            validate_listing_quantity(qty)


class TestParseDecimalToCents:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1.11", 111),
            ("5,1", 510),
            ("1", 100),
            ("1,", 100),
            ("0.05", 5),
            (" 9.95 ", 995),
            ("15", 1500),
        ],
    )
    def test_accepts(self, raw: str, expected: int) -> None:
        assert parse_decimal_to_cents(raw) == expected

    @pytest.mark.parametrize(
        "raw", ["1.111", "abc", "", "-1.00", "+1", "1.2.3", "1 000", ".5", "1e3", "١٢"]
    )
    def test_rejects(self, raw: str) -> None:
        with pytest.raises(ValidationError, match="decimal format"):
            parse_decimal_to_cents(raw)


class TestCheckedMul:
    def test_basic(self) -> None:
        assert checked_mul(2, 111) == 222

    def test_at_limit(self) -> None:
        assert checked_mul(1, MAX_CENTS) == MAX_CENTS

    def test_overflow_raises(self) -> None:
        with pytest.raises(InvalidAmountError):
            checked_mul(2, MAX_CENTS)


class TestCheckedAdd:
    def test_basic(self) -> None:
        assert checked_add(500, -200) == 300

    def test_at_limit(self) -> None:
        assert checked_add(MAX_CENTS - 1, 1) == MAX_CENTS

    @pytest.mark.parametrize(
        ("balance", "delta"), [(MAX_CENTS, 1), (0, 10**19), (-MAX_CENTS, -1)]
    )
    def test_overflow_raises(self, balance: int, delta: int) -> None:
        with pytest.raises(InvalidAmountError):
            checked_add(balance, delta)


class TestCentsToDisplay:
    def test_basic(self) -> None:
        assert cents_to_display(6500) == "$65.00"

    def test_zero(self) -> None:
        assert cents_to_display(0) == "$0.00"

    def test_one_cent(self) -> None:
        assert cents_to_display(1) == "$0.01"

    def test_large(self) -> None:
        assert cents_to_display(150000) == "$1,500.00"

    def test_negative(self) -> None:
        assert cents_to_display(-1200) == "-$12.00"
