"""Integer arithmetic utilities for the cents-based marketplace.

All prices, amounts, and balances use int (cents); stock is an int unit count.
No float, no Decimal.
"""

import re

from src.mp_common.errors import InvalidAmountError, ValidationError

MIN_PRICE_CENTS = 1
MAX_PRICE_CENTS = 15_00
MIN_LISTING_QUANTITY = 1
MAX_LISTING_QUANTITY = 50

# Balance / amount columns are BIGINT
MAX_CENTS = 2**63 - 1

_DECIMAL_RE = re.compile(r"^([0-9]+)(?:[.,]([0-9]{0,2}))?$")


def validate_price(price_cents: int) -> None:
    """Validate that a listing price is in [1, 1500] cents."""
    if not (MIN_PRICE_CENTS <= price_cents <= MAX_PRICE_CENTS):
        raise ValidationError(
            f"Price must be at least {MIN_PRICE_CENTS} cents and at most "
            f"{MAX_PRICE_CENTS} cents"
        )


def validate_listing_quantity(quantity: int) -> None:
    if not (MIN_LISTING_QUANTITY <= quantity <= MAX_LISTING_QUANTITY):
        raise ValidationError(
            f"Amount must be at least {MIN_LISTING_QUANTITY} and at most "
            f"{MAX_LISTING_QUANTITY}"
        )


def parse_decimal_to_cents(value: str) -> int:
    """Parse a decimal price string into cents.

    '1.11' -> 111, '5,1' -> 510, '1' -> 100, '1,' -> 100.
    Either '.' or ',' separates the fraction; at most two fraction digits.
    Signs, grouping separators and any non-ASCII digit are rejected.
    """
    match = _DECIMAL_RE.match(value.strip())
    if match is None:
        raise ValidationError("Price must be in decimal format with cents, i.e 9.95")
    whole, fraction = match.group(1), match.group(2) or ""
    return int(whole) * 100 + int(fraction.ljust(2, "0"))


def checked_mul(quantity: int, unit_cents: int) -> int:
    """Multiply a quantity by a unit price, rejecting results a BIGINT can't hold."""
    total = quantity * unit_cents
    if not (-MAX_CENTS <= total <= MAX_CENTS):
        raise InvalidAmountError(f"{quantity} x {unit_cents} cents overflows")
    return total


def checked_add(balance_cents: int, delta_cents: int) -> int:
    """Apply a delta to a balance, rejecting results a BIGINT can't hold."""
    total = balance_cents + delta_cents
    if not (-MAX_CENTS <= total <= MAX_CENTS):
        raise InvalidAmountError(f"{balance_cents} + {delta_cents} cents overflows")
    return total


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"
