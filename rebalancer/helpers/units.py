"""
Token-unit conversions.

Raw amounts are integers in the token's smallest unit; human amounts are
Decimals. Floats are only accepted at the boundary and are converted
through ``str`` so 0.1 stays 0.1.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, localcontext

# Enough digits for uint256 products
_PRECISION = 160


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_units(raw_amount: int, decimals: int) -> str:
    """Format a raw integer amount as a plain decimal string without trailing zeros."""
    value = Decimal(int(raw_amount)).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def parse_units(value: Decimal | int | float | str, decimals: int) -> int:
    """Parse a human amount into raw units, truncating extra precision."""
    scaled = to_decimal(value).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def mul_div_floor(amount: int, numerator: Decimal, denominator: Decimal) -> int:
    """floor(amount * numerator / denominator) computed in Decimal."""
    if denominator <= 0:
        return 0
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        result = Decimal(int(amount)) * to_decimal(numerator) / to_decimal(denominator)
        return int(result.to_integral_value(rounding=ROUND_FLOOR))
