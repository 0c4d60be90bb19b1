from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

DISPLAY_PLACES = Decimal("0.00000001")

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    # str() keeps floats like 0.1 from dragging binary noise into Decimal
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_smallest_unit(amount: Number, decimals: int = 18) -> int:
    """Convert a decimal amount to its fixed-point integer, rounded to 8 places first."""
    rounded = to_decimal(amount).quantize(DISPLAY_PLACES, rounding=ROUND_HALF_UP)
    return int(rounded.scaleb(decimals))


def from_smallest_unit(raw: Union[int, str], decimals: int = 18) -> Decimal:
    return Decimal(int(raw)).scaleb(-decimals)


def parse_int(value: Any, default: int = 0) -> int:
    """Lenient integer parse for aggregator payload strings (decimal or 0x-hex)."""
    if value is None:
        return default
    try:
        if isinstance(value, str) and value.lower().startswith("0x"):
            return int(value, 16)
        return int(Decimal(str(value)))
    except (ValueError, InvalidOperation):
        return default
