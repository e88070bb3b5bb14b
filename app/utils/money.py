from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps 19.99 as 19.99 instead of its binary float expansion
    return Decimal(str(value))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value) -> float:
    """Round once, at the boundary, to a 2-decimal float."""
    return float(quantize(value))


def format_amount(value) -> str:
    return str(quantize(value))
