"""
Cent-precision money helpers.

Amounts are stored as floats (as the tables always have been) but every
calculation goes through ``Decimal`` and is quantized to cents right after
each arithmetic step.
"""
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Annotated, Any

from pydantic import PlainSerializer

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
TOLERANCE = Decimal("1e-9")

# Wide enough to add and subtract any float-sized amount down to the cent
MONEY_CONTEXT = Context(prec=400, rounding=ROUND_HALF_UP)

# Decimal in, JSON number out
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def to_decimal(value: Any) -> Decimal | None:
    """Parse a numeric value without binary-float artefacts. Returns None for non-numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def money_context():
    return localcontext(MONEY_CONTEXT)


def quantize(value: Decimal) -> Decimal:
    # Digits before the point, plus two cents and a guard digit
    prec = max(MONEY_CONTEXT.prec, value.adjusted() + 4)
    return value.quantize(CENT, rounding=ROUND_HALF_UP, context=Context(prec=prec))


def to_money(value: Any) -> Decimal:
    parsed = to_decimal(value)
    if parsed is None or not parsed.is_finite():
        raise ValueError(f"not a monetary amount: {value!r}")
    try:
        return quantize(parsed)
    except ArithmeticError:
        raise ValueError(f"monetary amount out of range: {value!r}") from None


def has_cent_precision(value: Decimal) -> bool:
    """Exact test: every digit below the cent place is zero. No context rounding involved."""
    if not value.is_finite():
        return False
    _, digits, exponent = value.as_tuple()
    if exponent >= -2:
        return True
    return not any(digits[exponent + 2:])


def stored_has_cent_precision(value: Any) -> bool:
    """Precision check for a value read back from a float column."""
    parsed = to_decimal(value)
    return parsed is not None and parsed.is_finite() and has_cent_precision(parsed)


def as_float(value: Decimal) -> float:
    return float(quantize(value))
