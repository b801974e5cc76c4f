"""Fixed-point <-> natural amount conversion.

The pool service speaks integers scaled by ``10 ** decimals``; everything
above the service boundary works in :class:`~decimal.Decimal`.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Union

Number = Union[Decimal, int, float, str]

# Six-decimal convention used by the pool service for quotes, swaps,
# liquidity shares and event amounts.
SERVICE_DECIMALS = 6

ZERO = Decimal(0)


def as_amount(value: Number) -> Decimal:
    """Coerce user or wire input into a finite, non-negative Decimal.

    Anything unparseable, non-finite or negative becomes zero.
    """
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip() or "0")
        except (InvalidOperation, ValueError):
            return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return amount


def to_fixed_point(natural: Number, decimals: int) -> int:
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    amount = as_amount(natural)
    with localcontext() as ctx:
        # scaleb and quantize round to context precision; widen it so large
        # balances keep every integer digit
        digits = max(len(amount.as_tuple().digits), amount.adjusted() + 1)
        ctx.prec = max(ctx.prec, digits + decimals + 1)
        scaled = amount.scaleb(decimals)
        return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_fixed_point(fixed: int, decimals: int) -> Decimal:
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    raw = Decimal(int(fixed))
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(raw.as_tuple().digits) + 1)
        return raw.scaleb(-decimals)


def to_e6(natural: Number) -> int:
    return to_fixed_point(natural, SERVICE_DECIMALS)


def from_e6(fixed: int) -> Decimal:
    return from_fixed_point(fixed, SERVICE_DECIMALS)
