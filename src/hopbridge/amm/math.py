"""Constant-product (x*y=k) quote math.

All amounts are integers in the token's smallest unit. Decimal work runs
in a wide local context so large reserves never lose precision.
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Union

from hopbridge.exceptions import InsufficientLiquidityError

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000

PRICE_SCALE = Decimal("1e-18")
IMPACT_SCALE = Decimal("1e-6")
_PRECISION = 100


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Output of a single hop with the 0.3% pool fee.

    amountOut = amountIn*997*reserveOut / (reserveIn*1000 + amountIn*997)
    """
    if amount_in < 0:
        raise ValueError(f"amount_in must be non-negative, got {amount_in}")
    if amount_in == 0:
        return 0
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidityError()

    amount_in_with_fee = amount_in * FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def spot_price(reserve_in: int, reserve_out: int) -> Decimal:
    """reserve_out / reserve_in at 18 decimals, rounded half-up."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return (Decimal(reserve_out) / Decimal(reserve_in)).quantize(
            PRICE_SCALE, rounding=ROUND_HALF_UP
        )


def calculate_price_impact(amount_in: int, reserve_in: int, reserve_out: int) -> Decimal:
    """Percentage move of the pool price caused by the trade.

    Returns 0 for empty pools; the caller decides whether that is an error.
    """
    if reserve_in <= 0 or reserve_out <= 0:
        return Decimal("0")

    price_before = spot_price(reserve_in, reserve_out)

    amount_out = get_amount_out(amount_in, reserve_in, reserve_out)
    price_after = spot_price(reserve_in + amount_in, reserve_out - amount_out)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ratio = ((price_after - price_before) / price_before).quantize(
            IMPACT_SCALE, rounding=ROUND_HALF_UP
        )
        return abs(ratio * 100)


def apply_slippage(amount: int, slippage_tolerance: Union[Decimal, float, str]) -> int:
    """Minimum acceptable output, truncated toward zero.

    Args:
        amount: Quoted output
        slippage_tolerance: Fraction, e.g. 0.005 for 0.5%
    """
    tolerance = Decimal(str(slippage_tolerance))
    if tolerance < 0 or tolerance > 1:
        raise ValueError(f"slippage_tolerance must be within [0, 1], got {tolerance}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return int(Decimal(amount) * (Decimal("1") - tolerance))


def loss_percent(amount_in: int, amount_out: int, places: int = 4) -> Decimal:
    """(amount_in - amount_out) / amount_in * 100, rounded half-up."""
    if amount_in == 0:
        return Decimal("0")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ratio = (Decimal(amount_in - amount_out) / Decimal(amount_in)).quantize(
            Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP
        )
        return ratio * 100


def apply_rate(amount: int, rate: Union[Decimal, str]) -> int:
    """amount * rate, floored. Used for percentage fees."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return int(Decimal(amount) * Decimal(str(rate)))
