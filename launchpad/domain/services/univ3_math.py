from __future__ import annotations

import logging
import math
from decimal import Decimal, InvalidOperation, localcontext
from fractions import Fraction


logger = logging.getLogger(__name__)


Q96 = 2**96
DEFAULT_SQRT_PRICE_X96 = Q96
MAX_UINT256 = 2**256 - 1
MIN_TICK = -887272
MAX_TICK = 887272
DEFAULT_TICK_SPACING = 60
DEFAULT_RANGE_MULTIPLIER = 100
# uint256 has 78 decimal digits.
UNITS_PRECISION = 100

FEE_TIER_TICK_SPACING = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}


def tick_spacing(fee_tier: int) -> int:
    spacing = FEE_TIER_TICK_SPACING.get(fee_tier)
    if spacing is None:
        logger.warning(
            "univ3_math: unknown_fee_tier fee_tier=%s fallback_tick_spacing=%s",
            fee_tier,
            DEFAULT_TICK_SPACING,
        )
        return DEFAULT_TICK_SPACING
    return spacing


def default_tick_range(fee_tier: int) -> tuple[int, int]:
    width = tick_spacing(fee_tier) * DEFAULT_RANGE_MULTIPLIER
    return -width, width


def is_tick_aligned(tick: int, spacing: int) -> bool:
    if spacing <= 0:
        raise ValueError("tick_spacing must be positive.")
    return tick % spacing == 0


def parse_units(amount: str | Decimal, decimals: int) -> int:
    if decimals < 0:
        raise ValueError("decimals must not be negative.")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}.") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}.")

    with localcontext() as ctx:
        ctx.prec = UNITS_PRECISION
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Amount {amount} has more than {decimals} decimal places.")
        return int(scaled)


def price_to_sqrt_price_x96(price: Decimal) -> int:
    """Preco bruto token1/token0 (unidades base, sem ajuste de decimais) para sqrtPriceX96."""
    if price <= 0:
        raise ValueError("price must be positive.")
    return math.isqrt(int(Fraction(price) * Q96 * Q96))


def min_amount_with_slippage(amount: int, slippage_bps: int | None) -> int:
    # None keeps the position manager's amountMin at zero.
    if slippage_bps is None:
        return 0
    if not 0 <= slippage_bps <= 10_000:
        raise ValueError("slippage_bps must be between 0 and 10000.")
    return amount * (10_000 - slippage_bps) // 10_000
