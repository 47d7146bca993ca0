"""Linear price-impact model — pure functions, no I/O.

Every outcome carries its own independent price curve:

    impact = input_amount * IMPACT_COEFFICIENT * volatility_multiplier

BUY moves the price up by ``impact`` and ``input_amount`` is energy spent.
SELL moves it down and ``input_amount`` is a share count, so sell impact
scales with shares rather than with proceeds.

The execution price is clamped to [PRICE_FLOOR, PRICE_CEILING] on both
sides, also when the current price already sits outside that band.
Prices of sibling outcomes are not renormalised to sum to 1.
"""

from dataclasses import dataclass

from config.settings import settings
from src.em_common.energy import clamp_price
from src.em_common.enums import TradeDirection
from src.em_common.errors import ValidationError
from src.em_common.system_config import SystemConfig

TURBULENCE_MULTIPLIER = 2.0


@dataclass(frozen=True)
class ExecutionQuote:
    direction: TradeDirection
    execution_price: float
    shares: float    # BUY: shares acquired; SELL: shares sold
    proceeds: float  # SELL only; 0 for BUY
    impact: float


def volatility_multiplier_for(config: SystemConfig) -> float:
    """2 under turbulence (event mode A), otherwise 1."""
    return TURBULENCE_MULTIPLIER if config.is_turbulent else 1.0


def compute_execution(
    current_price: float,
    direction: TradeDirection,
    input_amount: float,
    volatility_multiplier: float = 1.0,
) -> ExecutionQuote:
    if input_amount <= 0:
        raise ValidationError(f"trade amount must be positive, got {input_amount}")
    if volatility_multiplier <= 0:
        raise ValidationError(
            f"volatility multiplier must be positive, got {volatility_multiplier}"
        )

    impact = input_amount * settings.IMPACT_COEFFICIENT * volatility_multiplier
    if direction == TradeDirection.BUY:
        price = clamp_price(current_price + impact)
        return ExecutionQuote(
            direction=direction,
            execution_price=price,
            shares=input_amount / price,
            proceeds=0.0,
            impact=impact,
        )

    price = clamp_price(current_price - impact)
    return ExecutionQuote(
        direction=direction,
        execution_price=price,
        shares=input_amount,
        proceeds=input_amount * price,
        impact=impact,
    )
