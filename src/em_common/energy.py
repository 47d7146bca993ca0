"""Arithmetic helpers for the energy ("E") currency and outcome prices.

Balances, amounts and share counts are plain floats (DOUBLE PRECISION in the
database) because shares are fractional.
"""

from config.settings import settings


def clamp_price(price: float) -> float:
    """Clamp a price into [PRICE_FLOOR, PRICE_CEILING] so it never reaches 0 or 1."""
    return min(settings.PRICE_CEILING, max(settings.PRICE_FLOOR, price))


def initial_price(outcome_count: int) -> float:
    """Price of each outcome at market creation: 1/N, clamped (a lone outcome starts at 0.99)."""
    if outcome_count <= 0:
        raise ValueError(f"outcome_count must be positive, got {outcome_count}")
    return clamp_price(1.0 / outcome_count)


def energy_to_display(value: float) -> str:
    """Display string: 1234.5 -> '1,234.50 E', -30 -> '-30.00 E'."""
    if value < 0:
        return f"-{-value:,.2f} E"
    return f"{value:,.2f} E"
