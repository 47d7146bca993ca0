"""Pydantic schemas for market settlement."""

from pydantic import BaseModel, Field


class SettleRequest(BaseModel):
    winning_outcome_id: str
    final_price: float | None = Field(
        None, allow_inf_nan=False, description="Reference real-world value, display only"
    )


class SettlementSummary(BaseModel):
    market_id: str
    winning_outcome_id: str
    winners: int              # users paid out
    losers: int               # users holding only losing shares
    total_payout: float       # Σ winning shares × 1.0
    positions_closed: int
