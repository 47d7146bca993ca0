"""Pydantic schemas for em_market API requests and responses.

Under fog (event mode D) the read endpoints still return markets but
with every price field nulled and ``prices_hidden`` set.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from src.em_common.enums import HistoryRange, MarketStatus
from src.em_market.domain.models import Market, Outcome

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateMarketRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    description: str = Field("", max_length=5000)
    outcomes: str | list[str] = Field(
        ..., description='Outcome names, as a list or one string split on "," or "，"'
    )
    end_date: datetime | None = None


class UpdateStatusRequest(BaseModel):
    status: MarketStatus


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OutcomeOut(BaseModel):
    id: str
    name: str
    description: str
    price: float | None
    volume: float

    @classmethod
    def from_domain(cls, o: Outcome, hide_prices: bool = False) -> "OutcomeOut":
        return cls(
            id=o.id,
            name=o.name,
            description=o.description,
            price=None if hide_prices else o.price,
            volume=o.volume,
        )


class MarketDetail(BaseModel):
    id: str
    question: str
    description: str
    status: str
    end_date: str | None
    total_volume: float
    winning_outcome_id: str | None
    final_price: float | None
    resolved_at: str | None
    created_at: str | None
    outcomes: list[OutcomeOut]
    prices_hidden: bool = False

    @classmethod
    def from_domain(cls, m: Market, hide_prices: bool = False) -> "MarketDetail":
        return cls(
            id=m.id,
            question=m.question,
            description=m.description,
            status=m.status,
            end_date=m.end_date.isoformat() if m.end_date else None,
            total_volume=m.total_volume,
            winning_outcome_id=m.winning_outcome_id,
            final_price=m.final_price,
            resolved_at=m.resolved_at.isoformat() if m.resolved_at else None,
            created_at=m.created_at.isoformat() if m.created_at else None,
            outcomes=[OutcomeOut.from_domain(o, hide_prices) for o in m.outcomes],
            prices_hidden=hide_prices,
        )


class MarketListResponse(BaseModel):
    items: list[MarketDetail]


class HistoryPointOut(BaseModel):
    time: str                   # minute bucket ISO8601, or "Now" for the live point
    prices: dict[str, float]    # outcome name -> price


class PriceHistoryResponse(BaseModel):
    market_id: str
    range: HistoryRange
    points: list[HistoryPointOut]
    prices_hidden: bool = False
