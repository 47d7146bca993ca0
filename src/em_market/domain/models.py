"""Domain models for em_market. Pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Outcome:
    id: str
    market_id: str
    name: str
    price: float             # implied probability, always within [0.01, 0.99]
    volume: float = 0.0      # cumulative energy traded
    description: str = ""
    created_at: datetime | None = None


@dataclass
class Market:
    id: str
    question: str
    description: str
    status: str                          # MarketStatus value
    total_volume: float = 0.0
    end_date: datetime | None = None     # display only, never locks the market
    winning_outcome_id: str | None = None
    final_price: float | None = None     # reference value, display only
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    outcomes: list[Outcome] = field(default_factory=list)

    def outcome(self, outcome_id: str) -> Outcome | None:
        return next((o for o in self.outcomes if o.id == outcome_id), None)


@dataclass
class PriceHistoryPoint:
    market_id: str
    outcome_id: str
    price: float
    created_at: datetime
