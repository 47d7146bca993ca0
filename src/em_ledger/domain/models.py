"""Domain models for em_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    id: str                  # identity token `sub`
    username: str
    balance: float           # E; may go negative under daily cost
    role: str | None = None  # UserRole value, None until selected
    is_admin: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_bankrupt(self) -> bool:
        return self.balance <= 0


@dataclass
class Position:
    user_id: str
    market_id: str
    outcome_id: str
    shares: float = 0.0
    avg_price: float = 0.0   # volume-weighted entry price
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def cost_basis(self) -> float:
        return self.shares * self.avg_price


@dataclass
class Holding:
    """A position joined with the outcome and market it belongs to (read model)."""

    position: Position
    outcome_name: str
    current_price: float
    market_question: str
    market_status: str

    @property
    def market_value(self) -> float:
        return self.position.shares * self.current_price


@dataclass
class Transaction:
    id: int                  # BIGSERIAL
    user_id: str
    type: str                # TransactionType value
    amount: float            # see TransactionType for the per-type meaning
    shares: float
    price: float
    balance_after: float     # user balance snapshot after the operation
    market_id: str | None = None
    outcome_id: str | None = None
    created_at: datetime | None = None
