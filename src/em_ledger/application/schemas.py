"""Pydantic schemas and cursor utilities for em_ledger API."""

import base64
import json
import re

from pydantic import BaseModel, Field

from src.em_common.energy import energy_to_display
from src.em_common.enums import TransactionType, UserRole
from src.em_ledger.domain.models import Holding, Transaction, User

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")

_TRADE_TYPES = frozenset({TransactionType.BUY.value, TransactionType.SELL.value})

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SelectRoleRequest(BaseModel):
    role: UserRole


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    id: str
    username: str
    balance: float
    balance_display: str
    role: str | None
    is_admin: bool
    is_bankrupt: bool

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            balance=user.balance,
            balance_display=energy_to_display(user.balance),
            role=user.role,
            is_admin=user.is_admin,
            is_bankrupt=user.is_bankrupt,
        )


class PositionItem(BaseModel):
    market_id: str
    market_question: str
    market_status: str
    outcome_id: str
    outcome_name: str
    shares: float
    # None while fog (event mode D) hides prices from the caller
    avg_price: float | None
    current_price: float | None
    current_value: float | None
    profit: float | None  # current_value - cost basis

    @classmethod
    def from_domain(cls, holding: Holding, hide_prices: bool = False) -> "PositionItem":
        p = holding.position
        return cls(
            market_id=p.market_id,
            market_question=holding.market_question,
            market_status=holding.market_status,
            outcome_id=p.outcome_id,
            outcome_name=holding.outcome_name,
            shares=p.shares,
            avg_price=None if hide_prices else p.avg_price,
            current_price=None if hide_prices else holding.current_price,
            current_value=None if hide_prices else holding.market_value,
            profit=None if hide_prices else holding.market_value - p.cost_basis,
        )


def _hides_trade_price(tx: Transaction, hide_prices: bool) -> bool:
    # amount / shares on a trade row is the execution price, so both go dark.
    return hide_prices and tx.type in _TRADE_TYPES


class TransactionItem(BaseModel):
    id: int
    type: str
    market_id: str | None
    outcome_id: str | None
    amount: float
    amount_display: str
    shares: float | None
    price: float | None
    balance_after: float
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, tx: Transaction, hide_prices: bool = False) -> "TransactionItem":
        hidden = _hides_trade_price(tx, hide_prices)
        return cls(
            id=tx.id,
            type=tx.type,
            market_id=tx.market_id,
            outcome_id=tx.outcome_id,
            amount=tx.amount,
            amount_display=energy_to_display(tx.amount),
            shares=None if hidden else tx.shares,
            price=None if hidden else tx.price,
            balance_after=tx.balance_after,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class MarketTradeItem(BaseModel):
    """One row of a market's public activity feed; carries no trader balance."""

    id: int
    type: str
    outcome_id: str | None
    amount: float
    shares: float | None
    price: float | None
    created_at: str

    @classmethod
    def from_domain(cls, tx: Transaction, hide_prices: bool = False) -> "MarketTradeItem":
        hidden = _hides_trade_price(tx, hide_prices)
        return cls(
            id=tx.id,
            type=tx.type,
            outcome_id=tx.outcome_id,
            amount=tx.amount,
            shares=None if hidden else tx.shares,
            price=None if hidden else tx.price,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class TransactionPage(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class PortfolioResponse(BaseModel):
    balance: float
    holdings_value: float | None = Field(
        ..., description="Σ shares × current price over open positions; None under fog"
    )
    total_value: float | None
    total_value_display: str | None
    is_bankrupt: bool
    positions: list[PositionItem]
    prices_hidden: bool = False
