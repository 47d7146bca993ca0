"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_market.domain.models import Market, Outcome, PriceHistoryPoint


class MarketRepositoryProtocol(Protocol):
    async def insert_market(self, db: AsyncSession, market: Market) -> Market: ...

    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None: ...

    async def lock_market(self, db: AsyncSession, market_id: str) -> Market | None: ...

    async def list_markets(
        self, db: AsyncSession, status: str | None
    ) -> list[Market]: ...

    async def lock_outcome(
        self, db: AsyncSession, market_id: str, outcome_id: str
    ) -> Outcome | None: ...

    async def apply_trade(
        self,
        db: AsyncSession,
        market_id: str,
        outcome_id: str,
        new_price: float,
        volume: float,
    ) -> None: ...

    async def snapshot_prices(self, db: AsyncSession, market_id: str) -> int: ...

    async def list_price_history(
        self, db: AsyncSession, market_id: str, since: datetime | None
    ) -> list[PriceHistoryPoint]: ...

    async def update_status(
        self, db: AsyncSession, market_id: str, status: str
    ) -> None: ...

    async def mark_resolved(
        self,
        db: AsyncSession,
        market_id: str,
        winning_outcome_id: str,
        final_price: float | None,
        resolved_at: datetime,
    ) -> None: ...

    async def delete_market_cascade(self, db: AsyncSession, market_id: str) -> None: ...
