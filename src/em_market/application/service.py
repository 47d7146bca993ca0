"""MarketApplicationService — market lifecycle and read views.

create_market, delete_market and update_market_status run in a unit of
work; the remaining methods are read-only.
"""

import logging
import re
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import unit_of_work
from src.em_common.datetime_utils import minute_bucket, utc_now
from src.em_common.energy import initial_price
from src.em_common.enums import HistoryRange, MarketStatus
from src.em_common.errors import MarketNotFoundError, ValidationError
from src.em_common.id_generator import new_market_id, new_outcome_id
from src.em_ledger.application.schemas import MarketTradeItem
from src.em_ledger.domain.repository import LedgerRepositoryProtocol
from src.em_ledger.infrastructure.persistence import LedgerRepository
from src.em_market.application.schemas import (
    CreateMarketRequest,
    HistoryPointOut,
    MarketDetail,
    MarketListResponse,
    PriceHistoryResponse,
)
from src.em_market.domain.models import Market, Outcome
from src.em_market.domain.repository import MarketRepositoryProtocol
from src.em_market.domain.state_machine import check_admin_transition
from src.em_market.infrastructure.persistence import MarketRepository

logger = logging.getLogger(__name__)

MAX_OUTCOMES = 4
MAX_OUTCOME_NAME_LEN = 128
MARKET_TRANSACTIONS_LIMIT = 50

_OUTCOME_SEPARATORS = re.compile(r"[,，]")

_RANGE_WINDOWS: dict[HistoryRange, timedelta | None] = {
    HistoryRange.ONE_HOUR: timedelta(hours=1),
    HistoryRange.SIX_HOURS: timedelta(hours=6),
    HistoryRange.ONE_DAY: timedelta(days=1),
    HistoryRange.ONE_WEEK: timedelta(weeks=1),
    HistoryRange.ALL: None,
}


def parse_outcome_names(raw: str | list[str]) -> list[str]:
    """Split, trim and validate outcome names (1-4, unique, non-empty)."""
    parts = _OUTCOME_SEPARATORS.split(raw) if isinstance(raw, str) else raw
    names = [p.strip() for p in parts if p.strip()]
    if not 1 <= len(names) <= MAX_OUTCOMES:
        raise ValidationError(
            f"a market needs 1-{MAX_OUTCOMES} outcomes, got {len(names)}"
        )
    if len(set(names)) != len(names):
        raise ValidationError("outcome names must be unique within a market")
    too_long = [n for n in names if len(n) > MAX_OUTCOME_NAME_LEN]
    if too_long:
        raise ValidationError(f"outcome name too long: {too_long[0][:20]}...")
    return names


class MarketApplicationService:
    def __init__(
        self,
        repo: MarketRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._repo: MarketRepositoryProtocol = repo or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()

    # ------------------------------------------------------------------
    # Lifecycle (admin)
    # ------------------------------------------------------------------

    async def create_market(
        self, db: AsyncSession, req: CreateMarketRequest
    ) -> MarketDetail:
        question = req.question.strip()
        if not question:
            raise ValidationError("question must not be blank")
        names = parse_outcome_names(req.outcomes)
        price = initial_price(len(names))

        market_id = new_market_id()
        draft = Market(
            id=market_id,
            question=question,
            description=req.description.strip(),
            status=MarketStatus.OPEN.value,
            end_date=req.end_date,
            outcomes=[
                Outcome(id=new_outcome_id(), market_id=market_id, name=n, price=price)
                for n in names
            ],
        )
        async with unit_of_work(db):
            market = await self._repo.insert_market(db, draft)
            await self._repo.snapshot_prices(db, market.id)
        logger.info("Created market %s with %d outcomes", market.id, len(names))
        return MarketDetail.from_domain(market)

    async def delete_market(self, db: AsyncSession, market_id: str) -> None:
        """Remove the market and everything that references it, in one transaction."""
        async with unit_of_work(db):
            market = await self._repo.lock_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            await self._repo.delete_market_cascade(db, market_id)
        logger.info("Deleted market %s", market_id)

    async def update_market_status(
        self, db: AsyncSession, market_id: str, new_status: MarketStatus
    ) -> MarketDetail:
        async with unit_of_work(db):
            market = await self._repo.lock_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if check_admin_transition(MarketStatus(market.status), new_status):
                await self._repo.update_status(db, market_id, new_status.value)
                logger.info(
                    "Market %s status %s -> %s", market_id, market.status, new_status.value
                )
                market.status = new_status.value
        return MarketDetail.from_domain(market)

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    async def list_markets(
        self,
        db: AsyncSession,
        status: MarketStatus | None = None,
        hide_prices: bool = False,
    ) -> MarketListResponse:
        markets = await self._repo.list_markets(db, status.value if status else None)
        return MarketListResponse(
            items=[MarketDetail.from_domain(m, hide_prices) for m in markets]
        )

    async def get_market(
        self, db: AsyncSession, market_id: str, hide_prices: bool = False
    ) -> MarketDetail:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return MarketDetail.from_domain(market, hide_prices)

    async def get_price_history(
        self,
        db: AsyncSession,
        market_id: str,
        history_range: HistoryRange,
        hide_prices: bool = False,
        now: datetime | None = None,
    ) -> PriceHistoryResponse:
        """Snapshots grouped per minute, oldest first, ending with a live "Now" point."""
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if hide_prices:
            return PriceHistoryResponse(
                market_id=market_id, range=history_range, points=[], prices_hidden=True
            )

        now = now or utc_now()
        window = _RANGE_WINDOWS[history_range]
        since = now - window if window is not None else None
        rows = await self._repo.list_price_history(db, market_id, since)

        names = {o.id: o.name for o in market.outcomes}
        grouped: dict[datetime, dict[str, float]] = {}
        for row in rows:
            name = names.get(row.outcome_id)
            if name is None:
                continue
            # Later snapshots in the same minute overwrite earlier ones.
            grouped.setdefault(minute_bucket(row.created_at), {})[name] = row.price

        points = [
            HistoryPointOut(time=bucket.isoformat(), prices=prices)
            for bucket, prices in sorted(grouped.items())
        ]
        points.append(
            HistoryPointOut(time="Now", prices={o.name: o.price for o in market.outcomes})
        )
        return PriceHistoryResponse(market_id=market_id, range=history_range, points=points)

    async def list_market_transactions(
        self,
        db: AsyncSession,
        market_id: str,
        limit: int = MARKET_TRANSACTIONS_LIMIT,
        hide_prices: bool = False,
    ) -> list[MarketTradeItem]:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        txs = await self._ledger.list_market_transactions(db, market_id, limit)
        return [MarketTradeItem.from_domain(t, hide_prices) for t in txs]
