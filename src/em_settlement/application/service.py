"""SettlementEngine — resolve a market and pay winners in ONE transaction.

    lock market -> validate -> mark RESOLVED -> lock open positions
    -> credit winners + SETTLEMENT rows -> zero every position

A market can be settled once. The RESOLVED status is written while the
market row is locked, so a concurrent or repeated call waits on the lock and
then fails with AlreadySettledError instead of paying twice.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import unit_of_work
from src.em_common.datetime_utils import utc_now
from src.em_common.enums import MarketStatus, TransactionType
from src.em_common.errors import (
    AlreadySettledError,
    InvalidOutcomeError,
    InvalidTransitionError,
    MarketNotFoundError,
)
from src.em_ledger.domain.repository import LedgerRepositoryProtocol
from src.em_ledger.infrastructure.persistence import LedgerRepository
from src.em_market.domain.repository import MarketRepositoryProtocol
from src.em_market.domain.state_machine import can_transition
from src.em_market.infrastructure.persistence import MarketRepository
from src.em_settlement.application.schemas import SettlementSummary

logger = logging.getLogger(__name__)

PAYOUT_PER_SHARE = 1.0


class SettlementEngine:
    def __init__(
        self,
        market_repo: MarketRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()

    async def settle_market(
        self,
        db: AsyncSession,
        market_id: str,
        winning_outcome_id: str,
        final_price: float | None = None,
    ) -> SettlementSummary:
        async with unit_of_work(db):
            market = await self._markets.lock_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            status = MarketStatus(market.status)
            if status == MarketStatus.RESOLVED:
                raise AlreadySettledError(market_id)
            if not can_transition(status, MarketStatus.RESOLVED):
                raise InvalidTransitionError(status.value, MarketStatus.RESOLVED.value)
            if market.outcome(winning_outcome_id) is None:
                raise InvalidOutcomeError(winning_outcome_id, market_id)

            await self._markets.mark_resolved(
                db, market_id, winning_outcome_id, final_price, utc_now()
            )

            positions = await self._ledger.lock_open_positions_for_market(db, market_id)
            winners: set[str] = set()
            holders: set[str] = set()
            total_payout = 0.0
            for position in positions:
                holders.add(position.user_id)
                if position.outcome_id != winning_outcome_id:
                    continue
                payout = position.shares * PAYOUT_PER_SHARE
                user = await self._ledger.adjust_balance(db, position.user_id, payout)
                await self._ledger.insert_transaction(
                    db,
                    position.user_id,
                    TransactionType.SETTLEMENT.value,
                    payout,
                    position.shares,
                    PAYOUT_PER_SHARE,
                    user.balance,
                    market_id=market_id,
                    outcome_id=winning_outcome_id,
                )
                winners.add(position.user_id)
                total_payout += payout

            closed = await self._ledger.zero_positions_for_market(db, market_id)

        logger.info(
            "Settled market %s: winner=%s winners=%d losers=%d payout=%.4f",
            market_id,
            winning_outcome_id,
            len(winners),
            len(holders - winners),
            total_payout,
        )
        return SettlementSummary(
            market_id=market_id,
            winning_outcome_id=winning_outcome_id,
            winners=len(winners),
            losers=len(holders - winners),
            total_payout=total_payout,
            positions_closed=closed,
        )
