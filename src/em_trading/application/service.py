"""TradeExecutor — buy and sell against an outcome's price curve.

Each trade is one database transaction:

    lock market -> lock outcome -> quote -> user balance -> position
    -> outcome price/volume + market volume -> price snapshot -> transaction row

Any failure rolls the whole trade back (see unit_of_work); nothing is retried.
Row locks start with the market row, which settlement also locks first, so a
trade and a settlement on the same market never interleave.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import unit_of_work
from src.em_common.enums import MarketStatus, TradeDirection, TransactionType
from src.em_common.errors import (
    MarketNotFoundError,
    MarketNotTradableError,
    OutcomeNotFoundError,
    ValidationError,
)
from src.em_common.system_config import SystemConfig
from src.em_ledger.domain.repository import LedgerRepositoryProtocol
from src.em_ledger.infrastructure.persistence import LedgerRepository
from src.em_market.domain.models import Outcome
from src.em_market.domain.repository import MarketRepositoryProtocol
from src.em_market.domain.state_machine import is_tradable
from src.em_market.infrastructure.persistence import MarketRepository
from src.em_pricing.domain.model import compute_execution, volatility_multiplier_for
from src.em_trading.application.schemas import TradeReceipt

logger = logging.getLogger(__name__)


class TradeExecutor:
    def __init__(
        self,
        market_repo: MarketRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()

    async def _lock_tradable_outcome(
        self, db: AsyncSession, market_id: str, outcome_id: str
    ) -> Outcome:
        market = await self._markets.lock_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if not is_tradable(MarketStatus(market.status)):
            raise MarketNotTradableError(market_id, market.status)
        outcome = await self._markets.lock_outcome(db, market_id, outcome_id)
        if outcome is None:
            raise OutcomeNotFoundError(outcome_id, market_id)
        return outcome

    async def buy(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        outcome_id: str,
        amount: float,
        config: SystemConfig,
        hide_prices: bool = False,
    ) -> TradeReceipt:
        """Spend ``amount`` energy on ``outcome_id`` at the impacted price."""
        if amount <= 0:
            raise ValidationError(f"amount must be positive, got {amount}")

        async with unit_of_work(db):
            outcome = await self._lock_tradable_outcome(db, market_id, outcome_id)
            quote = compute_execution(
                outcome.price,
                TradeDirection.BUY,
                amount,
                volatility_multiplier_for(config),
            )
            user = await self._ledger.debit(db, user_id, amount)
            position = await self._ledger.add_to_position(
                db,
                user_id,
                market_id,
                outcome_id,
                quote.shares,
                amount,
                quote.execution_price,
            )
            await self._markets.apply_trade(
                db, market_id, outcome_id, quote.execution_price, amount
            )
            await self._markets.snapshot_prices(db, market_id)
            tx = await self._ledger.insert_transaction(
                db,
                user_id,
                TransactionType.BUY.value,
                amount,
                quote.shares,
                quote.execution_price,
                user.balance,
                market_id=market_id,
                outcome_id=outcome_id,
            )

        logger.info(
            "BUY user=%s market=%s outcome=%s amount=%.4f shares=%.4f price %.4f -> %.4f",
            user_id,
            market_id,
            outcome_id,
            amount,
            quote.shares,
            outcome.price,
            quote.execution_price,
        )
        return TradeReceipt.build(
            direction=TradeDirection.BUY.value,
            market_id=market_id,
            outcome_id=outcome_id,
            amount=amount,
            shares=quote.shares,
            execution_price=quote.execution_price,
            balance_after=user.balance,
            position_shares=position.shares,
            position_avg_price=position.avg_price,
            transaction_id=tx.id,
            hide_prices=hide_prices,
        )

    async def sell(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        outcome_id: str,
        shares_to_sell: float,
        config: SystemConfig,
        hide_prices: bool = False,
    ) -> TradeReceipt:
        """Sell ``shares_to_sell`` shares; impact scales with the share count."""
        if shares_to_sell <= 0:
            raise ValidationError(f"shares must be positive, got {shares_to_sell}")

        async with unit_of_work(db):
            outcome = await self._lock_tradable_outcome(db, market_id, outcome_id)
            quote = compute_execution(
                outcome.price,
                TradeDirection.SELL,
                shares_to_sell,
                volatility_multiplier_for(config),
            )
            user = await self._ledger.adjust_balance(db, user_id, quote.proceeds)
            position = await self._ledger.reduce_position(
                db, user_id, outcome_id, shares_to_sell
            )
            await self._markets.apply_trade(
                db, market_id, outcome_id, quote.execution_price, quote.proceeds
            )
            await self._markets.snapshot_prices(db, market_id)
            tx = await self._ledger.insert_transaction(
                db,
                user_id,
                TransactionType.SELL.value,
                quote.proceeds,
                shares_to_sell,
                quote.execution_price,
                user.balance,
                market_id=market_id,
                outcome_id=outcome_id,
            )

        logger.info(
            "SELL user=%s market=%s outcome=%s shares=%.4f proceeds=%.4f price %.4f -> %.4f",
            user_id,
            market_id,
            outcome_id,
            shares_to_sell,
            quote.proceeds,
            outcome.price,
            quote.execution_price,
        )
        return TradeReceipt.build(
            direction=TradeDirection.SELL.value,
            market_id=market_id,
            outcome_id=outcome_id,
            amount=quote.proceeds,
            shares=shares_to_sell,
            execution_price=quote.execution_price,
            balance_after=user.balance,
            position_shares=position.shares,
            position_avg_price=position.avg_price,
            transaction_id=tx.id,
            hide_prices=hide_prices,
        )
