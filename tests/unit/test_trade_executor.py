"""Unit tests for TradeExecutor using mock repositories."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from src.em_common.enums import EventMode, TransactionType
from src.em_common.errors import (
    InsufficientBalanceError,
    InsufficientSharesError,
    MarketNotFoundError,
    MarketNotTradableError,
    OutcomeNotFoundError,
    StorageFailureError,
    ValidationError,
)
from src.em_common.system_config import SystemConfig
from src.em_ledger.domain.models import Position, Transaction, User
from src.em_market.domain.models import Market, Outcome
from src.em_trading.application.service import TradeExecutor


CALM = SystemConfig()


def _market(status: str = "OPEN") -> Market:
    return Market(
        id="MKT-1",
        question="Will it rain?",
        description="",
        status=status,
        outcomes=[
            Outcome(id="OUT-A", market_id="MKT-1", name="A", price=0.5),
            Outcome(id="OUT-B", market_id="MKT-1", name="B", price=0.5),
        ],
    )


def _user(balance: float) -> User:
    return User(id="user-1", username="alice", balance=balance, role="INTERN")


def _tx(**kwargs) -> Transaction:
    defaults = dict(
        id=7, user_id="user-1", type="BUY", amount=0.0, shares=0.0, price=0.0,
        balance_after=0.0, created_at=datetime.now(UTC),
    )
    defaults.update(kwargs)
    return Transaction(**defaults)


def _repos(market: Market | None = None, outcome_price: float = 0.5):
    markets = AsyncMock()
    markets.lock_market.return_value = market if market is not None else _market()
    markets.lock_outcome.return_value = Outcome(
        id="OUT-A", market_id="MKT-1", name="A", price=outcome_price
    )
    ledger = AsyncMock()
    ledger.insert_transaction.return_value = _tx()
    return markets, ledger


class TestBuy:
    async def test_buy_debits_and_moves_price(self) -> None:
        markets, ledger = _repos()
        ledger.debit.return_value = _user(900.0)
        ledger.add_to_position.return_value = Position(
            user_id="user-1", market_id="MKT-1", outcome_id="OUT-A",
            shares=100 / 0.51, avg_price=0.51,
        )
        db = AsyncMock()
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        receipt = await executor.buy(db, "user-1", "MKT-1", "OUT-A", 100, CALM)

        assert receipt.balance_after == 900.0
        assert receipt.execution_price == pytest.approx(0.51)
        assert receipt.shares == pytest.approx(196.08, abs=0.01)
        ledger.debit.assert_awaited_once_with(db, "user-1", 100)
        markets.apply_trade.assert_awaited_once()
        _, _, _, new_price, volume = markets.apply_trade.await_args.args
        assert new_price == pytest.approx(0.51)
        assert volume == 100
        markets.snapshot_prices.assert_awaited_once_with(db, "MKT-1")
        tx_args = ledger.insert_transaction.await_args
        assert tx_args.args[2] == TransactionType.BUY.value
        assert tx_args.args[3] == 100
        assert tx_args.args[6] == 900.0
        assert tx_args.kwargs == {"market_id": "MKT-1", "outcome_id": "OUT-A"}
        db.commit.assert_awaited_once()
        db.rollback.assert_not_awaited()

    async def test_position_upsert_gets_amount_and_shares(self) -> None:
        markets, ledger = _repos()
        ledger.debit.return_value = _user(900.0)
        ledger.add_to_position.return_value = Position(
            user_id="user-1", market_id="MKT-1", outcome_id="OUT-A", shares=1, avg_price=0.5
        )
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        await executor.buy(AsyncMock(), "user-1", "MKT-1", "OUT-A", 100, CALM)

        args = ledger.add_to_position.await_args.args
        assert args[1:4] == ("user-1", "MKT-1", "OUT-A")
        assert args[4] == pytest.approx(100 / 0.51)   # shares
        assert args[5] == 100                          # amount spent
        assert args[6] == pytest.approx(0.51)          # execution price

    async def test_turbulence_doubles_price_move(self) -> None:
        markets, ledger = _repos()
        ledger.debit.return_value = _user(900.0)
        ledger.add_to_position.return_value = Position(
            user_id="user-1", market_id="MKT-1", outcome_id="OUT-A", shares=1, avg_price=0.52
        )
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        receipt = await executor.buy(
            AsyncMock(), "user-1", "MKT-1", "OUT-A", 100,
            SystemConfig(event_mode=EventMode.TURBULENCE),
        )

        assert receipt.execution_price == pytest.approx(0.52)

    async def test_insufficient_balance_rolls_back(self) -> None:
        markets, ledger = _repos()
        ledger.debit.side_effect = InsufficientBalanceError(100, 50)
        db = AsyncMock()
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(InsufficientBalanceError):
            await executor.buy(db, "user-1", "MKT-1", "OUT-A", 100, CALM)

        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()
        ledger.add_to_position.assert_not_awaited()
        markets.apply_trade.assert_not_awaited()
        ledger.insert_transaction.assert_not_awaited()

    @pytest.mark.parametrize("status", ["LOCKED", "RESOLVED", "CANCELLED"])
    async def test_market_not_open(self, status: str) -> None:
        markets, ledger = _repos(market=_market(status))
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(MarketNotTradableError):
            await executor.buy(AsyncMock(), "user-1", "MKT-1", "OUT-A", 10, CALM)
        ledger.debit.assert_not_awaited()

    async def test_market_not_found(self) -> None:
        markets, ledger = _repos()
        markets.lock_market.return_value = None
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(MarketNotFoundError):
            await executor.buy(AsyncMock(), "user-1", "MKT-X", "OUT-A", 10, CALM)

    async def test_outcome_from_other_market(self) -> None:
        markets, ledger = _repos()
        markets.lock_outcome.return_value = None
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(OutcomeNotFoundError):
            await executor.buy(AsyncMock(), "user-1", "MKT-1", "OUT-Z", 10, CALM)

    @pytest.mark.parametrize("amount", [0, -1])
    async def test_non_positive_amount(self, amount: float) -> None:
        markets, ledger = _repos()
        db = AsyncMock()
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(ValidationError):
            await executor.buy(db, "user-1", "MKT-1", "OUT-A", amount, CALM)
        markets.lock_market.assert_not_awaited()

    async def test_storage_error_is_wrapped(self) -> None:
        markets, ledger = _repos()
        ledger.debit.return_value = _user(900.0)
        ledger.add_to_position.side_effect = OperationalError("UPDATE", {}, Exception("boom"))
        db = AsyncMock()
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(StorageFailureError):
            await executor.buy(db, "user-1", "MKT-1", "OUT-A", 100, CALM)
        db.rollback.assert_awaited_once()


class TestSell:
    async def test_sell_credits_proceeds(self) -> None:
        markets, ledger = _repos(outcome_price=0.51)
        shares = 100 / 0.51
        expected_price = 0.51 - shares * 0.0001
        ledger.adjust_balance.return_value = _user(900 + shares * expected_price)
        ledger.reduce_position.return_value = Position(
            user_id="user-1", market_id="MKT-1", outcome_id="OUT-A", shares=0, avg_price=0.51
        )
        db = AsyncMock()
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        receipt = await executor.sell(db, "user-1", "MKT-1", "OUT-A", shares, CALM)

        assert receipt.execution_price == pytest.approx(expected_price)
        assert receipt.amount == pytest.approx(shares * expected_price)
        assert receipt.amount <= 100
        assert receipt.position_shares == 0
        credit = ledger.adjust_balance.await_args.args
        assert credit[2] == pytest.approx(shares * expected_price)
        ledger.reduce_position.assert_awaited_once_with(db, "user-1", "OUT-A", shares)
        tx_args = ledger.insert_transaction.await_args.args
        assert tx_args[2] == TransactionType.SELL.value
        assert tx_args[4] == shares
        db.commit.assert_awaited_once()

    async def test_sell_volume_counts_proceeds(self) -> None:
        markets, ledger = _repos(outcome_price=0.5)
        ledger.adjust_balance.return_value = _user(1000)
        ledger.reduce_position.return_value = Position(
            user_id="user-1", market_id="MKT-1", outcome_id="OUT-A", shares=90, avg_price=0.5
        )
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        receipt = await executor.sell(AsyncMock(), "user-1", "MKT-1", "OUT-A", 10, CALM)

        volume = markets.apply_trade.await_args.args[4]
        assert volume == pytest.approx(receipt.amount)
        assert volume == pytest.approx(10 * 0.499)

    async def test_insufficient_shares_rolls_back(self) -> None:
        markets, ledger = _repos()
        ledger.adjust_balance.return_value = _user(1000)
        ledger.reduce_position.side_effect = InsufficientSharesError(50, 10)
        db = AsyncMock()
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(InsufficientSharesError):
            await executor.sell(db, "user-1", "MKT-1", "OUT-A", 50, CALM)
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()
        markets.apply_trade.assert_not_awaited()

    async def test_locked_market(self) -> None:
        markets, ledger = _repos(market=_market("LOCKED"))
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        with pytest.raises(MarketNotTradableError):
            await executor.sell(AsyncMock(), "user-1", "MKT-1", "OUT-A", 5, CALM)
        ledger.reduce_position.assert_not_awaited()


class TestFogReceipt:
    async def test_buy_receipt_hides_price_and_shares(self) -> None:
        markets, ledger = _repos()
        ledger.debit.return_value = _user(900.0)
        ledger.add_to_position.return_value = Position(
            user_id="user-1", market_id="MKT-1", outcome_id="OUT-A",
            shares=100 / 0.51, avg_price=0.51,
        )
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)
        fog = SystemConfig(event_mode=EventMode.FOG)

        receipt = await executor.buy(
            AsyncMock(), "user-1", "MKT-1", "OUT-A", 100, fog, hide_prices=True
        )

        assert receipt.prices_hidden is True
        assert receipt.execution_price is None
        assert receipt.position_avg_price is None
        assert receipt.shares is None
        assert receipt.amount == 100
        assert receipt.balance_after == 900.0
        # the trade itself still moved the price
        assert markets.apply_trade.await_args.args[3] == pytest.approx(0.51)

    async def test_sell_receipt_hides_price_and_proceeds(self) -> None:
        markets, ledger = _repos()
        ledger.adjust_balance.return_value = _user(1000)
        ledger.reduce_position.return_value = Position(
            user_id="user-1", market_id="MKT-1", outcome_id="OUT-A", shares=90, avg_price=0.5
        )
        executor = TradeExecutor(market_repo=markets, ledger_repo=ledger)

        receipt = await executor.sell(
            AsyncMock(), "user-1", "MKT-1", "OUT-A", 10, CALM, hide_prices=True
        )

        assert receipt.execution_price is None
        assert receipt.amount is None
        assert receipt.position_avg_price is None
        assert receipt.shares == 10
        assert receipt.position_shares == 90
