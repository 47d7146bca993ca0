"""Unit tests for MarketApplicationService."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.em_common.enums import HistoryRange, MarketStatus
from src.em_common.errors import (
    InvalidTransitionError,
    MarketNotFoundError,
    ValidationError,
)
from src.em_ledger.domain.models import Transaction
from src.em_market.application.schemas import CreateMarketRequest
from src.em_market.application.service import (
    MarketApplicationService,
    parse_outcome_names,
)
from src.em_market.domain.models import Market, Outcome, PriceHistoryPoint

NOW = datetime(2026, 3, 1, 12, 30, 45, tzinfo=UTC)


def _market(status: str = "OPEN") -> Market:
    return Market(
        id="MKT-1",
        question="Who wins?",
        description="",
        status=status,
        outcomes=[
            Outcome(id="OUT-A", market_id="MKT-1", name="Red", price=0.55),
            Outcome(id="OUT-B", market_id="MKT-1", name="Blue", price=0.45),
        ],
    )


def _service(market: Market | None = None):
    repo = AsyncMock()
    repo.get_market.return_value = market
    repo.lock_market.return_value = market
    repo.insert_market.side_effect = lambda db, m: m
    ledger = AsyncMock()
    return MarketApplicationService(repo, ledger), repo, ledger


class TestParseOutcomeNames:
    def test_ascii_and_fullwidth_commas(self) -> None:
        assert parse_outcome_names("Yes, No，Maybe") == ["Yes", "No", "Maybe"]

    def test_list_input_trimmed(self) -> None:
        assert parse_outcome_names([" A ", "B", ""]) == ["A", "B"]

    def test_single_outcome_allowed(self) -> None:
        assert parse_outcome_names("Only") == ["Only"]

    @pytest.mark.parametrize("raw", ["", " , ", "a,b,c,d,e"])
    def test_count_out_of_range(self, raw: str) -> None:
        with pytest.raises(ValidationError):
            parse_outcome_names(raw)

    def test_duplicates_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_outcome_names("Yes,Yes")

    def test_name_too_long(self) -> None:
        with pytest.raises(ValidationError):
            parse_outcome_names(["x" * 129])


class TestCreateMarket:
    async def test_equal_initial_prices(self) -> None:
        service, repo, _ = _service()
        db = AsyncMock()

        detail = await service.create_market(
            db, CreateMarketRequest(question=" Rain? ", outcomes="A,B,C,D")
        )

        assert detail.question == "Rain?"
        assert detail.status == "OPEN"
        assert [o.price for o in detail.outcomes] == [0.25] * 4
        assert detail.id.startswith("MKT-")
        assert all(o.id.startswith("OUT-") for o in detail.outcomes)
        assert len({o.id for o in detail.outcomes}) == 4
        repo.snapshot_prices.assert_awaited_once_with(db, detail.id)
        db.commit.assert_awaited_once()

    async def test_single_outcome_priced_at_ceiling(self) -> None:
        service, _, _ = _service()

        detail = await service.create_market(
            AsyncMock(), CreateMarketRequest(question="Sure?", outcomes=["Yes"])
        )

        assert detail.outcomes[0].price == 0.99

    async def test_blank_question(self) -> None:
        service, repo, _ = _service()
        with pytest.raises(ValidationError):
            await service.create_market(
                AsyncMock(), CreateMarketRequest(question="   ", outcomes="A,B")
            )
        repo.insert_market.assert_not_awaited()


class TestLifecycle:
    async def test_delete(self) -> None:
        service, repo, _ = _service(_market())
        db = AsyncMock()

        await service.delete_market(db, "MKT-1")

        repo.delete_market_cascade.assert_awaited_once_with(db, "MKT-1")
        db.commit.assert_awaited_once()

    async def test_delete_missing(self) -> None:
        service, repo, _ = _service(None)
        with pytest.raises(MarketNotFoundError):
            await service.delete_market(AsyncMock(), "MKT-X")
        repo.delete_market_cascade.assert_not_awaited()

    async def test_lock_market(self) -> None:
        service, repo, _ = _service(_market())

        detail = await service.update_market_status(AsyncMock(), "MKT-1", MarketStatus.LOCKED)

        assert detail.status == "LOCKED"
        repo.update_status.assert_awaited_once()

    async def test_same_status_is_noop(self) -> None:
        service, repo, _ = _service(_market("LOCKED"))

        detail = await service.update_market_status(AsyncMock(), "MKT-1", MarketStatus.LOCKED)

        assert detail.status == "LOCKED"
        repo.update_status.assert_not_awaited()

    async def test_resolved_cannot_reopen(self) -> None:
        service, repo, _ = _service(_market("RESOLVED"))
        db = AsyncMock()

        with pytest.raises(InvalidTransitionError):
            await service.update_market_status(db, "MKT-1", MarketStatus.OPEN)
        repo.update_status.assert_not_awaited()
        db.rollback.assert_awaited_once()


class TestReadViews:
    async def test_fog_hides_prices(self) -> None:
        service, _, _ = _service(_market())

        detail = await service.get_market(AsyncMock(), "MKT-1", hide_prices=True)

        assert detail.prices_hidden is True
        assert all(o.price is None for o in detail.outcomes)

    async def test_list_passes_status_filter(self) -> None:
        service, repo, _ = _service()
        repo.list_markets.return_value = [_market()]
        db = AsyncMock()

        resp = await service.list_markets(db, MarketStatus.OPEN)

        repo.list_markets.assert_awaited_once_with(db, "OPEN")
        assert resp.items[0].outcomes[0].price == 0.55

    async def test_history_grouped_per_minute_with_now(self) -> None:
        service, repo, _ = _service(_market())
        t0 = NOW.replace(minute=10, second=5)
        repo.list_price_history.return_value = [
            PriceHistoryPoint("MKT-1", "OUT-A", 0.5, t0),
            PriceHistoryPoint("MKT-1", "OUT-B", 0.5, t0),
            PriceHistoryPoint("MKT-1", "OUT-A", 0.52, t0 + timedelta(seconds=30)),
            PriceHistoryPoint("MKT-1", "OUT-B", 0.48, t0 + timedelta(seconds=30)),
            PriceHistoryPoint("MKT-1", "OUT-A", 0.55, t0 + timedelta(minutes=5)),
        ]
        db = AsyncMock()

        resp = await service.get_price_history(db, "MKT-1", HistoryRange.ONE_HOUR, now=NOW)

        assert [p.time for p in resp.points] == [
            "2026-03-01T12:10:00+00:00",
            "2026-03-01T12:15:00+00:00",
            "Now",
        ]
        assert resp.points[0].prices == {"Red": 0.52, "Blue": 0.48}
        assert resp.points[-1].prices == {"Red": 0.55, "Blue": 0.45}
        since = repo.list_price_history.await_args.args[2]
        assert since == NOW - timedelta(hours=1)

    async def test_history_all_has_no_lower_bound(self) -> None:
        service, repo, _ = _service(_market())
        repo.list_price_history.return_value = []

        resp = await service.get_price_history(AsyncMock(), "MKT-1", HistoryRange.ALL, now=NOW)

        assert repo.list_price_history.await_args.args[2] is None
        assert [p.time for p in resp.points] == ["Now"]

    async def test_history_under_fog(self) -> None:
        service, repo, _ = _service(_market())

        resp = await service.get_price_history(
            AsyncMock(), "MKT-1", HistoryRange.ONE_DAY, hide_prices=True
        )

        assert resp.prices_hidden is True
        assert resp.points == []
        repo.list_price_history.assert_not_awaited()

    async def test_market_transactions(self) -> None:
        service, _, ledger = _service(_market())
        ledger.list_market_transactions.return_value = [
            Transaction(
                id=3, user_id="u1", type="BUY", amount=10, shares=19, price=0.52,
                balance_after=990, market_id="MKT-1", outcome_id="OUT-A",
            )
        ]
        db = AsyncMock()

        items = await service.list_market_transactions(db, "MKT-1")

        assert items[0].id == 3
        ledger.list_market_transactions.assert_awaited_once_with(db, "MKT-1", 50)
        assert "balance_after" not in items[0].model_dump()
        assert items[0].price == 0.52

    async def test_market_transactions_under_fog(self) -> None:
        service, _, ledger = _service(_market())
        ledger.list_market_transactions.return_value = [
            Transaction(
                id=4, user_id="u1", type="SELL", amount=9.8, shares=19, price=0.515,
                balance_after=999.8, market_id="MKT-1", outcome_id="OUT-A",
            ),
            Transaction(
                id=3, user_id="u2", type="PAYOUT", amount=19, shares=19, price=1.0,
                balance_after=1019, market_id="MKT-1", outcome_id="OUT-A",
            ),
        ]

        items = await service.list_market_transactions(AsyncMock(), "MKT-1", hide_prices=True)

        assert (items[0].price, items[0].shares) == (None, None)
        assert items[0].amount == 9.8
        # payouts are settlement facts, not live prices
        assert items[1].price == 1.0

    async def test_history_missing_market(self) -> None:
        service, _, _ = _service(None)
        with pytest.raises(MarketNotFoundError):
            await service.get_price_history(AsyncMock(), "MKT-X", HistoryRange.ALL)
