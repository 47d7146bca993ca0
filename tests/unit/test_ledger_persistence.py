# tests/unit/test_ledger_persistence.py
"""Unit tests for LedgerRepository guarded updates using MagicMock AsyncSession."""
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.em_common.errors import (
    InsufficientBalanceError,
    InsufficientSharesError,
    PositionNotFoundError,
    RoleAlreadyAssignedError,
    UserNotFoundError,
    UsernameTakenError,
)
from src.em_ledger.infrastructure.persistence import LedgerRepository


def _user_row(balance=1000.0, role="INTERN"):
    row = MagicMock()
    row.id = "u1"
    row.username = "alice"
    row.balance = balance
    row.role = role
    row.is_admin = False
    row.created_at = datetime.now(UTC)
    row.updated_at = datetime.now(UTC)
    return row


def _position_row(shares=10.0, avg_price=0.5):
    row = MagicMock()
    row.id = 1
    row.user_id = "u1"
    row.market_id = "MKT-1"
    row.outcome_id = "OUT-A"
    row.shares = shares
    row.avg_price = avg_price
    row.created_at = datetime.now(UTC)
    row.updated_at = datetime.now(UTC)
    return row


def _result(one=None, many=None, rowcount=0):
    result = MagicMock()
    result.fetchone.return_value = one
    result.fetchall.return_value = many or []
    result.rowcount = rowcount
    return result


@pytest.fixture
def db():
    return MagicMock()


class TestDebit:
    async def test_success(self, db):
        db.execute = AsyncMock(return_value=_result(one=_user_row(balance=900.0)))

        user = await LedgerRepository().debit(db, "u1", 100.0)

        assert user.balance == 900.0
        assert "balance >= :amount" in str(db.execute.await_args.args[0])

    async def test_insufficient_balance(self, db):
        db.execute = AsyncMock(
            side_effect=[_result(one=None), _result(one=_user_row(balance=50.0))]
        )

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await LedgerRepository().debit(db, "u1", 100.0)
        assert "50.00" in exc_info.value.message

    async def test_unknown_user(self, db):
        db.execute = AsyncMock(side_effect=[_result(one=None), _result(one=None)])

        with pytest.raises(UserNotFoundError):
            await LedgerRepository().debit(db, "ghost", 1.0)


class TestAdjustBalance:
    async def test_can_go_negative(self, db):
        db.execute = AsyncMock(return_value=_result(one=_user_row(balance=-20.0)))

        user = await LedgerRepository().adjust_balance(db, "u1", -30.0)

        assert user.balance == -20.0
        assert user.is_bankrupt is True

    async def test_unknown_user(self, db):
        db.execute = AsyncMock(return_value=_result(one=None))

        with pytest.raises(UserNotFoundError):
            await LedgerRepository().adjust_balance(db, "ghost", 5.0)


class TestAssignRole:
    async def test_second_assignment(self, db):
        db.execute = AsyncMock(side_effect=[_result(one=None), _result(one=_user_row())])

        with pytest.raises(RoleAlreadyAssignedError):
            await LedgerRepository().assign_role(db, "u1", "FULL_TIME", 5000.0)


class TestEnsureUser:
    async def test_inserts_new_user(self, db):
        db.execute = AsyncMock(return_value=_result(one=_user_row(balance=0.0, role=None)))

        user = await LedgerRepository().ensure_user(db, "u1", "alice")

        assert user.balance == 0.0
        assert db.execute.await_count == 1

    async def test_existing_id_is_reread(self, db):
        db.execute = AsyncMock(side_effect=[_result(one=None), _result(one=_user_row())])

        user = await LedgerRepository().ensure_user(db, "u1", "alice")

        assert user.id == "u1"
        assert user.balance == 1000.0

    async def test_username_owned_by_other_subject(self, db):
        db.execute = AsyncMock(side_effect=[_result(one=None), _result(one=None)])

        with pytest.raises(UsernameTakenError) as exc:
            await LedgerRepository().ensure_user(db, "u2", "alice")
        assert exc.value.http_status == 409
        assert exc.value.code == 2005


class TestPositions:
    async def test_reduce_success(self, db):
        db.execute = AsyncMock(return_value=_result(one=_position_row(shares=4.0)))

        position = await LedgerRepository().reduce_position(db, "u1", "OUT-A", 6.0)

        assert position.shares == 4.0
        assert position.avg_price == 0.5

    async def test_reduce_without_position(self, db):
        db.execute = AsyncMock(side_effect=[_result(one=None), _result(one=None)])

        with pytest.raises(PositionNotFoundError):
            await LedgerRepository().reduce_position(db, "u1", "OUT-A", 1.0)

    async def test_reduce_more_than_held(self, db):
        db.execute = AsyncMock(
            side_effect=[_result(one=None), _result(one=_position_row(shares=2.0))]
        )

        with pytest.raises(InsufficientSharesError):
            await LedgerRepository().reduce_position(db, "u1", "OUT-A", 5.0)

    async def test_zero_positions_returns_rowcount(self, db):
        db.execute = AsyncMock(return_value=_result(rowcount=4))

        assert await LedgerRepository().zero_positions_for_market(db, "MKT-1") == 4

    async def test_add_to_position_passes_amount(self, db):
        db.execute = AsyncMock(return_value=_result(one=_position_row()))

        await LedgerRepository().add_to_position(db, "u1", "MKT-1", "OUT-A", 196.0, 100.0, 0.51)

        params = db.execute.await_args.args[1]
        assert params["amount"] == 100.0
        assert params["shares"] == 196.0
        assert params["execution_price"] == 0.51


class TestActiveUsers:
    async def test_returns_ids(self, db):
        rows = [MagicMock(user_id="u1"), MagicMock(user_id="u2")]
        db.execute = AsyncMock(return_value=_result(many=rows))
        since = datetime.now(UTC)

        ids = await LedgerRepository().list_active_user_ids(db, since, ["DAILY_COST"])

        assert ids == ["u1", "u2"]
        assert db.execute.await_args.args[1] == {
            "since": since, "excluded_types": ["DAILY_COST"],
        }
