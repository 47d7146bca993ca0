"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

Balance and share mutations use atomic PostgreSQL UPDATE ... RETURNING.
A guarded UPDATE returning 0 rows means a business constraint was violated
(insufficient balance/shares, role already set); the repository then reads
the row once more to raise the precise error.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.errors import (
    InsufficientBalanceError,
    InsufficientSharesError,
    InternalError,
    PositionNotFoundError,
    RoleAlreadyAssignedError,
    UserNotFoundError,
    UsernameTakenError,
)
from src.em_ledger.domain.models import Holding, Position, Transaction, User

_USER_COLUMNS = "id, username, balance, role, is_admin, created_at, updated_at"
_POSITION_COLUMNS = (
    "id, user_id, market_id, outcome_id, shares, avg_price, created_at, updated_at"
)
_TX_COLUMNS = (
    "id, user_id, market_id, outcome_id, type, amount, shares, price, "
    "balance_after, created_at"
)

# ---------------------------------------------------------------------------
# SQL: users
# ---------------------------------------------------------------------------

_GET_USER_SQL = text(f"SELECT {_USER_COLUMNS} FROM users WHERE id = :user_id")

_GET_USER_BY_USERNAME_SQL = text(
    f"SELECT {_USER_COLUMNS} FROM users WHERE username = :username"
)

_ENSURE_USER_SQL = text(f"""
    INSERT INTO users (id, username, balance)
    VALUES (:user_id, :username, 0)
    ON CONFLICT DO NOTHING
    RETURNING {_USER_COLUMNS}
""")

_DEBIT_SQL = text(f"""
    UPDATE users
    SET balance = balance - :amount,
        updated_at = NOW()
    WHERE id = :user_id AND balance >= :amount
    RETURNING {_USER_COLUMNS}
""")

_ADJUST_BALANCE_SQL = text(f"""
    UPDATE users
    SET balance = balance + :delta,
        updated_at = NOW()
    WHERE id = :user_id
    RETURNING {_USER_COLUMNS}
""")

_ASSIGN_ROLE_SQL = text(f"""
    UPDATE users
    SET role = :role,
        balance = :balance,
        updated_at = NOW()
    WHERE id = :user_id AND role IS NULL
    RETURNING {_USER_COLUMNS}
""")

_RESET_ROLE_SQL = text(f"""
    UPDATE users
    SET role = NULL,
        balance = COALESCE(CAST(:balance AS DOUBLE PRECISION), balance),
        updated_at = NOW()
    WHERE id = :user_id
    RETURNING {_USER_COLUMNS}
""")

_LIST_USERS_WITH_ROLE_SQL = text(f"""
    SELECT {_USER_COLUMNS}
    FROM users
    WHERE role IS NOT NULL
    ORDER BY id
""")

_LIST_ACTIVE_USER_IDS_SQL = text("""
    SELECT DISTINCT user_id
    FROM transactions
    WHERE created_at >= :since
      AND type NOT IN :excluded_types
    ORDER BY user_id
""").bindparams(bindparam("excluded_types", expanding=True))

# ---------------------------------------------------------------------------
# SQL: positions
# ---------------------------------------------------------------------------

_GET_POSITION_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id AND outcome_id = :outcome_id
""")

# Weighted average on the existing row: (old_shares*old_avg + amount) / (old_shares + new_shares).
# SET expressions see the pre-update row, so avg_price uses the old share count.
_ADD_TO_POSITION_SQL = text(f"""
    INSERT INTO positions (user_id, market_id, outcome_id, shares, avg_price)
    VALUES (:user_id, :market_id, :outcome_id, :shares, :execution_price)
    ON CONFLICT (user_id, outcome_id) DO UPDATE
        SET avg_price = (positions.shares * positions.avg_price + :amount)
                        / (positions.shares + :shares),
            shares = positions.shares + :shares,
            updated_at = NOW()
    RETURNING {_POSITION_COLUMNS}
""")

_REDUCE_POSITION_SQL = text(f"""
    UPDATE positions
    SET shares = shares - :shares,
        updated_at = NOW()
    WHERE user_id = :user_id
      AND outcome_id = :outcome_id
      AND shares >= :shares
    RETURNING {_POSITION_COLUMNS}
""")

_LOCK_OPEN_POSITIONS_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE market_id = :market_id AND shares > 0
    ORDER BY user_id, outcome_id
    FOR UPDATE
""")

_ZERO_POSITIONS_SQL = text("""
    UPDATE positions
    SET shares = 0,
        updated_at = NOW()
    WHERE market_id = :market_id AND shares > 0
""")

_LIST_HOLDINGS_SQL = text("""
    SELECT p.id, p.user_id, p.market_id, p.outcome_id, p.shares, p.avg_price,
           p.created_at, p.updated_at,
           o.name AS outcome_name, o.price AS current_price,
           m.question AS market_question, m.status AS market_status
    FROM positions p
    JOIN outcomes o ON o.id = p.outcome_id
    JOIN markets m ON m.id = p.market_id
    WHERE p.user_id = :user_id
      AND (CAST(:include_closed AS BOOLEAN) OR p.shares > 0)
    ORDER BY p.updated_at DESC, p.id DESC
""")

# ---------------------------------------------------------------------------
# SQL: transactions (append-only)
# ---------------------------------------------------------------------------

_INSERT_TX_SQL = text(f"""
    INSERT INTO transactions
        (user_id, market_id, outcome_id, type, amount, shares, price, balance_after)
    VALUES
        (:user_id, :market_id, :outcome_id, :type, :amount, :shares, :price, :balance_after)
    RETURNING {_TX_COLUMNS}
""")

_LIST_USER_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:tx_type AS VARCHAR) IS NULL OR type = CAST(:tx_type AS VARCHAR))
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_MARKET_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE market_id = :market_id
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_user(row: Any) -> User:
    return User(
        id=row.id,
        username=row.username,
        balance=float(row.balance),
        role=row.role,
        is_admin=bool(row.is_admin),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_position(row: Any) -> Position:
    return Position(
        id=row.id,
        user_id=row.user_id,
        market_id=row.market_id,
        outcome_id=row.outcome_id,
        shares=float(row.shares),
        avg_price=float(row.avg_price),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_transaction(row: Any) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        market_id=row.market_id,
        outcome_id=row.outcome_id,
        type=row.type,
        amount=float(row.amount),
        shares=float(row.shares),
        price=float(row.price),
        balance_after=float(row.balance_after),
        created_at=row.created_at,
    )


class LedgerRepository:
    """Concrete repository; every mutation is atomic at the SQL level."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, db: AsyncSession, user_id: str) -> User | None:
        row = (await db.execute(_GET_USER_SQL, {"user_id": user_id})).fetchone()
        return _row_to_user(row) if row else None

    async def get_user_by_username(
        self, db: AsyncSession, username: str
    ) -> User | None:
        row = (
            await db.execute(_GET_USER_BY_USERNAME_SQL, {"username": username})
        ).fetchone()
        return _row_to_user(row) if row else None

    async def ensure_user(self, db: AsyncSession, user_id: str, username: str) -> User:
        """Create the user on first sight (balance 0, no role); idempotent.

        Nothing is inserted when either the id or the username already exists.
        An existing id means a concurrent first request won; the row is re-read.
        Otherwise the username belongs to a different subject.
        """
        result = await db.execute(
            _ENSURE_USER_SQL, {"user_id": user_id, "username": username}
        )
        row = result.fetchone()
        if row is None:
            existing = await self.get_user(db, user_id)
            if existing is None:
                raise UsernameTakenError(username)
            return existing
        return _row_to_user(row)

    async def debit(self, db: AsyncSession, user_id: str, amount: float) -> User:
        """Guarded debit: fails rather than letting a trade overdraw the balance."""
        result = await db.execute(_DEBIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            user = await self.get_user(db, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            raise InsufficientBalanceError(amount, user.balance)
        return _row_to_user(row)

    async def adjust_balance(self, db: AsyncSession, user_id: str, delta: float) -> User:
        """Unguarded credit (delta > 0) or charge (delta < 0); balance may go negative."""
        result = await db.execute(
            _ADJUST_BALANCE_SQL, {"user_id": user_id, "delta": delta}
        )
        row = result.fetchone()
        if row is None:
            raise UserNotFoundError(user_id)
        return _row_to_user(row)

    async def assign_role(
        self, db: AsyncSession, user_id: str, role: str, starting_balance: float
    ) -> User:
        result = await db.execute(
            _ASSIGN_ROLE_SQL,
            {"user_id": user_id, "role": role, "balance": starting_balance},
        )
        row = result.fetchone()
        if row is None:
            user = await self.get_user(db, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            raise RoleAlreadyAssignedError(str(user.role))
        return _row_to_user(row)

    async def reset_role(
        self, db: AsyncSession, user_id: str, new_balance: float | None
    ) -> User:
        result = await db.execute(
            _RESET_ROLE_SQL, {"user_id": user_id, "balance": new_balance}
        )
        row = result.fetchone()
        if row is None:
            raise UserNotFoundError(user_id)
        return _row_to_user(row)

    async def list_users_with_role(self, db: AsyncSession) -> list[User]:
        rows = (await db.execute(_LIST_USERS_WITH_ROLE_SQL)).fetchall()
        return [_row_to_user(r) for r in rows]

    async def list_active_user_ids(
        self, db: AsyncSession, since: datetime, excluded_types: list[str]
    ) -> list[str]:
        rows = (
            await db.execute(
                _LIST_ACTIVE_USER_IDS_SQL,
                {"since": since, "excluded_types": excluded_types},
            )
        ).fetchall()
        return [r.user_id for r in rows]

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    async def get_position(
        self, db: AsyncSession, user_id: str, outcome_id: str
    ) -> Position | None:
        row = (
            await db.execute(
                _GET_POSITION_SQL, {"user_id": user_id, "outcome_id": outcome_id}
            )
        ).fetchone()
        return _row_to_position(row) if row else None

    async def add_to_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        outcome_id: str,
        shares: float,
        amount: float,
        execution_price: float,
    ) -> Position:
        result = await db.execute(
            _ADD_TO_POSITION_SQL,
            {
                "user_id": user_id,
                "market_id": market_id,
                "outcome_id": outcome_id,
                "shares": shares,
                "amount": amount,
                "execution_price": execution_price,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Position upsert returned no rows; this should never happen")
        return _row_to_position(row)

    async def reduce_position(
        self, db: AsyncSession, user_id: str, outcome_id: str, shares: float
    ) -> Position:
        """Guarded reduce; avg_price is left unchanged and zero-share rows stay."""
        result = await db.execute(
            _REDUCE_POSITION_SQL,
            {"user_id": user_id, "outcome_id": outcome_id, "shares": shares},
        )
        row = result.fetchone()
        if row is None:
            position = await self.get_position(db, user_id, outcome_id)
            if position is None:
                raise PositionNotFoundError(outcome_id)
            raise InsufficientSharesError(shares, position.shares)
        return _row_to_position(row)

    async def lock_open_positions_for_market(
        self, db: AsyncSession, market_id: str
    ) -> list[Position]:
        rows = (
            await db.execute(_LOCK_OPEN_POSITIONS_SQL, {"market_id": market_id})
        ).fetchall()
        return [_row_to_position(r) for r in rows]

    async def zero_positions_for_market(self, db: AsyncSession, market_id: str) -> int:
        result = await db.execute(_ZERO_POSITIONS_SQL, {"market_id": market_id})
        return int(result.rowcount or 0)

    async def list_holdings(
        self, db: AsyncSession, user_id: str, include_closed: bool
    ) -> list[Holding]:
        rows = (
            await db.execute(
                _LIST_HOLDINGS_SQL,
                {"user_id": user_id, "include_closed": include_closed},
            )
        ).fetchall()
        return [
            Holding(
                position=_row_to_position(r),
                outcome_name=r.outcome_name,
                current_price=float(r.current_price),
                market_question=r.market_question,
                market_status=r.market_status,
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def insert_transaction(
        self,
        db: AsyncSession,
        user_id: str,
        tx_type: str,
        amount: float,
        shares: float,
        price: float,
        balance_after: float,
        market_id: str | None = None,
        outcome_id: str | None = None,
    ) -> Transaction:
        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "user_id": user_id,
                "market_id": market_id,
                "outcome_id": outcome_id,
                "type": tx_type,
                "amount": amount,
                "shares": shares,
                "price": price,
                "balance_after": balance_after,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows; this should never happen")
        return _row_to_transaction(row)

    async def list_user_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[Transaction]:
        rows = (
            await db.execute(
                _LIST_USER_TX_SQL,
                {
                    "user_id": user_id,
                    "cursor_id": cursor_id,
                    "limit": limit,
                    "tx_type": tx_type,
                },
            )
        ).fetchall()
        return [_row_to_transaction(r) for r in rows]

    async def list_market_transactions(
        self, db: AsyncSession, market_id: str, limit: int
    ) -> list[Transaction]:
        rows = (
            await db.execute(
                _LIST_MARKET_TX_SQL, {"market_id": market_id, "limit": limit}
            )
        ).fetchall()
        return [_row_to_transaction(r) for r in rows]
