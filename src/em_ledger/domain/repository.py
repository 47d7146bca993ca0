"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_ledger.domain.models import Holding, Position, Transaction, User


class LedgerRepositoryProtocol(Protocol):
    # --- users ---
    async def get_user(self, db: AsyncSession, user_id: str) -> User | None: ...

    async def get_user_by_username(
        self, db: AsyncSession, username: str
    ) -> User | None: ...

    async def ensure_user(
        self, db: AsyncSession, user_id: str, username: str
    ) -> User: ...

    async def debit(self, db: AsyncSession, user_id: str, amount: float) -> User: ...

    async def adjust_balance(
        self, db: AsyncSession, user_id: str, delta: float
    ) -> User: ...

    async def assign_role(
        self, db: AsyncSession, user_id: str, role: str, starting_balance: float
    ) -> User: ...

    async def reset_role(
        self, db: AsyncSession, user_id: str, new_balance: float | None
    ) -> User: ...

    async def list_users_with_role(self, db: AsyncSession) -> list[User]: ...

    async def list_active_user_ids(
        self, db: AsyncSession, since: datetime, excluded_types: list[str]
    ) -> list[str]: ...

    # --- positions ---
    async def get_position(
        self, db: AsyncSession, user_id: str, outcome_id: str
    ) -> Position | None: ...

    async def add_to_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        outcome_id: str,
        shares: float,
        amount: float,
        execution_price: float,
    ) -> Position: ...

    async def reduce_position(
        self, db: AsyncSession, user_id: str, outcome_id: str, shares: float
    ) -> Position: ...

    async def lock_open_positions_for_market(
        self, db: AsyncSession, market_id: str
    ) -> list[Position]: ...

    async def zero_positions_for_market(self, db: AsyncSession, market_id: str) -> int: ...

    async def list_holdings(
        self, db: AsyncSession, user_id: str, include_closed: bool
    ) -> list[Holding]: ...

    # --- transactions ---
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
    ) -> Transaction: ...

    async def list_user_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[Transaction]: ...

    async def list_market_transactions(
        self, db: AsyncSession, market_id: str, limit: int
    ) -> list[Transaction]: ...
