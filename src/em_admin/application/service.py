"""AdminService — manual balance and role interventions."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import unit_of_work
from src.em_common.enums import TransactionType
from src.em_common.errors import UserNotFoundError, ValidationError
from src.em_ledger.application.schemas import UserResponse
from src.em_ledger.domain.repository import LedgerRepositoryProtocol
from src.em_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, ledger_repo: LedgerRepositoryProtocol | None = None) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()

    async def add_points(
        self, db: AsyncSession, username: str, points: float
    ) -> UserResponse:
        """Credit (or, when negative, debit) a user and log an ADMIN_ADD row."""
        if points == 0:
            raise ValidationError("points must be non-zero")
        async with unit_of_work(db):
            user = await self._ledger.get_user_by_username(db, username)
            if user is None:
                raise UserNotFoundError(username)
            user = await self._ledger.adjust_balance(db, user.id, points)
            await self._ledger.insert_transaction(
                db,
                user.id,
                TransactionType.ADMIN_ADD.value,
                points,
                0.0,
                0.0,
                user.balance,
            )
        logger.info("Admin granted %.2f E to %s (balance %.2f)", points, username, user.balance)
        return UserResponse.from_domain(user)

    async def reset_user_role(
        self, db: AsyncSession, username: str, new_balance: float | None = None
    ) -> UserResponse:
        """Clear the role so the user can pick again; optionally overwrite the balance."""
        async with unit_of_work(db):
            user = await self._ledger.get_user_by_username(db, username)
            if user is None:
                raise UserNotFoundError(username)
            user = await self._ledger.reset_role(db, user.id, new_balance)
        logger.info("Admin reset role of %s (balance %.2f)", username, user.balance)
        return UserResponse.from_domain(user)
