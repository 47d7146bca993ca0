"""PeriodicOperations — daily cost and airdrop over many users.

Unlike trades and settlement these are NOT one transaction across all users:
each user is charged or credited in its own unit of work, and a failure for
one user is logged and counted while the batch carries on.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.em_common.database import unit_of_work
from src.em_common.datetime_utils import window_start
from src.em_common.enums import TransactionType, UserRole
from src.em_common.errors import ValidationError
from src.em_common.system_config import SystemConfig
from src.em_ledger.domain.repository import LedgerRepositoryProtocol
from src.em_ledger.infrastructure.persistence import LedgerRepository
from src.em_periodic.application.schemas import AirdropResult, DailyCostResult

logger = logging.getLogger(__name__)

# Rows the periodic jobs write themselves never make a user "active".
_SYSTEM_TX_TYPES = [TransactionType.DAILY_COST.value, TransactionType.AIRDROP.value]


def daily_cost_for(role: str) -> float:
    if role == UserRole.FULL_TIME.value:
        return settings.FULL_TIME_DAILY_COST
    if role == UserRole.INTERN.value:
        return settings.INTERN_DAILY_COST
    raise ValidationError(f"no daily cost for role {role!r}")


class PeriodicOperations:
    def __init__(self, ledger_repo: LedgerRepositoryProtocol | None = None) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()

    async def trigger_daily_cost(
        self, db: AsyncSession, config: SystemConfig
    ) -> DailyCostResult:
        """Debit every user with a role by that role's daily cost.

        Suppressed entirely while the tax holiday (event mode B) is on.
        Balances may go negative.
        """
        if config.is_tax_holiday:
            logger.info("Daily cost skipped: tax holiday is active")
            return DailyCostResult(charged=0, failed=0, skipped=True, total_charged=0.0)

        users = await self._ledger.list_users_with_role(db)
        charged = failed = 0
        total = 0.0
        for u in users:
            try:
                cost = daily_cost_for(str(u.role))
                async with unit_of_work(db):
                    updated = await self._ledger.adjust_balance(db, u.id, -cost)
                    await self._ledger.insert_transaction(
                        db,
                        u.id,
                        TransactionType.DAILY_COST.value,
                        -cost,
                        0.0,
                        0.0,
                        updated.balance,
                    )
            except Exception:
                failed += 1
                logger.exception("Daily cost failed for user %s", u.id)
                continue
            charged += 1
            total += cost

        logger.info(
            "Daily cost run: charged=%d failed=%d total=%.2f", charged, failed, total
        )
        return DailyCostResult(
            charged=charged, failed=failed, skipped=False, total_charged=total
        )

    async def airdrop_active_users(
        self,
        db: AsyncSession,
        amount: float,
        window_minutes: int | None = None,
    ) -> AirdropResult:
        """Credit ``amount`` to every user with a transaction in the trailing window."""
        if amount <= 0:
            raise ValidationError(f"airdrop amount must be positive, got {amount}")
        minutes = window_minutes or settings.AIRDROP_WINDOW_MINUTES
        user_ids = await self._ledger.list_active_user_ids(
            db, window_start(minutes), _SYSTEM_TX_TYPES
        )
        if not user_ids:
            logger.info("Airdrop: no active users in the last %d minutes", minutes)
            return AirdropResult(recipients=0, failed=0, amount=amount)

        recipients = failed = 0
        for user_id in user_ids:
            try:
                async with unit_of_work(db):
                    updated = await self._ledger.adjust_balance(db, user_id, amount)
                    await self._ledger.insert_transaction(
                        db,
                        user_id,
                        TransactionType.AIRDROP.value,
                        amount,
                        0.0,
                        0.0,
                        updated.balance,
                    )
            except Exception:
                failed += 1
                logger.exception("Airdrop failed for user %s", user_id)
                continue
            recipients += 1

        logger.info("Airdrop of %.2f E: recipients=%d failed=%d", amount, recipients, failed)
        return AirdropResult(recipients=recipients, failed=failed, amount=amount)
