"""LedgerApplicationService — the player's own account view.

Role selection is the only write here; it runs in a unit of work.
The rest are read-only and run without an explicit transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.em_common.database import unit_of_work
from src.em_common.enums import UserRole
from src.em_common.energy import energy_to_display
from src.em_common.errors import UserNotFoundError
from src.em_ledger.application.schemas import (
    PortfolioResponse,
    PositionItem,
    TransactionItem,
    TransactionPage,
    UserResponse,
    cursor_decode,
    cursor_encode,
)
from src.em_ledger.domain.repository import LedgerRepositoryProtocol
from src.em_ledger.infrastructure.persistence import LedgerRepository


def starting_balance_for(role: UserRole) -> float:
    if role == UserRole.FULL_TIME:
        return settings.FULL_TIME_STARTING_BALANCE
    return settings.INTERN_STARTING_BALANCE


class LedgerApplicationService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def get_me(self, db: AsyncSession, user_id: str) -> UserResponse:
        user = await self._repo.get_user(db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return UserResponse.from_domain(user)

    async def select_role(
        self, db: AsyncSession, user_id: str, role: UserRole
    ) -> UserResponse:
        """Assign a role once and grant its starting balance."""
        async with unit_of_work(db):
            user = await self._repo.assign_role(
                db, user_id, role.value, starting_balance_for(role)
            )
        return UserResponse.from_domain(user)

    async def list_positions(
        self,
        db: AsyncSession,
        user_id: str,
        include_closed: bool = False,
        hide_prices: bool = False,
    ) -> list[PositionItem]:
        holdings = await self._repo.list_holdings(db, user_id, include_closed)
        return [PositionItem.from_domain(h, hide_prices) for h in holdings]

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        tx_type: str | None,
        hide_prices: bool = False,
    ) -> TransactionPage:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        txs = await self._repo.list_user_transactions(
            db, user_id, cursor_id, limit + 1, tx_type
        )
        has_more = len(txs) > limit
        page = txs[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionPage(
            items=[TransactionItem.from_domain(t, hide_prices) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def get_portfolio(
        self, db: AsyncSession, user_id: str, hide_prices: bool = False
    ) -> PortfolioResponse:
        """Balance plus open holdings at current prices.

        Under fog the valuation fields are None; the balance stays visible.
        """
        user = await self._repo.get_user(db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        holdings = await self._repo.list_holdings(db, user_id, False)
        positions = [PositionItem.from_domain(h, hide_prices) for h in holdings]
        if hide_prices:
            return PortfolioResponse(
                balance=user.balance,
                holdings_value=None,
                total_value=None,
                total_value_display=None,
                is_bankrupt=user.is_bankrupt,
                positions=positions,
                prices_hidden=True,
            )
        holdings_value = sum(h.market_value for h in holdings)
        total = user.balance + holdings_value
        return PortfolioResponse(
            balance=user.balance,
            holdings_value=holdings_value,
            total_value=total,
            total_value_display=energy_to_display(total),
            is_bankrupt=user.is_bankrupt,
            positions=positions,
        )
