"""em_market REST endpoints.

GET /markets                            list, newest first
GET /markets/{market_id}                detail with outcomes
GET /markets/{market_id}/history        price history per minute + "Now"
GET /markets/{market_id}/transactions   last 50 trades and payouts, no balances

Under fog (event mode D) every price field is nulled for non-admin callers.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_admin.infrastructure.config_store import get_prices_hidden
from src.em_common.database import get_db_session
from src.em_common.enums import HistoryRange, MarketStatus
from src.em_common.response import ApiResponse, respond
from src.em_gateway.auth.dependencies import get_current_user
from src.em_ledger.domain.models import User
from src.em_market.application.service import MarketApplicationService

router = APIRouter(prefix="/markets", tags=["markets"])

_service = MarketApplicationService()


@router.get("")
async def list_markets(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
    status: MarketStatus | None = Query(None, description="Filter by status; omit for all"),
) -> ApiResponse:
    result = await _service.list_markets(db, status, hide_prices)
    return respond(request, result.model_dump())


@router.get("/{market_id}")
async def get_market(
    market_id: str,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
) -> ApiResponse:
    result = await _service.get_market(db, market_id, hide_prices)
    return respond(request, result.model_dump())


@router.get("/{market_id}/history")
async def get_price_history(
    market_id: str,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
    range: HistoryRange = Query(HistoryRange.ONE_DAY),
) -> ApiResponse:
    result = await _service.get_price_history(db, market_id, range, hide_prices)
    return respond(request, result.model_dump())


@router.get("/{market_id}/transactions")
async def list_market_transactions(
    market_id: str,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
) -> ApiResponse:
    items = await _service.list_market_transactions(db, market_id, hide_prices=hide_prices)
    return respond(request, {"items": [i.model_dump() for i in items]})
