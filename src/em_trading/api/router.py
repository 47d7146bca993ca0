"""em_trading REST API: buy and sell, both require a bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_admin.infrastructure.config_store import get_prices_hidden, get_system_config
from src.em_common.database import get_db_session
from src.em_common.response import ApiResponse, respond
from src.em_common.system_config import SystemConfig
from src.em_gateway.auth.dependencies import get_current_user
from src.em_ledger.domain.models import User
from src.em_trading.application.schemas import BuyRequest, SellRequest
from src.em_trading.application.service import TradeExecutor

router = APIRouter(prefix="/trades", tags=["trades"])

_executor = TradeExecutor()


@router.post("/buy")
async def buy(
    body: BuyRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    config: Annotated[SystemConfig, Depends(get_system_config)],
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
    request: Request,
) -> ApiResponse:
    receipt = await _executor.buy(
        db,
        current_user.id,
        body.market_id,
        body.outcome_id,
        body.amount,
        config,
        hide_prices=hide_prices,
    )
    return respond(request, receipt.model_dump())


@router.post("/sell")
async def sell(
    body: SellRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    config: Annotated[SystemConfig, Depends(get_system_config)],
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
    request: Request,
) -> ApiResponse:
    receipt = await _executor.sell(
        db,
        current_user.id,
        body.market_id,
        body.outcome_id,
        body.shares,
        config,
        hide_prices=hide_prices,
    )
    return respond(request, receipt.model_dump())
