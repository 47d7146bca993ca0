"""Admin REST API — every route requires an admin bearer token.

GET /system/config is the one public read, served by ``system_router``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_admin.application.schemas import (
    AddPointsRequest,
    AirdropRequest,
    ResetUserRequest,
    SystemConfigResponse,
    UpdateSystemConfigRequest,
)
from src.em_admin.application.service import AdminService
from src.em_admin.infrastructure.config_store import (
    SystemConfigStore,
    get_config_store,
    get_system_config,
)
from src.em_common.database import get_db_session
from src.em_common.enums import EventMode
from src.em_common.errors import EventNotArmedError
from src.em_common.response import ApiResponse, respond
from src.em_common.system_config import SystemConfig
from src.em_gateway.auth.dependencies import require_admin
from src.em_ledger.domain.models import User
from src.em_market.application.schemas import CreateMarketRequest, UpdateStatusRequest
from src.em_market.application.service import MarketApplicationService
from src.em_periodic.application.service import PeriodicOperations
from src.em_settlement.application.schemas import SettleRequest
from src.em_settlement.application.service import SettlementEngine

router = APIRouter(prefix="/admin", tags=["admin"])
system_router = APIRouter(prefix="/system", tags=["system"])

_admin = AdminService()
_markets = MarketApplicationService()
_settlement = SettlementEngine()
_periodic = PeriodicOperations()


# ---------------------------------------------------------------------------
# Markets
# ---------------------------------------------------------------------------


@router.post("/markets")
async def create_market(
    body: CreateMarketRequest,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _markets.create_market(db, body)
    return respond(request, result.model_dump())


@router.delete("/markets/{market_id}")
async def delete_market(
    market_id: str,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _markets.delete_market(db, market_id)
    return respond(request, {"market_id": market_id, "deleted": True})


@router.post("/markets/{market_id}/status")
async def update_market_status(
    market_id: str,
    body: UpdateStatusRequest,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _markets.update_market_status(db, market_id, body.status)
    return respond(request, result.model_dump())


@router.post("/markets/{market_id}/settle")
async def settle_market(
    market_id: str,
    body: SettleRequest,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _settlement.settle_market(
        db, market_id, body.winning_outcome_id, body.final_price
    )
    return respond(request, result.model_dump())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.post("/users/points")
async def add_points(
    body: AddPointsRequest,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _admin.add_points(db, body.username, body.points)
    return respond(request, result.model_dump())


@router.post("/users/reset")
async def reset_user_role(
    body: ResetUserRequest,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _admin.reset_user_role(db, body.username, body.new_balance)
    return respond(request, result.model_dump())


# ---------------------------------------------------------------------------
# Periodic jobs
# ---------------------------------------------------------------------------


@router.post("/daily-cost")
async def trigger_daily_cost(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    config: Annotated[SystemConfig, Depends(get_system_config)],
    request: Request,
) -> ApiResponse:
    result = await _periodic.trigger_daily_cost(db, config)
    return respond(request, result.model_dump())


@router.post("/airdrop")
async def airdrop(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    config: Annotated[SystemConfig, Depends(get_system_config)],
    request: Request,
    body: AirdropRequest | None = None,
) -> ApiResponse:
    if not config.is_airdrop_armed:
        raise EventNotArmedError(EventMode.AIRDROP_ARMED.value, config.event_mode.value)
    amount = body.amount if body else AirdropRequest().amount
    result = await _periodic.airdrop_active_users(db, amount)
    return respond(request, result.model_dump())


# ---------------------------------------------------------------------------
# System config
# ---------------------------------------------------------------------------


@router.put("/system/config")
async def update_system_config(
    body: UpdateSystemConfigRequest,
    admin: Annotated[User, Depends(require_admin)],
    store: Annotated[SystemConfigStore, Depends(get_config_store)],
    request: Request,
) -> ApiResponse:
    config = await store.update(body.notification, body.event_mode)
    return respond(request, SystemConfigResponse.from_domain(config).model_dump())


@system_router.get("/config")
async def get_config(
    config: Annotated[SystemConfig, Depends(get_system_config)],
    request: Request,
) -> ApiResponse:
    return respond(request, SystemConfigResponse.from_domain(config).model_dump())
