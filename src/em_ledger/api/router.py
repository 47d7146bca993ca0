"""em_ledger REST API — the caller's own account, all require a bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_admin.infrastructure.config_store import get_prices_hidden
from src.em_common.database import get_db_session
from src.em_common.enums import TransactionType
from src.em_common.response import ApiResponse, respond
from src.em_gateway.auth.dependencies import get_current_user
from src.em_ledger.application.schemas import SelectRoleRequest
from src.em_ledger.application.service import LedgerApplicationService
from src.em_ledger.domain.models import User

router = APIRouter(prefix="/me", tags=["me"])

_service = LedgerApplicationService()


@router.get("")
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_me(db, current_user.id)
    return respond(request, data.model_dump())


@router.post("/role")
async def select_role(
    body: SelectRoleRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.select_role(db, current_user.id, body.role)
    return respond(request, data.model_dump())


@router.get("/positions")
async def list_positions(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
    request: Request,
    include_closed: bool = Query(False, description="Include zero-share positions"),
) -> ApiResponse:
    items = await _service.list_positions(db, current_user.id, include_closed, hide_prices)
    return respond(request, {"items": [i.model_dump() for i in items]})


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    type: TransactionType | None = Query(None, description="Filter by TransactionType"),
) -> ApiResponse:
    data = await _service.list_transactions(
        db, current_user.id, cursor, limit, type.value if type else None, hide_prices
    )
    return respond(request, data.model_dump())


@router.get("/portfolio")
async def get_portfolio(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    hide_prices: Annotated[bool, Depends(get_prices_hidden)],
) -> ApiResponse:
    data = await _service.get_portfolio(db, current_user.id, hide_prices)
    return respond(request, data.model_dump())
