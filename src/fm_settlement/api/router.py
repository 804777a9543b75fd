"""fm_settlement REST endpoints.

POST /teams/{team_id}/buy          — buy shares at the quoted price
POST /teams/{team_id}/sell         — sell shares at the quoted price
POST /teams/{team_id}/adjust       — manual market cap adjustment (admin)
POST /fixtures/{fixture_id}/apply  — apply a closed fixture's result (admin, idempotent)
GET  /orders                       — caller's order history
GET  /orders/{order_id}            — single order
GET  /audit/invariants             — market-wide invariant audit (admin)

The buy window is trading policy, so it is enforced here rather than in
SettlementService.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.errors import TeamNotTradeableError
from src.fm_common.response import ApiResponse, success_response
from src.fm_fixture.application.service import FixtureApplicationService
from src.fm_gateway.dependencies import get_current_user_id, require_admin
from src.fm_settlement.application.queries import AuditService, OrderQueryService
from src.fm_settlement.application.schemas import (
    AdjustMarketCapRequest,
    AdjustmentResponse,
    OrderResultResponse,
    TradeRequest,
    TransferResultResponse,
)
from src.fm_settlement.application.service import SettlementService

router = APIRouter(tags=["settlement"])

_service = SettlementService()
_fixtures = FixtureApplicationService()
_orders = OrderQueryService()
_audit = AuditService()


async def _ensure_buy_window_open(db: AsyncSession, team_id: int) -> None:
    if not await _fixtures.is_buy_window_open(db, team_id):
        raise TeamNotTradeableError(team_id, "buy window closed for the next fixture")


@router.post("/teams/{team_id}/buy")
async def buy(
    team_id: int,
    body: TradeRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _ensure_buy_window_open(db, team_id)
    result = await _service.buy(db, user_id, team_id, body.quantity, body.expected_price_cents)
    data = OrderResultResponse.from_result(result)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/teams/{team_id}/sell")
async def sell(
    team_id: int,
    body: TradeRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _ensure_buy_window_open(db, team_id)
    result = await _service.sell(db, user_id, team_id, body.quantity, body.expected_price_cents)
    data = OrderResultResponse.from_result(result)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/teams/{team_id}/adjust")
async def adjust_market_cap(
    team_id: int,
    body: AdjustMarketCapRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    entry = await _service.adjust_market_cap(
        db, team_id, body.new_market_cap_cents, body.reason, admin_id
    )
    data = AdjustmentResponse.from_entry(entry)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.post("/fixtures/{fixture_id}/apply")
async def apply_match_result(
    fixture_id: int,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.apply_match_result(db, fixture_id)
    data = TransferResultResponse.from_result(result)
    return success_response(data.model_dump(), getattr(request.state, "request_id", None))


@router.get("/orders")
async def list_orders(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    team_id: int | None = Query(None),
) -> ApiResponse:
    result = await _orders.list_orders(db, user_id, team_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _orders.get_order(db, user_id, order_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.get("/audit/invariants")
async def audit_invariants(
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _audit.run(db)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))
