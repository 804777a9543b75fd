"""fm_market REST endpoints.

GET   /teams                       — all teams with current price
GET   /teams/{team_id}             — single team
POST  /teams                       — launch a team (admin)
PATCH /teams/{team_id}/tradeable   — toggle trading (admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.dependencies import get_current_user_id, require_admin
from src.fm_market.application.schemas import CreateTeamRequest, SetTradeableRequest
from src.fm_market.application.service import TeamApplicationService

router = APIRouter(prefix="/teams", tags=["teams"])

_service = TeamApplicationService()


@router.get("")
async def list_teams(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.list_teams(db)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.get("/{team_id}")
async def get_team(
    team_id: int,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_team(db, team_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("")
async def create_team(
    body: CreateTeamRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_team(
        db, body.name, body.market_cap_cents, body.total_shares
    )
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.patch("/{team_id}/tradeable")
async def set_tradeable(
    team_id: int,
    body: SetTradeableRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.set_tradeable(db, team_id, body.is_tradeable)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))
