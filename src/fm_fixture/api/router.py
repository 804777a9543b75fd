"""fm_fixture REST endpoints.

GET   /fixtures                          — list (filter by team / status)
GET   /fixtures/buy-window/{team_id}     — is the team's buy window open
GET   /fixtures/{fixture_id}             — single fixture
POST  /fixtures                          — schedule (admin)
POST  /fixtures/{fixture_id}/close       — close and snapshot caps (admin)
POST  /fixtures/{fixture_id}/result      — record the final score (admin)
POST  /fixtures/{fixture_id}/postpone    — postpone (admin)
POST  /fixtures/{fixture_id}/reschedule  — new kickoff for a postponed fixture (admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_fixture.application.schemas import (
    CreateFixtureRequest,
    RecordResultRequest,
    RescheduleFixtureRequest,
)
from src.fm_fixture.application.service import FixtureApplicationService
from src.fm_gateway.dependencies import get_current_user_id, require_admin

router = APIRouter(prefix="/fixtures", tags=["fixtures"])

_service = FixtureApplicationService()


@router.get("")
async def list_fixtures(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    team_id: int | None = Query(None, description="Home or away team"),
    status: str | None = Query(None, description="Filter by FixtureStatus"),
) -> ApiResponse:
    result = await _service.list_fixtures(db, team_id, status)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.get("/buy-window/{team_id}")
async def get_buy_window(
    team_id: int,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_buy_window(db, team_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.get("/{fixture_id}")
async def get_fixture(
    fixture_id: int,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_fixture(db, fixture_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("")
async def create_fixture(
    body: CreateFixtureRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_fixture(
        db, body.home_team_id, body.away_team_id, body.kickoff_at
    )
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("/{fixture_id}/close")
async def close_fixture(
    fixture_id: int,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.close_fixture(db, fixture_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("/{fixture_id}/result")
async def record_result(
    fixture_id: int,
    body: RecordResultRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.record_result(db, fixture_id, body.home_score, body.away_score)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("/{fixture_id}/postpone")
async def postpone_fixture(
    fixture_id: int,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.postpone_fixture(db, fixture_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("/{fixture_id}/reschedule")
async def reschedule_fixture(
    fixture_id: int,
    body: RescheduleFixtureRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.reschedule_fixture(db, fixture_id, body.kickoff_at)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))
