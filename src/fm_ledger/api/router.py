"""fm_ledger REST endpoints.

GET /teams/{team_id}/ledger — chronological valuation history
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.dependencies import get_current_user_id
from src.fm_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/teams", tags=["ledger"])

_service = LedgerApplicationService()


@router.get("/{team_id}/ledger")
async def get_team_history(
    team_id: int,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    since: datetime | None = Query(None, description="Inclusive lower bound (ISO8601)"),
    until: datetime | None = Query(None, description="Exclusive upper bound (ISO8601)"),
    limit: int | None = Query(None, ge=1, le=1000),
) -> ApiResponse:
    result = await _service.get_team_history(db, team_id, since, until, limit)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))
