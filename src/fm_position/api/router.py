"""fm_position REST endpoints.

GET /portfolio — caller's positions with unrealized and realized P&L
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.dependencies import get_current_user_id
from src.fm_position.application.service import PortfolioService

router = APIRouter(prefix="/portfolio", tags=["portfolio"])

_service = PortfolioService()


@router.get("")
async def get_portfolio(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_portfolio(db, user_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))
