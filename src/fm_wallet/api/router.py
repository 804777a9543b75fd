"""fm_wallet REST endpoints.

GET  /wallet                                      — caller's balance
GET  /wallet/transactions                         — caller's wallet history (cursor paginated)
POST /wallet/deposit                              — credit a user's wallet (admin)
POST /wallet/credit-loan                          — extend platform credit to a user (admin)
POST /wallet/credit-loan/{transaction_id}/reverse — claw back a credit loan (admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.dependencies import get_current_user_id, require_admin
from src.fm_wallet.application.schemas import CreditWalletRequest
from src.fm_wallet.application.service import WalletApplicationService

router = APIRouter(prefix="/wallet", tags=["wallet"])

_service = WalletApplicationService()


@router.get("")
async def get_balance(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_balance(db, user_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.get("/transactions")
async def list_transactions(
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    tx_type: str | None = Query(None, description="Filter by WalletTransactionType"),
) -> ApiResponse:
    result = await _service.list_transactions(db, user_id, cursor, limit, tx_type)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("/deposit")
async def deposit(
    body: CreditWalletRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.deposit(db, body.user_id, body.amount_cents, body.reference)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("/credit-loan")
async def credit_loan(
    body: CreditWalletRequest,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.credit_loan(db, body.user_id, body.amount_cents, body.reference)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))


@router.post("/credit-loan/{transaction_id}/reverse")
async def reverse_credit_loan(
    transaction_id: int,
    request: Request,
    admin_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.reverse_credit_loan(db, transaction_id)
    return success_response(result.model_dump(), getattr(request.state, "request_id", None))
