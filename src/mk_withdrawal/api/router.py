"""mk_withdrawal REST API: creator-facing withdrawal endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.database import get_db_session
from src.mk_common.enums import WithdrawalStatus
from src.mk_common.response import ApiResponse, success_response
from src.mk_gateway.auth.dependencies import CurrentUser, get_current_user
from src.mk_withdrawal.application.schemas import (
    CreateWithdrawalRequest,
    WithdrawalCancelledResponse,
    WithdrawalCreatedResponse,
    WithdrawalItem,
)
from src.mk_withdrawal.application.service import build_withdrawal_service

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])

_service = build_withdrawal_service()


@router.get("")
async def list_withdrawals(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status_filter: WithdrawalStatus | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    data = await _service.list_withdrawals(
        db,
        current_user.id,
        status_filter.value if status_filter else None,
        limit,
        offset,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def request_withdrawal(
    body: CreateWithdrawalRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.request_withdrawal(db, current_user.id, body.amount_cents)
    data = WithdrawalCreatedResponse(
        withdrawal=WithdrawalItem.from_domain(result.withdrawal),
        new_available_cents=result.balance.available_cents,
        new_pending_cents=result.balance.pending_cents,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.delete("")
async def cancel_withdrawal(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    withdrawal_id: str = Query(..., alias="id", min_length=1),
) -> ApiResponse:
    result = await _service.cancel_withdrawal(db, withdrawal_id, current_user.id)
    data = WithdrawalCancelledResponse(
        withdrawal=WithdrawalItem.from_domain(result.withdrawal),
        new_available_cents=result.balance.available_cents,
    )
    return success_response(data.model_dump(mode="json"), request)
