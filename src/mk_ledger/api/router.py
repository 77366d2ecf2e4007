"""mk_ledger REST API: the caller's own balance and ledger history."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_common.database import get_db_session
from src.mk_common.response import ApiResponse, success_response
from src.mk_gateway.auth.dependencies import CurrentUser, get_current_user
from src.mk_ledger.application.schemas import CreatorBalanceResponse
from src.mk_ledger.application.service import BalanceProjector

router = APIRouter(tags=["ledger"])

_projector = BalanceProjector(currency=settings.DEFAULT_CURRENCY)


@router.get("/balance")
async def get_balance(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    balance = await _projector.get_creator_balance(db, current_user.id)
    return success_response(CreatorBalanceResponse.from_domain(balance).model_dump(), request)


@router.get("/ledger")
async def list_ledger(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: str | None = Query(None, description="Filter by LedgerEntryType"),
) -> ApiResponse:
    data = await _projector.list_ledger(db, current_user.id, cursor, limit, entry_type)
    return success_response(data.model_dump(mode="json"), request)
