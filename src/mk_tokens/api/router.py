"""mk_tokens REST API: the caller's token wallet."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.database import get_db_session
from src.mk_common.enums import TokenTransactionType
from src.mk_common.response import ApiResponse, success_response
from src.mk_gateway.auth.dependencies import CurrentUser, get_current_user
from src.mk_tokens.application.schemas import (
    ConsumeTokensRequest,
    ConsumeTokensResponse,
    CreatePurchaseRequest,
    TokenPackageItem,
    TokenTransactionItem,
)
from src.mk_tokens.application.service import build_token_service
from src.mk_tokens.domain.packages import TOKEN_PACKAGES

router = APIRouter(prefix="/tokens", tags=["tokens"])

_service = build_token_service()


@router.get("/wallet")
async def get_wallet(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_wallet_view(db, current_user.id)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    tx_type: TokenTransactionType | None = Query(None, alias="type"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    data = await _service.list_transactions(
        db, current_user.id, limit, offset, tx_type.value if tx_type else None
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("/packages")
async def list_packages(request: Request) -> ApiResponse:
    data = [TokenPackageItem.from_domain(p).model_dump() for p in TOKEN_PACKAGES.values()]
    return success_response(data, request)


@router.post("/consume")
async def consume_tokens(
    body: ConsumeTokensRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.consume_tokens(
        db, current_user.id, body.feature, body.amount, body.reference_id
    )
    data = ConsumeTokensResponse(
        transaction=TokenTransactionItem.from_domain(result.transaction),
        balance_tokens=result.wallet.balance_tokens,
        is_low=_service.is_low(result.wallet),
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/purchases", status_code=status.HTTP_201_CREATED)
async def create_purchase(
    body: CreatePurchaseRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    if body.package_id is not None:
        tx = await _service.create_package_purchase(
            db, current_user.id, body.package_id, body.reference_id
        )
    else:
        tx = await _service.create_pending_purchase(
            db, current_user.id, body.tokens, body.reference_id  # type: ignore[arg-type]
        )
    return success_response(TokenTransactionItem.from_domain(tx).model_dump(mode="json"), request)
