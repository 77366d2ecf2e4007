"""Admin REST API. Every route requires the ADMIN role."""

from typing import Annotated

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_admin.application.service import AdminService
from src.mk_campaign.application.schemas import BudgetSyncRequest
from src.mk_campaign.application.service import CampaignBudgetService
from src.mk_common.database import get_db_session
from src.mk_common.enums import WithdrawalStatus
from src.mk_common.redis_client import get_redis
from src.mk_common.response import ApiResponse, success_response
from src.mk_gateway.auth.dependencies import CurrentUser, require_admin
from src.mk_ledger.application.schemas import (
    AdjustmentRequest,
    EarningResponse,
    RecordEarningRequest,
)
from src.mk_ledger.application.service import BalanceProjector
from src.mk_pacing.application.service import PacingService
from src.mk_risk.application.financials_service import build_financials_service
from src.mk_tokens.application.schemas import (
    CancelPurchaseRequest,
    ConfirmPurchaseRequest,
    GrantTokensRequest,
    PurchaseConfirmationResponse,
    TokenTransactionItem,
    TokenWalletResponse,
)
from src.mk_tokens.application.service import build_token_service
from src.mk_withdrawal.application.schemas import AdminWithdrawalActionRequest
from src.mk_withdrawal.application.service import build_withdrawal_service

router = APIRouter(prefix="/admin", tags=["admin"])

_withdrawals = build_withdrawal_service()
_projector = BalanceProjector(currency=settings.DEFAULT_CURRENCY)
_campaigns = CampaignBudgetService(currency=settings.DEFAULT_CURRENCY)
_tokens = build_token_service()
_service = AdminService(
    withdrawals=_withdrawals,
    pacing=PacingService(),
    financials=build_financials_service(),
    job_lock_ttl_seconds=settings.JOB_LOCK_TTL_SECONDS,
)


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@router.get("/withdrawals")
async def list_withdrawals(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status_filter: WithdrawalStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    data = await _withdrawals.admin_overview(
        db, status_filter.value if status_filter else None, limit, offset
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/withdrawals")
async def withdrawal_action(
    body: AdminWithdrawalActionRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    item = await _service.apply_withdrawal_action(db, body, admin.id)
    return success_response(item.model_dump(mode="json"), request)


# ---------------------------------------------------------------------------
# Campaign budgets and earnings
# ---------------------------------------------------------------------------


@router.put("/campaigns/{campaign_id}/budget")
async def sync_budget(
    campaign_id: str,
    body: BudgetSyncRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _campaigns.sync_budget(db, campaign_id, body)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/earnings")
async def record_earning(
    body: RecordEarningRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _projector.record_earning(
        db, body.creator_id, body.campaign_id, body.amount_cents, body.event_id
    )
    data = EarningResponse(
        creator_id=body.creator_id,
        campaign_id=body.campaign_id,
        amount_cents=body.amount_cents,
        available_cents=result.creator_balance.available_cents,
        campaign_spent_cents=result.campaign_spent_cents,
        earning_entry_id=result.earning_entry_id,
    )
    return success_response(data.model_dump(), request)


@router.post("/creators/{creator_id}/adjustments")
async def adjust_balance(
    creator_id: str,
    body: AdjustmentRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    new_available = await _projector.adjust(
        db, creator_id, body.amount_cents, body.description, admin.id
    )
    return success_response(
        {"creator_id": creator_id, "amount_cents": body.amount_cents, "available_cents": new_available},
        request,
    )


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@router.post("/jobs/pacing")
async def run_pacing_job(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    redis: Annotated[aioredis.Redis, Depends(get_redis)],
    request: Request,
) -> ApiResponse:
    data = await _service.run_pacing_job(db, redis)
    return success_response(data.model_dump(), request)


@router.post("/jobs/campaign-health")
async def run_health_job(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    redis: Annotated[aioredis.Redis, Depends(get_redis)],
    request: Request,
) -> ApiResponse:
    data = await _service.run_health_job(db, redis)
    return success_response(data.model_dump(), request)


@router.get("/reconciliation")
async def reconciliation_report(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    redis: Annotated[aioredis.Redis, Depends(get_redis)],
    request: Request,
) -> ApiResponse:
    data = await _service.run_reconciliation(db, redis)
    return success_response(data, request)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@router.post("/tokens/purchases/{reference_id}/confirm")
async def confirm_purchase(
    reference_id: str,
    body: ConfirmPurchaseRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _tokens.confirm_purchase(db, body.user_id, reference_id, body.tokens)
    data = PurchaseConfirmationResponse(
        transaction=TokenTransactionItem.from_domain(result.transaction),
        balance_tokens=result.wallet.balance_tokens,
        credited=result.credited,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/tokens/purchases/{reference_id}/cancel")
async def cancel_purchase(
    reference_id: str,
    body: CancelPurchaseRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    tx = await _tokens.cancel_pending_purchase(db, body.user_id, reference_id)
    return success_response(TokenTransactionItem.from_domain(tx).model_dump(mode="json"), request)


@router.post("/tokens/grants")
async def grant_tokens(
    body: GrantTokensRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    wallet = await _tokens.add_tokens(
        db, body.user_id, body.amount, body.reason,
        description=body.description or f"{body.reason} by {admin.id}",
    )
    data = TokenWalletResponse.from_domain(wallet, settings.LOW_TOKEN_THRESHOLD)
    return success_response(data.model_dump(mode="json"), request)
