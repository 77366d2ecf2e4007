"""mk_campaign REST API: pacing and financial views for the owning advertiser."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_campaign.application.service import CampaignBudgetService
from src.mk_common.database import get_db_session
from src.mk_common.response import ApiResponse, success_response
from src.mk_gateway.auth.dependencies import CurrentUser, get_current_user
from src.mk_pacing.application.schemas import PacingResponse
from src.mk_pacing.application.service import PacingService
from src.mk_risk.application.financials_service import build_financials_service

router = APIRouter(prefix="/campaigns", tags=["campaigns"])

_campaigns = CampaignBudgetService(currency=settings.DEFAULT_CURRENCY)
_pacing = PacingService()
_financials = build_financials_service()


@router.get("/{campaign_id}/pacing")
async def get_pacing(
    campaign_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _campaigns.get_for_viewer(db, campaign_id, current_user.id, current_user.is_admin)
    status = await _pacing.get_campaign_pacing(db, campaign_id)
    return success_response(PacingResponse.from_domain(status).model_dump(mode="json"), request)


@router.get("/{campaign_id}/financials")
async def get_financials(
    campaign_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _campaigns.get_for_viewer(db, campaign_id, current_user.id, current_user.is_admin)
    data = await _financials.get_campaign_financials(db, campaign_id)
    return success_response(data.model_dump(mode="json"), request)
