"""CampaignBudgetService: budget state sync and access checks for campaign views."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_campaign.application.schemas import BudgetSyncRequest, CampaignBudgetResponse
from src.mk_campaign.domain.models import CampaignBudgetState
from src.mk_campaign.domain.repository import CampaignBudgetRepositoryProtocol
from src.mk_campaign.infrastructure.persistence import CampaignBudgetRepository
from src.mk_common.database import transaction
from src.mk_common.errors import CampaignNotFoundError, ForbiddenError, InvalidBudgetError

logger = logging.getLogger(__name__)


class CampaignBudgetService:
    def __init__(
        self,
        repo: CampaignBudgetRepositoryProtocol | None = None,
        currency: str = "EUR",
    ) -> None:
        self._repo: CampaignBudgetRepositoryProtocol = repo or CampaignBudgetRepository()
        self._currency = currency

    async def sync_budget(
        self, db: AsyncSession, campaign_id: str, body: BudgetSyncRequest
    ) -> CampaignBudgetResponse:
        """Create or update the budget row. Spend is never touched here."""
        async with transaction(db):
            budget = await self._repo.upsert_budget(db, body.to_config(campaign_id, self._currency))
            if budget is None:
                current = await self._repo.get_budget(db, campaign_id)
                spent = current.spent_budget_cents if current else 0
                raise InvalidBudgetError(
                    f"total_budget_cents {body.total_budget_cents} is below "
                    f"already spent {spent} for campaign {campaign_id}"
                )
        logger.info(
            "Budget synced: campaign=%s total=%d pacing=%s/%s status=%s",
            campaign_id, budget.total_budget_cents,
            budget.pacing_enabled, budget.pacing_mode, budget.status,
        )
        return CampaignBudgetResponse.from_domain(budget)

    async def get_for_viewer(
        self, db: AsyncSession, campaign_id: str, viewer_id: str, is_admin: bool
    ) -> CampaignBudgetState:
        """Budget state, visible to the owning advertiser or an admin only."""
        budget = await self._repo.get_budget(db, campaign_id)
        if budget is None:
            raise CampaignNotFoundError(campaign_id)
        if not is_admin and budget.advertiser_id != viewer_id:
            raise ForbiddenError(f"Campaign {campaign_id} belongs to another advertiser")
        return budget
