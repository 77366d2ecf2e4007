"""PacingService: on-demand pacing reads and the recurring recalculation cycle.

Pacing is advisory. Nothing here writes spend; the cycle only persists the
last snapshot columns so dashboards can list campaigns without recomputing.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_campaign.domain.models import PacingSnapshot
from src.mk_campaign.domain.repository import CampaignBudgetRepositoryProtocol
from src.mk_campaign.infrastructure.persistence import CampaignBudgetRepository
from src.mk_common.database import transaction
from src.mk_common.datetime_utils import utc_now
from src.mk_common.errors import CampaignNotFoundError
from src.mk_pacing.application.schemas import PacingJobResponse
from src.mk_pacing.domain.pacing import (
    PacingStatus,
    PacingThresholds,
    compute_pacing,
    thresholds_for,
)

logger = logging.getLogger(__name__)


class PacingService:
    def __init__(
        self,
        repo: CampaignBudgetRepositoryProtocol | None = None,
        thresholds: dict[str, PacingThresholds] | None = None,
    ) -> None:
        self._repo: CampaignBudgetRepositoryProtocol = repo or CampaignBudgetRepository()
        self._thresholds = thresholds

    def _thresholds_for(self, pacing_mode: str) -> PacingThresholds:
        if self._thresholds and pacing_mode in self._thresholds:
            return self._thresholds[pacing_mode]
        return thresholds_for(pacing_mode)

    async def get_campaign_pacing(
        self, db: AsyncSession, campaign_id: str, now: datetime | None = None
    ) -> PacingStatus:
        budget = await self._repo.get_budget(db, campaign_id)
        if budget is None:
            raise CampaignNotFoundError(campaign_id)
        return compute_pacing(budget, now or utc_now(), self._thresholds_for(budget.pacing_mode))

    async def recalculate_all(
        self, db: AsyncSession, now: datetime | None = None
    ) -> PacingJobResponse:
        now = now or utc_now()
        over: list[str] = []
        under: list[str] = []
        async with transaction(db):
            campaigns = await self._repo.list_pacing_enabled(db)
            for budget in campaigns:
                status = compute_pacing(budget, now, self._thresholds_for(budget.pacing_mode))
                await self._repo.save_pacing_snapshot(
                    db,
                    budget.campaign_id,
                    PacingSnapshot(
                        delivery_progress_percent=round(status.delivery_progress_percent, 2),
                        is_over_delivering=status.is_over_delivering,
                        is_under_delivering=status.is_under_delivering,
                        computed_at=now,
                    ),
                )
                if status.is_over_delivering:
                    over.append(budget.campaign_id)
                elif status.is_under_delivering:
                    under.append(budget.campaign_id)

        logger.info(
            "Pacing recalculated: campaigns=%d over=%d under=%d",
            len(campaigns), len(over), len(under),
        )
        return PacingJobResponse(
            campaigns_processed=len(campaigns),
            over_delivering=over,
            under_delivering=under,
        )
