"""Repository Protocol for campaign budget state."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_campaign.domain.models import (
    CampaignBudgetConfig,
    CampaignBudgetState,
    PacingSnapshot,
)


class CampaignBudgetRepositoryProtocol(Protocol):
    async def get_budget(
        self, db: AsyncSession, campaign_id: str
    ) -> CampaignBudgetState | None: ...

    async def upsert_budget(
        self, db: AsyncSession, config: CampaignBudgetConfig
    ) -> CampaignBudgetState | None: ...

    async def increment_spend(
        self, db: AsyncSession, campaign_id: str, amount: int
    ) -> CampaignBudgetState | None: ...

    async def list_pacing_enabled(self, db: AsyncSession) -> list[CampaignBudgetState]: ...

    async def list_active(self, db: AsyncSession) -> list[CampaignBudgetState]: ...

    async def save_pacing_snapshot(
        self, db: AsyncSession, campaign_id: str, snapshot: PacingSnapshot
    ) -> None: ...
