"""Repository Protocol for read-only risk inputs."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_risk.domain.models import DailySpend, PayoutQueueTotals, TrafficTotals


class RiskSignalRepositoryProtocol(Protocol):
    async def traffic_totals(
        self, db: AsyncSession, campaign_id: str, since: datetime
    ) -> TrafficTotals: ...

    async def payout_queue_totals(self, db: AsyncSession, campaign_id: str) -> PayoutQueueTotals: ...

    async def daily_spend(
        self, db: AsyncSession, campaign_id: str, since: datetime
    ) -> list[DailySpend]:
        """Days with CAMPAIGN_SPEND entries, oldest first. Days without spend are omitted."""
        ...
