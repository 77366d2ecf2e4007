"""RiskSignalRepository: aggregate queries over fraud-signal and spend tables."""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_risk.domain.models import DailySpend, PayoutQueueTotals, TrafficTotals

_TRAFFIC_TOTALS_SQL = text("""
    SELECT COALESCE(SUM(total_views), 0)           AS total_views,
           COALESCE(SUM(validated_views), 0)       AS validated_views,
           COALESCE(SUM(creators_with_traffic), 0) AS creators_with_traffic,
           COALESCE(SUM(flagged_creators), 0)      AS flagged_creators
    FROM campaign_traffic_daily
    WHERE campaign_id = :campaign_id AND day >= :since_day
""")

_PAYOUT_QUEUE_TOTALS_SQL = text("""
    SELECT COALESCE(SUM(amount_cents) FILTER (WHERE status = 'PENDING'), 0)  AS pending_cents,
           COALESCE(SUM(amount_cents) FILTER (WHERE status = 'RELEASED'), 0) AS released_cents,
           COALESCE(SUM(amount_cents) FILTER (WHERE status = 'REVERSED'), 0) AS reversed_cents
    FROM payout_queue
    WHERE campaign_id = :campaign_id
""")

_DAILY_SPEND_SQL = text("""
    SELECT CAST(created_at AT TIME ZONE 'UTC' AS DATE) AS day,
           SUM(amount) AS spend_cents
    FROM ledger_entries
    WHERE account_type = 'CAMPAIGN_BUDGET'
      AND entry_type = 'CAMPAIGN_SPEND'
      AND account_id = :campaign_id
      AND created_at >= :since
    GROUP BY day
    ORDER BY day
""")


class RiskSignalRepository:
    async def traffic_totals(
        self, db: AsyncSession, campaign_id: str, since: datetime
    ) -> TrafficTotals:
        row = (
            await db.execute(
                _TRAFFIC_TOTALS_SQL, {"campaign_id": campaign_id, "since_day": since.date()}
            )
        ).fetchone()
        if row is None:
            return TrafficTotals()
        return TrafficTotals(
            total_views=int(row.total_views),
            validated_views=int(row.validated_views),
            creators_with_traffic=int(row.creators_with_traffic),
            flagged_creators=int(row.flagged_creators),
        )

    async def payout_queue_totals(self, db: AsyncSession, campaign_id: str) -> PayoutQueueTotals:
        row = (await db.execute(_PAYOUT_QUEUE_TOTALS_SQL, {"campaign_id": campaign_id})).fetchone()
        if row is None:
            return PayoutQueueTotals()
        return PayoutQueueTotals(
            pending_cents=int(row.pending_cents),
            released_cents=int(row.released_cents),
            reversed_cents=int(row.reversed_cents),
        )

    async def daily_spend(
        self, db: AsyncSession, campaign_id: str, since: datetime
    ) -> list[DailySpend]:
        result = await db.execute(_DAILY_SPEND_SQL, {"campaign_id": campaign_id, "since": since})
        return [DailySpend(day=r.day, spend_cents=int(r.spend_cents)) for r in result.fetchall()]
