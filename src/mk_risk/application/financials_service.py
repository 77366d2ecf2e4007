"""FinancialsService: campaign budget breakdown, confidence score and health alerts.

All reads run against committed state without locks. Alerts go through the
notification dispatcher and never block spend.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_campaign.domain.models import CampaignBudgetState
from src.mk_campaign.domain.repository import CampaignBudgetRepositoryProtocol
from src.mk_campaign.infrastructure.persistence import CampaignBudgetRepository
from src.mk_common.cents import holdback, percent_of
from src.mk_common.datetime_utils import utc_now
from src.mk_common.errors import CampaignNotFoundError
from src.mk_common.events import (
    DomainEvent,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    notify_safely,
)
from src.mk_risk.application.schemas import (
    CampaignAlert,
    CampaignFinancialsResponse,
    DailySpendItem,
    HealthJobResponse,
)
from src.mk_risk.domain.confidence import (
    ConfidenceSignals,
    calculate_confidence_score,
    detect_traffic_spike,
)
from src.mk_risk.domain.repository import RiskSignalRepositoryProtocol
from src.mk_risk.infrastructure.persistence import RiskSignalRepository

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_SCORE = 60
CRITICAL_CONFIDENCE_SCORE = 40
HIGH_RISK_FLAGGED_PERCENT = 20.0


class FinancialsService:
    def __init__(
        self,
        campaign_repo: CampaignBudgetRepositoryProtocol | None = None,
        signal_repo: RiskSignalRepositoryProtocol | None = None,
        notifier: NotificationDispatcher | None = None,
        window_days: int = 7,
        reserve_holdback_percent: int = 20,
        spike_floor_cents: int = 1000,
        spike_growth_ratio: float = 3,
    ) -> None:
        self._campaigns: CampaignBudgetRepositoryProtocol = campaign_repo or CampaignBudgetRepository()
        self._signals: RiskSignalRepositoryProtocol = signal_repo or RiskSignalRepository()
        self._notifier: NotificationDispatcher = notifier or LoggingNotificationDispatcher()
        self._window_days = window_days
        self._holdback_percent = reserve_holdback_percent
        self._spike_floor = spike_floor_cents
        self._spike_ratio = spike_growth_ratio

    async def get_campaign_financials(
        self, db: AsyncSession, campaign_id: str, now: datetime | None = None
    ) -> CampaignFinancialsResponse:
        budget = await self._campaigns.get_budget(db, campaign_id)
        if budget is None:
            raise CampaignNotFoundError(campaign_id)
        return await self._compute(db, budget, now or utc_now())

    async def check_campaign_health(
        self, db: AsyncSession, campaign_id: str, now: datetime | None = None
    ) -> list[CampaignAlert]:
        """Raise LOW_CONFIDENCE / HIGH_RISK_CREATORS alerts for an ACTIVE campaign."""
        budget = await self._campaigns.get_budget(db, campaign_id)
        if budget is None:
            raise CampaignNotFoundError(campaign_id)
        if budget.status != "ACTIVE":
            return []
        financials = await self._compute(db, budget, now or utc_now())

        alerts: list[CampaignAlert] = []
        if financials.confidence_score < LOW_CONFIDENCE_SCORE:
            alerts.append(
                CampaignAlert(
                    campaign_id=campaign_id,
                    alert_type="LOW_CONFIDENCE",
                    priority=(
                        "P1_HIGH"
                        if financials.confidence_score < CRITICAL_CONFIDENCE_SCORE
                        else "P2_NORMAL"
                    ),
                    message=(
                        f"Campaign {campaign_id} has a low confidence score of "
                        f"{financials.confidence_score}. Review campaign settings or creator selection."
                    ),
                )
            )
        if financials.flagged_creators_percent > HIGH_RISK_FLAGGED_PERCENT:
            alerts.append(
                CampaignAlert(
                    campaign_id=campaign_id,
                    alert_type="HIGH_RISK_CREATORS",
                    priority="P1_HIGH",
                    message=(
                        f"Campaign {campaign_id} has {financials.flagged_creators_percent:.1f}% "
                        "flagged creators. Consider restricting to low-risk creators."
                    ),
                )
            )

        for alert in alerts:
            await notify_safely(
                self._notifier,
                DomainEvent(
                    event_type=alert.alert_type,
                    subject_id=budget.advertiser_id,
                    payload=alert.model_dump(),
                ),
            )
        if alerts:
            logger.info(
                "Campaign health alerts: campaign=%s types=%s",
                campaign_id, [a.alert_type for a in alerts],
            )
        return alerts

    async def check_all_campaigns(
        self, db: AsyncSession, now: datetime | None = None
    ) -> HealthJobResponse:
        now = now or utc_now()
        campaigns = await self._campaigns.list_active(db)
        alerts: list[CampaignAlert] = []
        for budget in campaigns:
            alerts.extend(await self.check_campaign_health(db, budget.campaign_id, now))
        logger.info("Campaign health checked: campaigns=%d alerts=%d", len(campaigns), len(alerts))
        return HealthJobResponse(campaigns_checked=len(campaigns), alerts=alerts)

    async def _compute(
        self, db: AsyncSession, budget: CampaignBudgetState, now: datetime
    ) -> CampaignFinancialsResponse:
        since = now - timedelta(days=self._window_days)
        traffic = await self._signals.traffic_totals(db, budget.campaign_id, since)
        queue = await self._signals.payout_queue_totals(db, budget.campaign_id)
        spend_days = await self._signals.daily_spend(db, budget.campaign_id, since)

        reserved = holdback(queue.released_cents, self._holdback_percent)
        remaining = (
            budget.total_budget_cents - budget.spent_budget_cents - queue.pending_cents - reserved
        )

        validation_rate = percent_of(traffic.validated_views, traffic.total_views)
        fraud_block_rate = percent_of(
            traffic.total_views - traffic.validated_views, traffic.total_views
        )
        flagged_percent = percent_of(traffic.flagged_creators, traffic.creators_with_traffic)
        reserve_exposure = percent_of(reserved, budget.total_budget_cents)

        # Dense series over the window so a quiet day counts as zero spend
        by_day = {d.day: d.spend_cents for d in spend_days}
        today = now.date()
        series = [
            DailySpendItem(day=day, spend_cents=by_day.get(day, 0))
            for day in (today - timedelta(days=i) for i in range(self._window_days - 1, -1, -1))
        ]
        has_spike = detect_traffic_spike(
            [item.spend_cents for item in reversed(series)],
            self._spike_floor,
            self._spike_ratio,
        )

        confidence = calculate_confidence_score(
            ConfidenceSignals(
                validation_rate=validation_rate,
                flagged_creators_percent=flagged_percent,
                fraud_block_rate=fraud_block_rate,
                reserve_exposure_percent=reserve_exposure,
                has_traffic_spike=has_spike,
            )
        )

        return CampaignFinancialsResponse(
            campaign_id=budget.campaign_id,
            campaign_status=budget.status,
            currency=budget.currency,
            total_budget_cents=budget.total_budget_cents,
            spent_budget_cents=budget.spent_budget_cents,
            pending_payouts_cents=queue.pending_cents,
            reserved_cents=reserved,
            remaining_budget_cents=remaining,
            total_views=traffic.total_views,
            validated_views=traffic.validated_views,
            validation_rate=round(validation_rate, 2),
            fraud_block_rate=round(fraud_block_rate, 2),
            flagged_creators_percent=round(flagged_percent, 2),
            reserve_exposure_percent=round(reserve_exposure, 2),
            has_traffic_spike=has_spike,
            confidence_score=confidence.score,
            confidence_badge=confidence.badge,
            window_days=self._window_days,
            daily_spend=series,
        )


def build_financials_service() -> FinancialsService:
    return FinancialsService(
        window_days=settings.CONFIDENCE_WINDOW_DAYS,
        reserve_holdback_percent=settings.RESERVE_HOLDBACK_PERCENT,
        spike_floor_cents=settings.TRAFFIC_SPIKE_FLOOR_CENTS,
        spike_growth_ratio=settings.TRAFFIC_SPIKE_GROWTH_RATIO,
    )
