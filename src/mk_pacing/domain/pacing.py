"""Campaign budget pacing: pure computation, no I/O.

Delivery is compared against elapsed time:

    variance = delivery_progress% - target_progress%

A positive variance means the campaign is spending faster than its schedule.
Thresholds decide when that counts as over/under delivery and are chosen per
pacing mode.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from src.mk_campaign.domain.models import CampaignBudgetState
from src.mk_common.cents import percent_of
from src.mk_common.datetime_utils import HOUR, hours_between
from src.mk_common.enums import PacingMode, RecommendedAction

_LATEST = datetime.max.replace(tzinfo=UTC) - HOUR


@dataclass(frozen=True)
class PacingThresholds:
    over_delivery: float       # variance above this is over-delivery
    under_delivery: float      # variance below this is under-delivery
    maintain_band: float       # |variance| below this recommends MAINTAIN


DEFAULT_THRESHOLDS: dict[str, PacingThresholds] = {
    PacingMode.EVEN.value: PacingThresholds(20.0, -50.0, 10.0),
    PacingMode.ACCELERATED.value: PacingThresholds(35.0, -40.0, 10.0),
    PacingMode.CONSERVATIVE.value: PacingThresholds(10.0, -60.0, 5.0),
}


def thresholds_for(pacing_mode: str) -> PacingThresholds:
    return DEFAULT_THRESHOLDS.get(pacing_mode, DEFAULT_THRESHOLDS[PacingMode.EVEN.value])


@dataclass
class PacingStatus:
    campaign_id: str
    pacing_enabled: bool
    pacing_mode: str
    total_budget_cents: int
    spent_budget_cents: int
    daily_budget_cents: int | None
    campaign_duration_hours: float
    hours_elapsed: float
    hours_remaining: float
    target_spend_per_hour_cents: int
    actual_spend_per_hour_cents: int
    delivery_progress_percent: float
    target_progress_percent: float
    variance_percent: float
    is_over_delivering: bool
    is_under_delivering: bool
    predicted_exhaustion_at: datetime | None
    recommended_action: str


def compute_pacing(
    state: CampaignBudgetState,
    now: datetime,
    thresholds: PacingThresholds,
) -> PacingStatus:
    hours_elapsed = max(1.0, hours_between(state.campaign_start_date, now))
    if state.campaign_end_date is not None:
        duration_hours = hours_between(state.campaign_start_date, state.campaign_end_date)
    else:
        # Open-ended campaign: assume we are halfway through
        duration_hours = hours_elapsed * 2
    # end <= start would otherwise divide by zero
    duration_hours = max(1.0, duration_hours)
    hours_remaining = max(0.0, duration_hours - hours_elapsed)

    total = state.total_budget_cents
    spent = state.spent_budget_cents
    target_per_hour = state.target_spend_per_hour_cents or int(total // duration_hours)
    actual_per_hour = int(spent // hours_elapsed)

    delivery_progress = percent_of(spent, total)
    target_progress = hours_elapsed / duration_hours * 100
    variance = delivery_progress - target_progress

    over = variance > thresholds.over_delivery
    under = variance < thresholds.under_delivery

    predicted_exhaustion = None
    if actual_per_hour > 0 and spent < total:
        hours_until = (total - spent) / actual_per_hour
        # Beyond the representable calendar: report no prediction
        if hours_until < (_LATEST - now) / HOUR:
            predicted_exhaustion = now + HOUR * hours_until

    if under:
        action = RecommendedAction.BOOST
    elif over:
        action = RecommendedAction.REDUCE
    elif abs(variance) < thresholds.maintain_band:
        action = RecommendedAction.MAINTAIN
    else:
        action = RecommendedAction.NONE

    return PacingStatus(
        campaign_id=state.campaign_id,
        pacing_enabled=state.pacing_enabled,
        pacing_mode=state.pacing_mode,
        total_budget_cents=total,
        spent_budget_cents=spent,
        daily_budget_cents=state.daily_budget_cents,
        campaign_duration_hours=duration_hours,
        hours_elapsed=hours_elapsed,
        hours_remaining=hours_remaining,
        target_spend_per_hour_cents=target_per_hour,
        actual_spend_per_hour_cents=actual_per_hour,
        delivery_progress_percent=delivery_progress,
        target_progress_percent=target_progress,
        variance_percent=variance,
        is_over_delivering=over,
        is_under_delivering=under,
        predicted_exhaustion_at=predicted_exhaustion,
        recommended_action=action.value,
    )
