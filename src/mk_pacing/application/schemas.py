"""Pydantic schemas for pacing output."""

from datetime import datetime

from pydantic import BaseModel

from src.mk_pacing.domain.pacing import PacingStatus


class PacingResponse(BaseModel):
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

    @classmethod
    def from_domain(cls, s: PacingStatus) -> "PacingResponse":
        return cls(
            campaign_id=s.campaign_id,
            pacing_enabled=s.pacing_enabled,
            pacing_mode=s.pacing_mode,
            total_budget_cents=s.total_budget_cents,
            spent_budget_cents=s.spent_budget_cents,
            daily_budget_cents=s.daily_budget_cents,
            campaign_duration_hours=round(s.campaign_duration_hours, 2),
            hours_elapsed=round(s.hours_elapsed, 2),
            hours_remaining=round(s.hours_remaining, 2),
            target_spend_per_hour_cents=s.target_spend_per_hour_cents,
            actual_spend_per_hour_cents=s.actual_spend_per_hour_cents,
            delivery_progress_percent=round(s.delivery_progress_percent, 2),
            target_progress_percent=round(s.target_progress_percent, 2),
            variance_percent=round(s.variance_percent, 2),
            is_over_delivering=s.is_over_delivering,
            is_under_delivering=s.is_under_delivering,
            predicted_exhaustion_at=s.predicted_exhaustion_at,
            recommended_action=s.recommended_action,
        )


class PacingJobResponse(BaseModel):
    campaigns_processed: int
    over_delivering: list[str]
    under_delivering: list[str]
