"""Domain models for mk_campaign: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.mk_common.enums import PacingMode


@dataclass
class CampaignBudgetState:
    campaign_id: str
    advertiser_id: str
    total_budget_cents: int
    spent_budget_cents: int
    campaign_start_date: datetime
    campaign_end_date: datetime | None = None
    daily_budget_cents: int | None = None
    pacing_enabled: bool = True
    pacing_mode: str = PacingMode.EVEN.value
    target_spend_per_hour_cents: int | None = None
    status: str = "ACTIVE"
    currency: str = "EUR"
    # Last pacing snapshot, written by the pacing recalculation job
    delivery_progress_percent: float | None = None
    is_over_delivering: bool = False
    is_under_delivering: bool = False
    last_pacing_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def remaining_budget_cents(self) -> int:
        return self.total_budget_cents - self.spent_budget_cents


@dataclass
class CampaignBudgetConfig:
    """Budget configuration pushed by the campaign CRUD service."""

    campaign_id: str
    advertiser_id: str
    total_budget_cents: int
    campaign_start_date: datetime
    campaign_end_date: datetime | None = None
    daily_budget_cents: int | None = None
    pacing_enabled: bool = True
    pacing_mode: str = PacingMode.EVEN.value
    target_spend_per_hour_cents: int | None = None
    status: str = "ACTIVE"
    currency: str = "EUR"


@dataclass
class PacingSnapshot:
    delivery_progress_percent: float
    is_over_delivering: bool
    is_under_delivering: bool
    computed_at: datetime
