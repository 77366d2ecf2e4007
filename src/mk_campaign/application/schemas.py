"""Pydantic schemas for mk_campaign budget sync."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from src.mk_campaign.domain.models import CampaignBudgetConfig, CampaignBudgetState
from src.mk_common.cents import cents_to_display
from src.mk_common.enums import PacingMode


class BudgetSyncRequest(BaseModel):
    """Budget configuration pushed by campaign CRUD whenever a campaign changes."""

    advertiser_id: str = Field(..., min_length=1)
    total_budget_cents: int = Field(..., ge=0)
    daily_budget_cents: int | None = Field(None, gt=0)
    campaign_start_date: datetime
    campaign_end_date: datetime | None = None
    pacing_enabled: bool = True
    pacing_mode: PacingMode = PacingMode.EVEN
    target_spend_per_hour_cents: int | None = Field(None, gt=0)
    status: str = Field("ACTIVE", pattern="^(DRAFT|ACTIVE|PAUSED|COMPLETED|CANCELLED)$")

    @model_validator(mode="after")
    def _end_after_start(self) -> "BudgetSyncRequest":
        if self.campaign_end_date is not None and self.campaign_end_date <= self.campaign_start_date:
            raise ValueError("campaign_end_date must be after campaign_start_date")
        return self

    def to_config(self, campaign_id: str, currency: str) -> CampaignBudgetConfig:
        return CampaignBudgetConfig(
            campaign_id=campaign_id,
            advertiser_id=self.advertiser_id,
            total_budget_cents=self.total_budget_cents,
            campaign_start_date=self.campaign_start_date,
            campaign_end_date=self.campaign_end_date,
            daily_budget_cents=self.daily_budget_cents,
            pacing_enabled=self.pacing_enabled,
            pacing_mode=self.pacing_mode.value,
            target_spend_per_hour_cents=self.target_spend_per_hour_cents,
            status=self.status,
            currency=currency,
        )


class CampaignBudgetResponse(BaseModel):
    campaign_id: str
    advertiser_id: str
    status: str
    currency: str
    total_budget_cents: int
    spent_budget_cents: int
    remaining_budget_cents: int
    remaining_display: str
    daily_budget_cents: int | None
    pacing_enabled: bool
    pacing_mode: str
    campaign_start_date: datetime
    campaign_end_date: datetime | None

    @classmethod
    def from_domain(cls, b: CampaignBudgetState) -> "CampaignBudgetResponse":
        return cls(
            campaign_id=b.campaign_id,
            advertiser_id=b.advertiser_id,
            status=b.status,
            currency=b.currency,
            total_budget_cents=b.total_budget_cents,
            spent_budget_cents=b.spent_budget_cents,
            remaining_budget_cents=b.remaining_budget_cents,
            remaining_display=cents_to_display(b.remaining_budget_cents, b.currency),
            daily_budget_cents=b.daily_budget_cents,
            pacing_enabled=b.pacing_enabled,
            pacing_mode=b.pacing_mode,
            campaign_start_date=b.campaign_start_date,
            campaign_end_date=b.campaign_end_date,
        )
