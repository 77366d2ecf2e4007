"""Pydantic schemas for campaign financials and health alerts."""

from datetime import date

from pydantic import BaseModel


class DailySpendItem(BaseModel):
    day: date
    spend_cents: int


class CampaignFinancialsResponse(BaseModel):
    campaign_id: str
    campaign_status: str
    currency: str

    total_budget_cents: int
    spent_budget_cents: int
    pending_payouts_cents: int
    reserved_cents: int
    remaining_budget_cents: int

    total_views: int
    validated_views: int
    validation_rate: float
    fraud_block_rate: float
    flagged_creators_percent: float
    reserve_exposure_percent: float
    has_traffic_spike: bool

    confidence_score: int
    confidence_badge: str

    window_days: int
    daily_spend: list[DailySpendItem]


class CampaignAlert(BaseModel):
    campaign_id: str
    alert_type: str        # LOW_CONFIDENCE | HIGH_RISK_CREATORS
    priority: str          # P1_HIGH | P2_NORMAL
    message: str


class HealthJobResponse(BaseModel):
    campaigns_checked: int
    alerts: list[CampaignAlert]
