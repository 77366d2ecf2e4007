"""Pydantic schemas for mk_withdrawal API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.mk_common.cents import cents_to_display
from src.mk_common.enums import WithdrawalAction
from src.mk_ledger.application.schemas import CreatorBalanceResponse
from src.mk_withdrawal.domain.models import StatusSummary, WithdrawalRequest

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateWithdrawalRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Gross amount to withdraw in cents")


class AdminWithdrawalActionRequest(BaseModel):
    withdrawal_id: str = Field(..., min_length=1)
    action: WithdrawalAction
    provider_reference: str | None = Field(
        None, max_length=128, description="mark_paid: reference of a payout made outside the provider"
    )
    reason: str | None = Field(None, max_length=500, description="fail: why the payout failed")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WithdrawalItem(BaseModel):
    id: str
    creator_id: str
    amount_cents: int
    amount_display: str
    platform_fee_cents: int
    net_amount_cents: int
    currency: str
    status: str
    provider_reference: str | None
    failure_reason: str | None
    created_at: datetime | None
    processed_at: datetime | None

    @classmethod
    def from_domain(cls, w: WithdrawalRequest) -> "WithdrawalItem":
        return cls(
            id=w.id,
            creator_id=w.creator_id,
            amount_cents=w.amount_cents,
            amount_display=cents_to_display(w.amount_cents, w.currency),
            platform_fee_cents=w.platform_fee_cents,
            net_amount_cents=w.net_amount_cents,
            currency=w.currency,
            status=w.status,
            provider_reference=w.provider_reference,
            failure_reason=w.failure_reason,
            created_at=w.created_at,
            processed_at=w.processed_at,
        )


class WithdrawalCreatedResponse(BaseModel):
    withdrawal: WithdrawalItem
    new_available_cents: int
    new_pending_cents: int


class WithdrawalCancelledResponse(BaseModel):
    withdrawal: WithdrawalItem
    new_available_cents: int


class WithdrawalListResponse(BaseModel):
    balance: CreatorBalanceResponse
    items: list[WithdrawalItem]
    total: int
    limit: int
    offset: int


class StatusSummaryItem(BaseModel):
    status: str
    count: int
    amount_cents: int

    @classmethod
    def from_domain(cls, s: StatusSummary) -> "StatusSummaryItem":
        return cls(status=s.status, count=s.count, amount_cents=s.amount_cents)


class AdminWithdrawalListResponse(BaseModel):
    items: list[WithdrawalItem]
    total: int
    limit: int
    offset: int
    summary: list[StatusSummaryItem]
