"""Domain models for mk_withdrawal: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.mk_common.enums import WithdrawalStatus


@dataclass
class WithdrawalRequest:
    id: str
    creator_id: str
    amount_cents: int            # gross, reserved from available
    platform_fee_cents: int
    net_amount_cents: int        # amount - fee, what the provider pays out
    currency: str
    status: str                  # WithdrawalStatus value
    provider_reference: str | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in (WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING)


@dataclass
class PayoutResult:
    payout_id: str


@dataclass
class StatusSummary:
    status: str
    count: int
    amount_cents: int
