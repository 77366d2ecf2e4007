"""Domain models for mk_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    account_id: str
    account_type: str                # AccountType value
    entry_type: str                  # LedgerEntryType value
    amount: int                      # signed; cents or tokens depending on unit
    balance_after: int               # account balance snapshot after this entry
    unit: str                        # currency code or "TOKENS"
    related_campaign_id: str | None = None
    related_withdrawal_id: str | None = None
    reference_id: str | None = None  # external event / purchase reference
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class LedgerRefs:
    """Optional cross-references attached to an appended entry."""

    related_campaign_id: str | None = None
    related_withdrawal_id: str | None = None
    reference_id: str | None = None
    description: str | None = None


@dataclass
class CreatorBalance:
    creator_id: str
    available_cents: int
    pending_cents: int               # reserved for an in-flight withdrawal
    total_earned_cents: int
    currency: str
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_cents(self) -> int:
        return self.available_cents + self.pending_cents


@dataclass
class ProjectedBalance:
    account_id: str
    account_type: str
    balance: int
    unit: str


@dataclass
class EarningResult:
    creator_balance: CreatorBalance
    campaign_spent_cents: int
    earning_entry_id: int
    spend_entry_id: int
