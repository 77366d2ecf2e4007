"""Pydantic schemas and cursor utilities for mk_ledger API."""

import base64
import json
from datetime import datetime

from pydantic import BaseModel, Field

from src.mk_common.cents import cents_to_display
from src.mk_ledger.domain.models import CreatorBalance, LedgerEntry

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RecordEarningRequest(BaseModel):
    creator_id: str = Field(..., min_length=1)
    campaign_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, description="Payout for one validated event")
    event_id: str = Field(..., min_length=1, description="Validated view/conversion event id")


class AdjustmentRequest(BaseModel):
    amount_cents: int = Field(..., description="Signed: positive credits, negative debits")
    description: str = Field(..., min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CreatorBalanceResponse(BaseModel):
    creator_id: str
    currency: str
    available_cents: int
    available_display: str
    pending_cents: int
    pending_display: str
    total_earned_cents: int
    total_earned_display: str

    @classmethod
    def from_domain(cls, balance: CreatorBalance) -> "CreatorBalanceResponse":
        cur = balance.currency
        return cls(
            creator_id=balance.creator_id,
            currency=cur,
            available_cents=balance.available_cents,
            available_display=cents_to_display(balance.available_cents, cur),
            pending_cents=balance.pending_cents,
            pending_display=cents_to_display(balance.pending_cents, cur),
            total_earned_cents=balance.total_earned_cents,
            total_earned_display=cents_to_display(balance.total_earned_cents, cur),
        )


class EarningResponse(BaseModel):
    creator_id: str
    campaign_id: str
    amount_cents: int
    available_cents: int
    campaign_spent_cents: int
    earning_entry_id: int


class LedgerEntryItem(BaseModel):
    id: int
    account_type: str
    entry_type: str
    amount: int
    balance_after: int
    unit: str
    related_campaign_id: str | None
    related_withdrawal_id: str | None
    reference_id: str | None
    description: str | None
    created_at: datetime | None

    @classmethod
    def from_domain(cls, entry: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            account_type=entry.account_type,
            entry_type=entry.entry_type,
            amount=entry.amount,
            balance_after=entry.balance_after,
            unit=entry.unit,
            related_campaign_id=entry.related_campaign_id,
            related_withdrawal_id=entry.related_withdrawal_id,
            reference_id=entry.reference_id,
            description=entry.description,
            created_at=entry.created_at,
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
