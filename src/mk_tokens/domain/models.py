"""Domain models for mk_tokens: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TokenWallet:
    user_id: str
    balance_tokens: int
    lifetime_purchased_tokens: int = 0
    lifetime_consumed_tokens: int = 0
    lifetime_granted_tokens: int = 0
    last_top_up_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TokenTransaction:
    id: str
    user_id: str
    type: str                    # TokenTransactionType value
    tokens: int                  # signed
    status: str                  # TokenTransactionStatus value
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class PurchaseResult:
    wallet: TokenWallet
    transaction: TokenTransaction
    credited: bool               # False on an idempotent replay
