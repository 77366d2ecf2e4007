"""Global enums, must match DB CHECK constraints exactly."""

from enum import Enum


class AccountType(str, Enum):
    CREATOR_BALANCE = "CREATOR_BALANCE"
    CREATOR_PENDING = "CREATOR_PENDING"   # funds reserved for an in-flight withdrawal
    TOKEN_WALLET = "TOKEN_WALLET"
    CAMPAIGN_BUDGET = "CAMPAIGN_BUDGET"   # sums to spent_budget_cents


class LedgerEntryType(str, Enum):
    # Earnings (creator + campaign paired)
    EARNING = "EARNING"
    CAMPAIGN_SPEND = "CAMPAIGN_SPEND"
    # Withdrawal (available + pending paired)
    WITHDRAWAL_HOLD = "WITHDRAWAL_HOLD"
    WITHDRAWAL_RELEASE = "WITHDRAWAL_RELEASE"
    WITHDRAWAL_PAYOUT = "WITHDRAWAL_PAYOUT"
    PLATFORM_FEE = "PLATFORM_FEE"
    # Manual
    ADJUSTMENT = "ADJUSTMENT"
    # Token wallet
    FREE_GRANT = "FREE_GRANT"
    PURCHASE = "PURCHASE"
    BONUS = "BONUS"
    REFUND = "REFUND"
    CONSUMPTION = "CONSUMPTION"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class WithdrawalAction(str, Enum):
    APPROVE = "approve"
    MARK_PAID = "mark_paid"
    CANCEL = "cancel"
    FAIL = "fail"


class TokenTransactionType(str, Enum):
    FREE_GRANT = "FREE_GRANT"
    PURCHASE = "PURCHASE"
    PURCHASE_PENDING = "PURCHASE_PENDING"
    BONUS = "BONUS"
    REFUND = "REFUND"
    CONSUMPTION = "CONSUMPTION"


class TokenTransactionStatus(str, Enum):
    SETTLED = "SETTLED"       # counted in balance_tokens
    PENDING = "PENDING"       # purchase awaiting payment confirmation
    CANCELLED = "CANCELLED"   # pending purchase that never credited


class PacingMode(str, Enum):
    EVEN = "EVEN"
    ACCELERATED = "ACCELERATED"
    CONSERVATIVE = "CONSERVATIVE"


class RecommendedAction(str, Enum):
    BOOST = "BOOST"
    REDUCE = "REDUCE"
    MAINTAIN = "MAINTAIN"
    NONE = "NONE"


class ConfidenceBadge(str, Enum):
    HEALTHY = "HEALTHY"
    MONITOR = "MONITOR"
    RISK = "RISK"


class PayoutQueueStatus(str, Enum):
    PENDING = "PENDING"
    RELEASED = "RELEASED"
    REVERSED = "REVERSED"


class UserRole(str, Enum):
    CREATOR = "CREATOR"
    ADVERTISER = "ADVERTISER"
    ADMIN = "ADMIN"


def value_of(member: "str | Enum") -> str:
    """Plain string for an enum member or an already-plain string (SQL params)."""
    return member.value if isinstance(member, Enum) else member
