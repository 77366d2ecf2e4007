"""Unified error codes and custom exceptions.

Every error carries a numeric code and a stable string error_code that
clients can branch on.

Error code ranges:
  1xxx: Auth
  2xxx: Ledger / Balance
  3xxx: Withdrawal
  4xxx: Campaign
  5xxx: Tokens
  9xxx: System
"""

import logging

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        error_code: str,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.error_code = error_code
        self.message = message
        self.http_status = http_status
        self.details: dict[str, object] | None = None
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "INVALID_CREDENTIALS", "Invalid or expired token", 401)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Insufficient privileges") -> None:
        super().__init__(1002, "FORBIDDEN", detail, 403)


# --- 2xxx: Ledger / Balance ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            "INSUFFICIENT_FUNDS",
            f"Insufficient funds: required {required} cents, available {available} cents",
            400,
        )
        self.details = {"required": required, "available": available}


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2002, "INVALID_AMOUNT", f"Amount must be positive, got {amount}", 400)


class DuplicateEventError(AppError):
    def __init__(self, event_id: str) -> None:
        super().__init__(2003, "DUPLICATE_EVENT", f"Event already recorded: {event_id}", 409)


class UnsupportedAccountTypeError(AppError):
    def __init__(self, account_type: str) -> None:
        super().__init__(
            2004, "UNSUPPORTED_ACCOUNT_TYPE", f"Operation not supported for {account_type}", 400
        )


# --- 3xxx: Withdrawal ---

class WithdrawalNotFoundError(AppError):
    def __init__(self, withdrawal_id: str) -> None:
        super().__init__(
            3001, "WITHDRAWAL_NOT_FOUND", f"Withdrawal not found: {withdrawal_id}", 404
        )


class WithdrawalAlreadyPendingError(AppError):
    def __init__(self, existing_id: str | None = None) -> None:
        super().__init__(
            3002,
            "WITHDRAWAL_ALREADY_PENDING",
            f"Creator already has a withdrawal in progress: {existing_id or 'unknown'}",
            400,
        )
        self.details = {"existing_withdrawal_id": existing_id}


class InvalidStateTransitionError(AppError):
    def __init__(self, withdrawal_id: str, current: str, target: str) -> None:
        super().__init__(
            3003,
            "INVALID_STATE_TRANSITION",
            f"Withdrawal {withdrawal_id} cannot move from {current} to {target}",
            409,
        )


class WithdrawalAmountTooSmallError(AppError):
    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(
            3004,
            "WITHDRAWAL_AMOUNT_TOO_SMALL",
            f"Withdrawal of {amount} cents is below the minimum of {minimum} cents",
            400,
        )


class WithdrawalForbiddenError(AppError):
    def __init__(self, withdrawal_id: str) -> None:
        super().__init__(
            3005, "WITHDRAWAL_FORBIDDEN", f"Withdrawal {withdrawal_id} belongs to another creator", 403
        )


class WithdrawalReferenceMismatchError(AppError):
    def __init__(self, withdrawal_id: str, expected: str, got: str) -> None:
        super().__init__(
            3006,
            "WITHDRAWAL_REFERENCE_MISMATCH",
            f"Withdrawal {withdrawal_id} is bound to provider reference {expected}, got {got}",
            409,
        )


class PayoutProviderError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3007, "PAYOUT_PROVIDER_ERROR", f"Payout provider failed: {detail}", 502)


# --- 4xxx: Campaign ---

class CampaignNotFoundError(AppError):
    def __init__(self, campaign_id: str) -> None:
        super().__init__(4001, "CAMPAIGN_NOT_FOUND", f"Campaign not found: {campaign_id}", 404)


class BudgetExhaustedError(AppError):
    def __init__(self, campaign_id: str, amount: int) -> None:
        super().__init__(
            4002,
            "BUDGET_EXHAUSTED",
            f"Campaign {campaign_id} cannot absorb {amount} cents of spend",
            400,
        )


class InvalidBudgetError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4003, "INVALID_BUDGET", detail, 400)


# --- 5xxx: Tokens ---

class InsufficientTokensError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            5001,
            "INSUFFICIENT_TOKENS",
            f"Insufficient tokens: required {required}, available {available}",
            400,
        )
        self.details = {"required": required, "available": available}


class InvalidTokenAmountError(AppError):
    def __init__(self, tokens: int) -> None:
        super().__init__(5002, "INVALID_TOKEN_AMOUNT", f"Token amount must be positive, got {tokens}", 400)


class PendingPurchaseNotFoundError(AppError):
    def __init__(self, reference_id: str) -> None:
        super().__init__(
            5003, "PENDING_PURCHASE_NOT_FOUND", f"No pending purchase for reference {reference_id}", 404
        )


class PurchaseNotPendingError(AppError):
    def __init__(self, reference_id: str, status: str) -> None:
        super().__init__(
            5004,
            "PURCHASE_NOT_PENDING",
            f"Purchase {reference_id} is {status} and can no longer change",
            409,
        )


class TokenAmountMismatchError(AppError):
    def __init__(self, reference_id: str, expected: int, got: int) -> None:
        super().__init__(
            5005,
            "TOKEN_AMOUNT_MISMATCH",
            f"Purchase {reference_id} was created for {expected} tokens, confirmation says {got}",
            409,
        )


class UnknownTokenPackageError(AppError):
    def __init__(self, package_id: str) -> None:
        super().__init__(5006, "UNKNOWN_TOKEN_PACKAGE", f"Unknown token package: {package_id}", 400)


class UnknownFeatureError(AppError):
    def __init__(self, feature: str) -> None:
        super().__init__(5007, "UNKNOWN_FEATURE", f"Unknown metered feature: {feature}", 400)


class InvalidTokenReasonError(AppError):
    def __init__(self, reason: str) -> None:
        super().__init__(5008, "INVALID_TOKEN_REASON", f"Tokens cannot be credited as {reason}", 400)


class DuplicateTokenReferenceError(AppError):
    def __init__(self, reference_id: str) -> None:
        super().__init__(
            5009,
            "DUPLICATE_TOKEN_REFERENCE",
            f"Reference {reference_id} is already used by another token transaction",
            409,
        )


# --- 9xxx: System ---

class JobAlreadyRunningError(AppError):
    def __init__(self, job_name: str) -> None:
        super().__init__(9001, "JOB_ALREADY_RUNNING", f"Job already running: {job_name}", 409)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, "INTERNAL_ERROR", detail, 500)


class IntegrityViolationError(AppError):
    """A stored balance and the operation being applied disagree.

    Unreachable when transaction boundaries are correct. Logged at CRITICAL on
    construction; callers let it propagate.
    """

    def __init__(self, detail: str) -> None:
        logger.critical("INTEGRITY VIOLATION: %s", detail)
        super().__init__(9003, "INTEGRITY_VIOLATION", detail, 500)


# Not raised: rendered by the RequestValidationError handler in src/main.py
VALIDATION_ERROR_CODE = 9004
