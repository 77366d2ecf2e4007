"""Pydantic schemas for mk_tokens API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from src.mk_tokens.domain.models import TokenTransaction, TokenWallet
from src.mk_tokens.domain.packages import TokenPackage

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ConsumeTokensRequest(BaseModel):
    feature: str = Field(..., min_length=1, max_length=64)
    amount: int | None = Field(None, gt=0, description="Defaults to the feature's listed cost")
    reference_id: str | None = Field(None, max_length=128)


class CreatePurchaseRequest(BaseModel):
    """Either a raw token count or a package id."""

    reference_id: str = Field(..., min_length=1, max_length=128, description="Checkout session id")
    tokens: int | None = Field(None, gt=0)
    package_id: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "CreatePurchaseRequest":
        if (self.tokens is None) == (self.package_id is None):
            raise ValueError("provide exactly one of tokens or package_id")
        return self


class ConfirmPurchaseRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    tokens: int = Field(..., gt=0, description="Tokens the confirmed payment covers")


class CancelPurchaseRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class GrantTokensRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
    reason: Literal["BONUS", "REFUND", "FREE_GRANT"]
    description: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TokenWalletResponse(BaseModel):
    user_id: str
    balance_tokens: int
    lifetime_purchased_tokens: int
    lifetime_consumed_tokens: int
    lifetime_granted_tokens: int
    last_top_up_at: datetime | None
    is_low: bool

    @classmethod
    def from_domain(cls, wallet: TokenWallet, low_threshold: int) -> "TokenWalletResponse":
        return cls(
            user_id=wallet.user_id,
            balance_tokens=wallet.balance_tokens,
            lifetime_purchased_tokens=wallet.lifetime_purchased_tokens,
            lifetime_consumed_tokens=wallet.lifetime_consumed_tokens,
            lifetime_granted_tokens=wallet.lifetime_granted_tokens,
            last_top_up_at=wallet.last_top_up_at,
            is_low=wallet.balance_tokens <= low_threshold,
        )


class TokenTransactionItem(BaseModel):
    id: str
    type: str
    tokens: int
    status: str
    reference_id: str | None
    description: str | None
    created_at: datetime | None

    @classmethod
    def from_domain(cls, tx: TokenTransaction) -> "TokenTransactionItem":
        return cls(
            id=tx.id,
            type=tx.type,
            tokens=tx.tokens,
            status=tx.status,
            reference_id=tx.reference_id,
            description=tx.description,
            created_at=tx.created_at,
        )


class TokenTransactionListResponse(BaseModel):
    items: list[TokenTransactionItem]
    total: int
    limit: int
    offset: int


class ConsumeTokensResponse(BaseModel):
    transaction: TokenTransactionItem
    balance_tokens: int
    is_low: bool


class PurchaseConfirmationResponse(BaseModel):
    transaction: TokenTransactionItem
    balance_tokens: int
    credited: bool


class TokenPackageItem(BaseModel):
    id: str
    name: str
    tokens: int
    bonus_tokens: int
    total_tokens: int
    price_cents: int
    price_per_token_cents: float
    best_value: bool

    @classmethod
    def from_domain(cls, p: TokenPackage) -> "TokenPackageItem":
        return cls(
            id=p.id,
            name=p.name,
            tokens=p.tokens,
            bonus_tokens=p.bonus_tokens,
            total_tokens=p.total_tokens,
            price_cents=p.price_cents,
            price_per_token_cents=round(p.price_per_token_cents, 2),
            best_value=p.best_value,
        )
