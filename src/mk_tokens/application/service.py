"""TokenWalletService: platform token credits.

Every wallet mutation commits together with a token_transactions row and a
TOKEN_WALLET ledger entry, so

    balance_tokens == SUM(token_transactions.tokens WHERE status = 'SETTLED')
                   == SUM(ledger_entries.amount WHERE account_type = 'TOKEN_WALLET')

Purchases are two-phase. create_pending_purchase records intent without
crediting; confirm_purchase (payment confirmed) credits exactly once;
cancel_pending_purchase closes the intent without touching the wallet.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_common.database import transaction
from src.mk_common.enums import (
    AccountType,
    TokenTransactionStatus,
    TokenTransactionType,
    value_of,
)
from src.mk_common.errors import (
    DuplicateTokenReferenceError,
    InsufficientTokensError,
    IntegrityViolationError,
    InvalidTokenAmountError,
    InvalidTokenReasonError,
    PendingPurchaseNotFoundError,
    PurchaseNotPendingError,
    TokenAmountMismatchError,
)
from src.mk_common.id_generator import generate_id
from src.mk_ledger.application.service import TOKENS_UNIT
from src.mk_ledger.domain.models import LedgerRefs
from src.mk_ledger.domain.repository import LedgerRepositoryProtocol
from src.mk_ledger.infrastructure.persistence import LedgerRepository
from src.mk_tokens.application.schemas import (
    TokenTransactionItem,
    TokenTransactionListResponse,
    TokenWalletResponse,
)
from src.mk_tokens.domain.models import PurchaseResult, TokenTransaction, TokenWallet
from src.mk_tokens.domain.packages import feature_cost, get_package
from src.mk_tokens.domain.repository import TokenWalletRepositoryProtocol
from src.mk_tokens.infrastructure.persistence import TokenWalletRepository

logger = logging.getLogger(__name__)

_CREDIT_REASONS = frozenset({
    TokenTransactionType.PURCHASE.value,
    TokenTransactionType.BONUS.value,
    TokenTransactionType.REFUND.value,
    TokenTransactionType.FREE_GRANT.value,
})


@dataclass
class ConsumeResult:
    wallet: TokenWallet
    transaction: TokenTransaction


class TokenWalletService:
    def __init__(
        self,
        wallet_repo: TokenWalletRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        free_tokens_on_signup: int = 100,
        low_token_threshold: int = 20,
    ) -> None:
        self._wallets: TokenWalletRepositoryProtocol = wallet_repo or TokenWalletRepository()
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._free_tokens = free_tokens_on_signup
        self._low_threshold = low_token_threshold

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_or_create_wallet(self, db: AsyncSession, user_id: str) -> TokenWallet:
        existing = await self._wallets.get_wallet(db, user_id)
        if existing is not None:
            return existing
        async with transaction(db):
            wallet = await self._ensure_wallet(db, user_id)
        return wallet

    async def get_wallet_view(self, db: AsyncSession, user_id: str) -> TokenWalletResponse:
        wallet = await self.get_or_create_wallet(db, user_id)
        return TokenWalletResponse.from_domain(wallet, self._low_threshold)

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int,
        offset: int,
        tx_type: str | None = None,
    ) -> TokenTransactionListResponse:
        items, total = await self._wallets.list_transactions(db, user_id, limit, offset, tx_type)
        return TokenTransactionListResponse(
            items=[TokenTransactionItem.from_domain(tx) for tx in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    def is_low(self, wallet: TokenWallet) -> bool:
        return wallet.balance_tokens <= self._low_threshold

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def consume_tokens(
        self,
        db: AsyncSession,
        user_id: str,
        feature: str,
        amount: int | None = None,
        reference_id: str | None = None,
    ) -> ConsumeResult:
        """Charge a metered feature. A repeated reference_id is charged once."""
        tokens = feature_cost(feature) if amount is None else amount
        if tokens <= 0:
            raise InvalidTokenAmountError(tokens)

        async with transaction(db):
            current = await self._ensure_wallet(db, user_id)
            if reference_id is not None:
                previous = await self._wallets.find_transaction_by_reference(db, user_id, reference_id)
                if previous is not None:
                    if previous.type != TokenTransactionType.CONSUMPTION:
                        raise DuplicateTokenReferenceError(reference_id)
                    logger.info("Token consumption replayed: user=%s ref=%s", user_id, reference_id)
                    return ConsumeResult(wallet=current, transaction=previous)

            wallet = await self._wallets.debit_wallet(db, user_id, tokens)
            if wallet is None:
                latest = await self._wallets.get_wallet(db, user_id)
                raise InsufficientTokensError(tokens, latest.balance_tokens if latest else 0)
            tx = await self._record(
                db, wallet, TokenTransactionType.CONSUMPTION, -tokens,
                reference_id=reference_id, description=f"Feature: {feature}",
            )

        logger.info(
            "Tokens consumed: user=%s feature=%s tokens=%d balance=%d",
            user_id, feature, tokens, wallet.balance_tokens,
        )
        return ConsumeResult(wallet=wallet, transaction=tx)

    async def add_tokens(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        description: str | None = None,
    ) -> TokenWallet:
        if amount <= 0:
            raise InvalidTokenAmountError(amount)
        if value_of(reason) not in _CREDIT_REASONS:
            raise InvalidTokenReasonError(value_of(reason))

        async with transaction(db):
            await self._ensure_wallet(db, user_id)
            wallet = await self._credit(db, user_id, amount, value_of(reason))
            await self._record(
                db, wallet, reason, amount, description=description or value_of(reason)
            )

        logger.info(
            "Tokens added: user=%s reason=%s tokens=%d balance=%d",
            user_id, value_of(reason), amount, wallet.balance_tokens,
        )
        return wallet

    async def create_pending_purchase(
        self,
        db: AsyncSession,
        user_id: str,
        tokens: int,
        reference_id: str,
        description: str | None = None,
    ) -> TokenTransaction:
        """Record a checkout in progress. Nothing is credited until confirmation."""
        if tokens <= 0:
            raise InvalidTokenAmountError(tokens)

        async with transaction(db):
            await self._ensure_wallet(db, user_id)
            existing = await self._wallets.find_transaction_by_reference(db, user_id, reference_id)
            if existing is not None:
                if existing.type not in (
                    TokenTransactionType.PURCHASE_PENDING,
                    TokenTransactionType.PURCHASE,
                    TokenTransactionType.REFUND,
                ):
                    raise DuplicateTokenReferenceError(reference_id)
                if existing.status == TokenTransactionStatus.CANCELLED:
                    raise PurchaseNotPendingError(reference_id, existing.status)
                if existing.tokens != tokens:
                    raise TokenAmountMismatchError(reference_id, existing.tokens, tokens)
                return existing
            tx = await self._wallets.insert_transaction(
                db,
                TokenTransaction(
                    id=generate_id("ttx"),
                    user_id=user_id,
                    type=TokenTransactionType.PURCHASE_PENDING.value,
                    tokens=tokens,
                    status=TokenTransactionStatus.PENDING.value,
                    reference_id=reference_id,
                    description=description or f"Purchase of {tokens} tokens",
                ),
            )

        logger.info("Pending token purchase: user=%s ref=%s tokens=%d", user_id, reference_id, tokens)
        return tx

    async def create_package_purchase(
        self, db: AsyncSession, user_id: str, package_id: str, reference_id: str
    ) -> TokenTransaction:
        package = get_package(package_id)
        return await self.create_pending_purchase(
            db, user_id, package.total_tokens, reference_id,
            description=f"{package.name} package ({package.total_tokens} tokens)",
        )

    async def confirm_purchase(
        self, db: AsyncSession, user_id: str, reference_id: str, tokens: int
    ) -> PurchaseResult:
        """Credit a pending purchase once payment is confirmed. Idempotent."""
        async with transaction(db):
            pending = await self._wallets.find_transaction_by_reference(
                db, user_id, reference_id, for_update=True
            )
            if pending is None:
                raise PendingPurchaseNotFoundError(reference_id)
            if pending.status == TokenTransactionStatus.SETTLED:
                if pending.type != TokenTransactionType.PURCHASE:
                    raise DuplicateTokenReferenceError(reference_id)
                wallet = await self._ensure_wallet(db, user_id)
                logger.info("Token purchase already confirmed: user=%s ref=%s", user_id, reference_id)
                return PurchaseResult(wallet=wallet, transaction=pending, credited=False)
            if pending.status != TokenTransactionStatus.PENDING:
                raise PurchaseNotPendingError(reference_id, pending.status)
            if pending.tokens != tokens:
                raise TokenAmountMismatchError(reference_id, pending.tokens, tokens)

            await self._ensure_wallet(db, user_id)
            wallet = await self._credit(db, user_id, tokens, TokenTransactionType.PURCHASE.value)
            settled = await self._wallets.update_transaction(
                db, pending.id,
                TokenTransactionType.PURCHASE.value,
                TokenTransactionStatus.SETTLED.value,
                None,
            )
            await self._append_ledger(db, wallet, TokenTransactionType.PURCHASE, tokens, settled.id)

        logger.info(
            "Token purchase confirmed: user=%s ref=%s tokens=%d balance=%d",
            user_id, reference_id, tokens, wallet.balance_tokens,
        )
        return PurchaseResult(wallet=wallet, transaction=settled, credited=True)

    async def cancel_pending_purchase(
        self, db: AsyncSession, user_id: str, reference_id: str
    ) -> TokenTransaction:
        """Close an unpaid purchase. The wallet is never touched."""
        async with transaction(db):
            pending = await self._wallets.find_transaction_by_reference(
                db, user_id, reference_id, for_update=True
            )
            if pending is None:
                raise PendingPurchaseNotFoundError(reference_id)
            if pending.status == TokenTransactionStatus.CANCELLED:
                return pending
            if pending.status != TokenTransactionStatus.PENDING:
                raise PurchaseNotPendingError(reference_id, pending.status)
            cancelled = await self._wallets.update_transaction(
                db, pending.id,
                TokenTransactionType.REFUND.value,
                TokenTransactionStatus.CANCELLED.value,
                "Purchase cancelled before payment",
            )

        logger.info("Pending token purchase cancelled: user=%s ref=%s", user_id, reference_id)
        return cancelled

    # ------------------------------------------------------------------
    # Internals (caller holds the transaction)
    # ------------------------------------------------------------------

    async def _ensure_wallet(self, db: AsyncSession, user_id: str) -> TokenWallet:
        wallet = await self._wallets.get_wallet(db, user_id)
        if wallet is not None:
            return wallet
        created = await self._wallets.create_wallet(db, user_id, self._free_tokens)
        if created is None:
            # Lost the first-access race; the winner granted the tokens
            raced = await self._wallets.get_wallet(db, user_id)
            if raced is None:
                raise IntegrityViolationError(f"Token wallet for {user_id} neither created nor found")
            return raced
        if self._free_tokens > 0:
            await self._record(
                db, created, TokenTransactionType.FREE_GRANT, self._free_tokens,
                description="Welcome tokens",
            )
        logger.info("Token wallet created: user=%s grant=%d", user_id, self._free_tokens)
        return created

    async def _credit(self, db: AsyncSession, user_id: str, tokens: int, reason: str) -> TokenWallet:
        wallet = await self._wallets.credit_wallet(db, user_id, tokens, reason)
        if wallet is None:
            raise IntegrityViolationError(f"Token wallet for {user_id} vanished during credit")
        return wallet

    async def _record(
        self,
        db: AsyncSession,
        wallet: TokenWallet,
        tx_type: str,
        tokens: int,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> TokenTransaction:
        """Settled transaction row plus its ledger entry."""
        tx = await self._wallets.insert_transaction(
            db,
            TokenTransaction(
                id=generate_id("ttx"),
                user_id=wallet.user_id,
                type=value_of(tx_type),
                tokens=tokens,
                status=TokenTransactionStatus.SETTLED.value,
                reference_id=reference_id,
                description=description,
            ),
        )
        await self._append_ledger(db, wallet, tx_type, tokens, tx.id)
        return tx

    async def _append_ledger(
        self, db: AsyncSession, wallet: TokenWallet, tx_type: str, tokens: int, tx_id: str
    ) -> None:
        await self._ledger.append_entry(
            db, wallet.user_id, AccountType.TOKEN_WALLET.value, value_of(tx_type),
            tokens, wallet.balance_tokens, TOKENS_UNIT,
            LedgerRefs(reference_id=tx_id),
        )


def build_token_service() -> TokenWalletService:
    return TokenWalletService(
        free_tokens_on_signup=settings.FREE_TOKENS_ON_SIGNUP,
        low_token_threshold=settings.LOW_TOKEN_THRESHOLD,
    )
