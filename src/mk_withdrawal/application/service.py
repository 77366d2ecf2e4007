"""WithdrawalService: drives a withdrawal request through its lifecycle.

Money movement is delegated to BalanceProjector building blocks so that every
status change and its ledger entries commit in the same transaction:

    request   available -> pending      (WITHDRAWAL_HOLD x2)
    complete  pending -> paid out       (WITHDRAWAL_PAYOUT + PLATFORM_FEE)
    cancel    pending -> available      (WITHDRAWAL_RELEASE x2)
    fail      pending -> available      (WITHDRAWAL_RELEASE x2)

The payout provider is called between two transactions, never inside one:
a slow provider must not hold the creator row lock.
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_common.cents import calculate_fee
from src.mk_common.database import transaction
from src.mk_common.datetime_utils import utc_now
from src.mk_common.enums import WithdrawalStatus
from src.mk_common.errors import (
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateTransitionError,
    PayoutProviderError,
    WithdrawalAlreadyPendingError,
    WithdrawalAmountTooSmallError,
    WithdrawalForbiddenError,
    WithdrawalNotFoundError,
    WithdrawalReferenceMismatchError,
)
from src.mk_common.events import (
    DomainEvent,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    notify_safely,
)
from src.mk_common.id_generator import generate_id
from src.mk_ledger.application.schemas import CreatorBalanceResponse
from src.mk_ledger.application.service import BalanceProjector
from src.mk_ledger.domain.models import CreatorBalance
from src.mk_withdrawal.application.schemas import (
    AdminWithdrawalListResponse,
    StatusSummaryItem,
    WithdrawalItem,
    WithdrawalListResponse,
)
from src.mk_withdrawal.domain.models import WithdrawalRequest
from src.mk_withdrawal.domain.ports import FeeRateSource, PayoutProviderProtocol
from src.mk_withdrawal.domain.repository import WithdrawalRepositoryProtocol
from src.mk_withdrawal.domain.state_machine import APPROVABLE, assert_transition
from src.mk_withdrawal.infrastructure.fee_rate import StaticFeeRateSource
from src.mk_withdrawal.infrastructure.payout_provider import (
    HttpPayoutProvider,
    SimulatedPayoutProvider,
)
from src.mk_withdrawal.infrastructure.persistence import WithdrawalRepository

logger = logging.getLogger(__name__)


@dataclass
class WithdrawalResult:
    withdrawal: WithdrawalRequest
    balance: CreatorBalance


class WithdrawalService:
    def __init__(
        self,
        repo: WithdrawalRepositoryProtocol | None = None,
        projector: BalanceProjector | None = None,
        payout_provider: PayoutProviderProtocol | None = None,
        fee_source: FeeRateSource | None = None,
        notifier: NotificationDispatcher | None = None,
        min_withdrawal_cents: int = 1000,
        provider_timeout_seconds: float = 10.0,
        currency: str = "EUR",
    ) -> None:
        self._repo: WithdrawalRepositoryProtocol = repo or WithdrawalRepository()
        self._projector = projector or BalanceProjector(currency=currency)
        self._provider: PayoutProviderProtocol = payout_provider or SimulatedPayoutProvider()
        self._fees: FeeRateSource = fee_source or StaticFeeRateSource(300)
        self._notifier: NotificationDispatcher = notifier or LoggingNotificationDispatcher()
        self._min_withdrawal = min_withdrawal_cents
        self._provider_timeout = provider_timeout_seconds

    # ------------------------------------------------------------------
    # Creator operations
    # ------------------------------------------------------------------

    async def request_withdrawal(
        self, db: AsyncSession, creator_id: str, amount_cents: int
    ) -> WithdrawalResult:
        if amount_cents <= 0:
            raise InvalidAmountError(amount_cents)
        if amount_cents < self._min_withdrawal:
            raise WithdrawalAmountTooSmallError(amount_cents, self._min_withdrawal)
        fee = calculate_fee(amount_cents, await self._fees.get_fee_rate_bps())
        net = amount_cents - fee
        if net <= 0:
            raise WithdrawalAmountTooSmallError(amount_cents, self._min_withdrawal)

        async with transaction(db):
            # Row lock on the creator serializes concurrent requests
            locked = await self._projector.lock_creator(db, creator_id)
            active = await self._repo.find_active_for_creator(db, creator_id)
            if active is not None:
                raise WithdrawalAlreadyPendingError(active.id)
            if locked.available_cents < amount_cents:
                raise InsufficientFundsError(amount_cents, locked.available_cents)

            withdrawal = await self._repo.create(
                db,
                WithdrawalRequest(
                    id=generate_id("wd"),
                    creator_id=creator_id,
                    amount_cents=amount_cents,
                    platform_fee_cents=fee,
                    net_amount_cents=net,
                    currency=locked.currency,
                    status=WithdrawalStatus.PENDING.value,
                ),
            )
            balance = await self._projector.reserve_for_withdrawal(
                db, creator_id, amount_cents, withdrawal.id
            )

        logger.info(
            "Withdrawal requested: id=%s creator=%s amount=%d fee=%d",
            withdrawal.id, creator_id, amount_cents, fee,
        )
        await self._notify("WITHDRAWAL_REQUESTED", withdrawal)
        return WithdrawalResult(withdrawal=withdrawal, balance=balance)

    async def cancel_withdrawal(
        self, db: AsyncSession, withdrawal_id: str, creator_id: str | None
    ) -> WithdrawalResult:
        """Cancel a PENDING request. creator_id=None means a privileged caller."""
        async with transaction(db):
            withdrawal = await self._get_or_raise(db, withdrawal_id, for_update=True)
            if creator_id is not None and withdrawal.creator_id != creator_id:
                raise WithdrawalForbiddenError(withdrawal_id)
            assert_transition(withdrawal_id, withdrawal.status, WithdrawalStatus.CANCELLED)
            balance = await self._projector.release_reservation(
                db, withdrawal.creator_id, withdrawal.amount_cents, withdrawal_id,
                "Withdrawal cancelled",
            )
            withdrawal = await self._repo.update_status(
                db, withdrawal_id, WithdrawalStatus.CANCELLED.value, processed_at=utc_now()
            )

        logger.info("Withdrawal cancelled: id=%s by=%s", withdrawal_id, creator_id or "admin")
        await self._notify("WITHDRAWAL_CANCELLED", withdrawal)
        return WithdrawalResult(withdrawal=withdrawal, balance=balance)

    async def list_withdrawals(
        self,
        db: AsyncSession,
        creator_id: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> WithdrawalListResponse:
        balance = await self._projector.get_creator_balance(db, creator_id)
        items, total = await self._repo.list_requests(db, creator_id, status, limit, offset)
        return WithdrawalListResponse(
            balance=CreatorBalanceResponse.from_domain(balance),
            items=[WithdrawalItem.from_domain(w) for w in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    # ------------------------------------------------------------------
    # Privileged operations
    # ------------------------------------------------------------------

    async def approve_withdrawal(
        self, db: AsyncSession, withdrawal_id: str, provider_reference: str | None = None
    ) -> WithdrawalRequest:
        """Pay out a PENDING request, or resume one left PROCESSING by a crash.

        A provider failure leaves the request PENDING with balances untouched.
        """
        async with transaction(db):
            withdrawal = await self._get_or_raise(db, withdrawal_id)
        if withdrawal.status not in APPROVABLE:
            raise InvalidStateTransitionError(
                withdrawal_id, withdrawal.status, WithdrawalStatus.PROCESSING.value
            )

        reference = withdrawal.provider_reference or provider_reference
        if reference is None:
            reference = await self._create_payout(withdrawal)
        if withdrawal.status == WithdrawalStatus.PENDING:
            await self.mark_processing(db, withdrawal_id, reference)
        return await self.complete_withdrawal(db, withdrawal_id, reference)

    async def mark_paid(
        self, db: AsyncSession, withdrawal_id: str, provider_reference: str | None = None
    ) -> WithdrawalRequest:
        """Admin mark_paid: with a reference the payout was made by hand, so skip the provider."""
        return await self.approve_withdrawal(db, withdrawal_id, provider_reference)

    async def mark_processing(
        self, db: AsyncSession, withdrawal_id: str, provider_reference: str
    ) -> WithdrawalRequest:
        async with transaction(db):
            withdrawal = await self._get_or_raise(db, withdrawal_id, for_update=True)
            if withdrawal.status == WithdrawalStatus.PROCESSING:
                if withdrawal.provider_reference == provider_reference:
                    return withdrawal
                raise WithdrawalReferenceMismatchError(
                    withdrawal_id, withdrawal.provider_reference or "", provider_reference
                )
            assert_transition(withdrawal_id, withdrawal.status, WithdrawalStatus.PROCESSING)
            withdrawal = await self._repo.update_status(
                db, withdrawal_id, WithdrawalStatus.PROCESSING.value,
                provider_reference=provider_reference,
            )
        logger.info("Withdrawal processing: id=%s reference=%s", withdrawal_id, provider_reference)
        return withdrawal

    async def complete_withdrawal(
        self, db: AsyncSession, withdrawal_id: str, provider_reference: str
    ) -> WithdrawalRequest:
        """Settle a PROCESSING request. Replays with the same reference are no-ops."""
        async with transaction(db):
            withdrawal = await self._get_or_raise(db, withdrawal_id, for_update=True)
            if withdrawal.status == WithdrawalStatus.COMPLETED:
                if withdrawal.provider_reference != provider_reference:
                    raise WithdrawalReferenceMismatchError(
                        withdrawal_id, withdrawal.provider_reference or "", provider_reference
                    )
                logger.info("Withdrawal already completed: id=%s", withdrawal_id)
                return withdrawal
            assert_transition(withdrawal_id, withdrawal.status, WithdrawalStatus.COMPLETED)
            if withdrawal.provider_reference not in (None, provider_reference):
                raise WithdrawalReferenceMismatchError(
                    withdrawal_id, withdrawal.provider_reference, provider_reference
                )
            await self._projector.settle_reservation(
                db,
                withdrawal.creator_id,
                withdrawal.amount_cents,
                withdrawal.platform_fee_cents,
                withdrawal_id,
            )
            withdrawal = await self._repo.update_status(
                db, withdrawal_id, WithdrawalStatus.COMPLETED.value,
                provider_reference=provider_reference, processed_at=utc_now(),
            )

        logger.info(
            "Withdrawal completed: id=%s creator=%s net=%d fee=%d",
            withdrawal_id, withdrawal.creator_id,
            withdrawal.net_amount_cents, withdrawal.platform_fee_cents,
        )
        await self._notify("WITHDRAWAL_COMPLETED", withdrawal)
        return withdrawal

    async def fail_withdrawal(
        self, db: AsyncSession, withdrawal_id: str, reason: str
    ) -> WithdrawalResult:
        """Settlement failed after the provider accepted: return the funds to available."""
        async with transaction(db):
            withdrawal = await self._get_or_raise(db, withdrawal_id, for_update=True)
            assert_transition(withdrawal_id, withdrawal.status, WithdrawalStatus.FAILED)
            balance = await self._projector.release_reservation(
                db, withdrawal.creator_id, withdrawal.amount_cents, withdrawal_id,
                f"Withdrawal failed: {reason}",
            )
            withdrawal = await self._repo.update_status(
                db, withdrawal_id, WithdrawalStatus.FAILED.value,
                failure_reason=reason, processed_at=utc_now(),
            )

        logger.warning("Withdrawal failed: id=%s reason=%s", withdrawal_id, reason)
        await self._notify("WITHDRAWAL_FAILED", withdrawal)
        return WithdrawalResult(withdrawal=withdrawal, balance=balance)

    async def admin_overview(
        self, db: AsyncSession, status: str | None, limit: int, offset: int
    ) -> AdminWithdrawalListResponse:
        items, total = await self._repo.list_requests(db, None, status, limit, offset)
        summary = await self._repo.summarize_by_status(db)
        return AdminWithdrawalListResponse(
            items=[WithdrawalItem.from_domain(w) for w in items],
            total=total,
            limit=limit,
            offset=offset,
            summary=[StatusSummaryItem.from_domain(s) for s in summary],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_or_raise(
        self, db: AsyncSession, withdrawal_id: str, for_update: bool = False
    ) -> WithdrawalRequest:
        withdrawal = await self._repo.get(db, withdrawal_id, for_update=for_update)
        if withdrawal is None:
            raise WithdrawalNotFoundError(withdrawal_id)
        return withdrawal

    async def _create_payout(self, withdrawal: WithdrawalRequest) -> str:
        try:
            result = await asyncio.wait_for(
                self._provider.create_payout(
                    withdrawal.creator_id, withdrawal.net_amount_cents, withdrawal.id
                ),
                timeout=self._provider_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                "Payout provider timed out after %.1fs: withdrawal=%s",
                self._provider_timeout, withdrawal.id,
            )
            raise PayoutProviderError(f"timed out after {self._provider_timeout}s") from e
        except PayoutProviderError as e:
            logger.warning("Payout provider failed: withdrawal=%s error=%s", withdrawal.id, e.message)
            raise
        return result.payout_id

    async def _notify(self, event_type: str, withdrawal: WithdrawalRequest) -> None:
        await notify_safely(
            self._notifier,
            DomainEvent(
                event_type=event_type,
                subject_id=withdrawal.creator_id,
                payload={
                    "withdrawal_id": withdrawal.id,
                    "amount_cents": withdrawal.amount_cents,
                    "net_amount_cents": withdrawal.net_amount_cents,
                    "status": withdrawal.status,
                },
            ),
        )


def build_withdrawal_service() -> WithdrawalService:
    """Wire a WithdrawalService from settings."""
    if settings.PAYOUT_PROVIDER_URL:
        provider: PayoutProviderProtocol = HttpPayoutProvider(
            base_url=settings.PAYOUT_PROVIDER_URL,
            api_key=settings.PAYOUT_PROVIDER_API_KEY,
            timeout_seconds=settings.PAYOUT_PROVIDER_TIMEOUT_SECONDS,
            currency=settings.DEFAULT_CURRENCY,
        )
    else:
        provider = SimulatedPayoutProvider()
    return WithdrawalService(
        payout_provider=provider,
        fee_source=StaticFeeRateSource(settings.PLATFORM_FEE_BPS),
        min_withdrawal_cents=settings.MIN_WITHDRAWAL_CENTS,
        provider_timeout_seconds=settings.PAYOUT_PROVIDER_TIMEOUT_SECONDS,
        currency=settings.DEFAULT_CURRENCY,
    )
