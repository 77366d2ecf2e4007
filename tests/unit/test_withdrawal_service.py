"""Unit tests for WithdrawalService: lifecycle, money movement and failure paths."""

import asyncio

import pytest

from src.mk_common.enums import LedgerEntryType, WithdrawalStatus
from src.mk_common.errors import (
    InsufficientFundsError,
    InvalidStateTransitionError,
    PayoutProviderError,
    WithdrawalAlreadyPendingError,
    WithdrawalAmountTooSmallError,
    WithdrawalForbiddenError,
    WithdrawalNotFoundError,
    WithdrawalReferenceMismatchError,
)
from src.mk_withdrawal.application.service import WithdrawalService
from src.mk_withdrawal.infrastructure.fee_rate import StaticFeeRateSource



@pytest.fixture
def service(withdrawal_repo, projector, payout_provider, notifier) -> WithdrawalService:
    return WithdrawalService(
        repo=withdrawal_repo,
        projector=projector,
        payout_provider=payout_provider,
        fee_source=StaticFeeRateSource(300),
        notifier=notifier,
        min_withdrawal_cents=1000,
        provider_timeout_seconds=0.5,
    )


async def _fund(db, projector, creator_id: str = "cr-1", amount: int = 10000) -> None:
    await projector.credit(db, creator_id, amount, LedgerEntryType.EARNING.value)


class TestRequestWithdrawal:
    async def test_reserves_funds_and_computes_fee(
        self, db, service, projector, notifier, assert_conserved
    ) -> None:
        await _fund(db, projector)

        result = await service.request_withdrawal(db, "cr-1", 5000)

        w = result.withdrawal
        assert w.id.startswith("wd_")
        assert w.status == WithdrawalStatus.PENDING.value
        assert (w.amount_cents, w.platform_fee_cents, w.net_amount_cents) == (5000, 150, 4850)
        assert (result.balance.available_cents, result.balance.pending_cents) == (5000, 5000)
        assert notifier.types == ["WITHDRAWAL_REQUESTED"]
        await assert_conserved(db)

    async def test_insufficient_funds(self, db, service, projector) -> None:
        await _fund(db, projector, amount=3000)
        with pytest.raises(InsufficientFundsError):
            await service.request_withdrawal(db, "cr-1", 3001)
        assert db.tables["withdrawal_requests"] == {}

    async def test_below_minimum(self, db, service, projector) -> None:
        await _fund(db, projector)
        with pytest.raises(WithdrawalAmountTooSmallError):
            await service.request_withdrawal(db, "cr-1", 999)

    async def test_second_active_request_rejected(self, db, service, projector) -> None:
        await _fund(db, projector)
        first = await service.request_withdrawal(db, "cr-1", 2000)

        with pytest.raises(WithdrawalAlreadyPendingError) as exc_info:
            await service.request_withdrawal(db, "cr-1", 2000)

        assert exc_info.value.details == {"existing_withdrawal_id": first.withdrawal.id}
        balance = await projector.get_creator_balance(db, "cr-1")
        assert (balance.available_cents, balance.pending_cents) == (8000, 2000)

    async def test_new_request_allowed_after_terminal(self, db, service, projector) -> None:
        await _fund(db, projector)
        first = await service.request_withdrawal(db, "cr-1", 2000)
        await service.cancel_withdrawal(db, first.withdrawal.id, "cr-1")

        second = await service.request_withdrawal(db, "cr-1", 2000)
        assert second.withdrawal.status == WithdrawalStatus.PENDING.value


class TestCancel:
    async def test_restores_available_exactly(self, db, service, projector, assert_conserved) -> None:
        await _fund(db, projector, amount=7777)
        created = await service.request_withdrawal(db, "cr-1", 4000)

        result = await service.cancel_withdrawal(db, created.withdrawal.id, "cr-1")

        assert result.withdrawal.status == WithdrawalStatus.CANCELLED.value
        assert result.withdrawal.processed_at is not None
        balance = await projector.get_creator_balance(db, "cr-1")
        assert (balance.available_cents, balance.pending_cents) == (7777, 0)
        await assert_conserved(db)

    async def test_other_creator_forbidden(self, db, service, projector) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 2000)
        with pytest.raises(WithdrawalForbiddenError):
            await service.cancel_withdrawal(db, created.withdrawal.id, "cr-2")

    async def test_cannot_cancel_completed(self, db, service, projector) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 2000)
        await service.approve_withdrawal(db, created.withdrawal.id)
        with pytest.raises(InvalidStateTransitionError):
            await service.cancel_withdrawal(db, created.withdrawal.id, "cr-1")

    async def test_unknown_id(self, db, service) -> None:
        with pytest.raises(WithdrawalNotFoundError):
            await service.cancel_withdrawal(db, "wd_missing", None)


class TestApprove:
    async def test_pays_net_and_completes(
        self, db, service, projector, payout_provider, notifier, assert_conserved
    ) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        wid = created.withdrawal.id

        done = await service.approve_withdrawal(db, wid)

        assert done.status == WithdrawalStatus.COMPLETED.value
        assert done.provider_reference == f"po_{wid}"
        assert payout_provider.calls == [("cr-1", 4850, wid)]
        balance = await projector.get_creator_balance(db, "cr-1")
        assert (balance.available_cents, balance.pending_cents) == (5000, 0)
        assert notifier.types == ["WITHDRAWAL_REQUESTED", "WITHDRAWAL_COMPLETED"]
        await assert_conserved(db)

    async def test_provider_failure_leaves_pending_untouched(
        self, db, service, withdrawal_repo, projector, payout_provider
    ) -> None:
        payout_provider.error = PayoutProviderError("HTTP 503")
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)

        with pytest.raises(PayoutProviderError):
            await service.approve_withdrawal(db, created.withdrawal.id)

        stored = await withdrawal_repo.get(db, created.withdrawal.id)
        assert stored.status == WithdrawalStatus.PENDING.value
        assert stored.provider_reference is None
        balance = await projector.get_creator_balance(db, "cr-1")
        assert (balance.available_cents, balance.pending_cents) == (5000, 5000)

    async def test_provider_timeout_maps_to_provider_error(
        self, db, withdrawal_repo, projector
    ) -> None:
        class SlowProvider:
            async def create_payout(self, user_id, amount_cents, withdrawal_request_id):
                await asyncio.sleep(5)

        service = WithdrawalService(
            repo=withdrawal_repo,
            projector=projector,
            payout_provider=SlowProvider(),
            provider_timeout_seconds=0.01,
        )
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)

        with pytest.raises(PayoutProviderError) as exc_info:
            await service.approve_withdrawal(db, created.withdrawal.id)
        assert "timed out" in exc_info.value.message

    async def test_resumes_processing_without_second_payout(
        self, db, service, projector, payout_provider, assert_conserved
    ) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        wid = created.withdrawal.id
        # Crash after the provider accepted: PROCESSING with a stored reference
        await service.mark_processing(db, wid, "po_earlier")

        done = await service.approve_withdrawal(db, wid)

        assert done.status == WithdrawalStatus.COMPLETED.value
        assert done.provider_reference == "po_earlier"
        assert payout_provider.calls == []
        await assert_conserved(db)

    async def test_mark_paid_with_manual_reference_skips_provider(
        self, db, service, projector, payout_provider
    ) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)

        done = await service.mark_paid(db, created.withdrawal.id, "bank-transfer-42")

        assert done.provider_reference == "bank-transfer-42"
        assert payout_provider.calls == []

    async def test_approve_terminal_rejected(self, db, service, projector) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        await service.cancel_withdrawal(db, created.withdrawal.id, None)
        with pytest.raises(InvalidStateTransitionError):
            await service.approve_withdrawal(db, created.withdrawal.id)


class TestCompleteIdempotency:
    async def test_complete_twice_same_reference(
        self, db, service, projector, notifier, assert_conserved
    ) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        wid = created.withdrawal.id
        await service.mark_processing(db, wid, "po_1")

        first = await service.complete_withdrawal(db, wid, "po_1")
        entries_after_first = len(db.tables["ledger_entries"])
        second = await service.complete_withdrawal(db, wid, "po_1")

        assert first.status == second.status == WithdrawalStatus.COMPLETED.value
        assert len(db.tables["ledger_entries"]) == entries_after_first
        assert notifier.types.count("WITHDRAWAL_COMPLETED") == 1
        balance = await projector.get_creator_balance(db, "cr-1")
        assert (balance.available_cents, balance.pending_cents) == (5000, 0)
        await assert_conserved(db)

    async def test_complete_with_other_reference_rejected(self, db, service, projector) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        wid = created.withdrawal.id
        await service.mark_processing(db, wid, "po_1")
        await service.complete_withdrawal(db, wid, "po_1")

        with pytest.raises(WithdrawalReferenceMismatchError):
            await service.complete_withdrawal(db, wid, "po_2")

    async def test_mark_processing_replay_and_mismatch(self, db, service, projector) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        wid = created.withdrawal.id
        await service.mark_processing(db, wid, "po_1")

        again = await service.mark_processing(db, wid, "po_1")
        assert again.status == WithdrawalStatus.PROCESSING.value
        with pytest.raises(WithdrawalReferenceMismatchError):
            await service.mark_processing(db, wid, "po_2")

    async def test_complete_pending_is_invalid(self, db, service, projector) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        with pytest.raises(InvalidStateTransitionError):
            await service.complete_withdrawal(db, created.withdrawal.id, "po_1")


class TestFail:
    async def test_failed_settlement_restores_available(
        self, db, service, projector, notifier, assert_conserved
    ) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        wid = created.withdrawal.id
        await service.mark_processing(db, wid, "po_1")

        result = await service.fail_withdrawal(db, wid, "IBAN rejected")

        assert result.withdrawal.status == WithdrawalStatus.FAILED.value
        assert result.withdrawal.failure_reason == "IBAN rejected"
        assert (result.balance.available_cents, result.balance.pending_cents) == (10000, 0)
        assert "WITHDRAWAL_FAILED" in notifier.types
        await assert_conserved(db)

    async def test_pending_cannot_fail(self, db, service, projector) -> None:
        await _fund(db, projector)
        created = await service.request_withdrawal(db, "cr-1", 5000)
        with pytest.raises(InvalidStateTransitionError):
            await service.fail_withdrawal(db, created.withdrawal.id, "nope")


class TestNotificationFailure:
    async def test_failed_dispatch_never_rolls_back(
        self, db, service, projector, notifier, assert_conserved
    ) -> None:
        notifier.fail = True
        await _fund(db, projector)

        created = await service.request_withdrawal(db, "cr-1", 5000)
        done = await service.approve_withdrawal(db, created.withdrawal.id)

        assert done.status == WithdrawalStatus.COMPLETED.value
        assert db.rollbacks == 0
        await assert_conserved(db)


class TestListings:
    async def test_creator_listing_includes_balance(self, db, service, projector) -> None:
        await _fund(db, projector)
        await service.request_withdrawal(db, "cr-1", 2000)

        page = await service.list_withdrawals(db, "cr-1", None, 20, 0)

        assert page.total == 1
        assert page.balance.available_cents == 8000
        assert page.balance.pending_cents == 2000
        assert page.items[0].amount_display == "€20.00"

    async def test_admin_overview_summary(self, db, service, projector) -> None:
        await _fund(db, projector, "cr-1")
        await _fund(db, projector, "cr-2")
        a = await service.request_withdrawal(db, "cr-1", 2000)
        await service.request_withdrawal(db, "cr-2", 3000)
        await service.cancel_withdrawal(db, a.withdrawal.id, None)

        overview = await service.admin_overview(db, None, 50, 0)

        assert overview.total == 2
        summary = {s.status: (s.count, s.amount_cents) for s in overview.summary}
        assert summary == {"CANCELLED": (1, 2000), "PENDING": (1, 3000)}
