"""Unit tests for TokenWalletService: grants, metering and two-phase purchases."""

import pytest

from src.mk_common.errors import (
    DuplicateTokenReferenceError,
    InsufficientTokensError,
    InvalidTokenAmountError,
    InvalidTokenReasonError,
    PendingPurchaseNotFoundError,
    PurchaseNotPendingError,
    TokenAmountMismatchError,
    UnknownFeatureError,
    UnknownTokenPackageError,
)
from src.mk_tokens.application.service import TokenWalletService


@pytest.fixture
def tokens(token_repo, ledger_repo) -> TokenWalletService:
    return TokenWalletService(
        wallet_repo=token_repo,
        ledger_repo=ledger_repo,
        free_tokens_on_signup=100,
        low_token_threshold=20,
    )


class TestWalletCreation:
    async def test_first_access_grants_welcome_tokens(self, db, tokens, assert_conserved) -> None:
        wallet = await tokens.get_or_create_wallet(db, "u-1")

        assert wallet.balance_tokens == 100
        assert wallet.lifetime_granted_tokens == 100
        page = await tokens.list_transactions(db, "u-1", limit=10, offset=0)
        assert [(t.type, t.tokens, t.status) for t in page.items] == [("FREE_GRANT", 100, "SETTLED")]
        await assert_conserved(db)

    async def test_second_access_does_not_grant_again(self, db, tokens) -> None:
        await tokens.get_or_create_wallet(db, "u-1")
        wallet = await tokens.get_or_create_wallet(db, "u-1")
        assert wallet.balance_tokens == 100
        assert len(db.tables["token_transactions"]) == 1

    async def test_zero_grant_records_nothing(self, db, token_repo, ledger_repo) -> None:
        service = TokenWalletService(token_repo, ledger_repo, free_tokens_on_signup=0)
        wallet = await service.get_or_create_wallet(db, "u-1")
        assert wallet.balance_tokens == 0
        assert db.tables["token_transactions"] == {}
        assert db.tables["ledger_entries"] == []

    async def test_wallet_view_flags_low_balance(self, db, tokens) -> None:
        view = await tokens.get_wallet_view(db, "u-1")
        assert view.balance_tokens == 100
        assert view.is_low is False

        await tokens.consume_tokens(db, "u-1", "custom", amount=80)
        wallet = await tokens.get_or_create_wallet(db, "u-1")
        assert tokens.is_low(wallet) is True


class TestConsume:
    async def test_charges_listed_feature_cost(self, db, tokens, assert_conserved) -> None:
        result = await tokens.consume_tokens(db, "u-1", "SCRIPT_GENERATION")

        assert result.wallet.balance_tokens == 95
        assert result.wallet.lifetime_consumed_tokens == 5
        assert result.transaction.tokens == -5
        assert result.transaction.type == "CONSUMPTION"
        await assert_conserved(db)

    async def test_explicit_amount_overrides_cost(self, db, tokens) -> None:
        result = await tokens.consume_tokens(db, "u-1", "SCRIPT_GENERATION", amount=12)
        assert result.wallet.balance_tokens == 88

    async def test_insufficient_tokens_leaves_balance(self, db, tokens, assert_conserved) -> None:
        await tokens.get_or_create_wallet(db, "u-1")

        with pytest.raises(InsufficientTokensError) as exc_info:
            await tokens.consume_tokens(db, "u-1", "custom", amount=101)

        assert exc_info.value.details == {"required": 101, "available": 100}
        assert (await tokens.get_or_create_wallet(db, "u-1")).balance_tokens == 100
        await assert_conserved(db)

    async def test_unknown_feature(self, db, tokens) -> None:
        with pytest.raises(UnknownFeatureError):
            await tokens.consume_tokens(db, "u-1", "TELEPATHY")

    async def test_non_positive_amount(self, db, tokens) -> None:
        with pytest.raises(InvalidTokenAmountError):
            await tokens.consume_tokens(db, "u-1", "custom", amount=0)

    async def test_same_reference_charged_once(self, db, tokens, assert_conserved) -> None:
        first = await tokens.consume_tokens(db, "u-1", "PATTERN_ANALYSIS", reference_id="job-7")
        again = await tokens.consume_tokens(db, "u-1", "PATTERN_ANALYSIS", reference_id="job-7")

        assert again.transaction.id == first.transaction.id
        assert again.wallet.balance_tokens == 90
        await assert_conserved(db)

    async def test_reference_owned_by_purchase_rejected(self, db, tokens) -> None:
        await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        with pytest.raises(DuplicateTokenReferenceError):
            await tokens.consume_tokens(db, "u-1", "TITLE_ENGINE", reference_id="chk-1")


class TestAddTokens:
    @pytest.mark.parametrize("reason", ["BONUS", "REFUND", "FREE_GRANT", "PURCHASE"])
    async def test_credit_reasons(self, db, tokens, assert_conserved, reason: str) -> None:
        wallet = await tokens.add_tokens(db, "u-1", 50, reason)
        assert wallet.balance_tokens == 150
        await assert_conserved(db)

    async def test_bonus_counts_as_granted(self, db, tokens) -> None:
        wallet = await tokens.add_tokens(db, "u-1", 50, "BONUS", "Referral")
        assert wallet.lifetime_granted_tokens == 150

    @pytest.mark.parametrize("reason", ["PURCHASE_PENDING", "CONSUMPTION", "GIFT"])
    async def test_invalid_reason(self, db, tokens, reason: str) -> None:
        with pytest.raises(InvalidTokenReasonError):
            await tokens.add_tokens(db, "u-1", 50, reason)

    async def test_non_positive_amount(self, db, tokens) -> None:
        with pytest.raises(InvalidTokenAmountError):
            await tokens.add_tokens(db, "u-1", -1, "BONUS")


class TestTwoPhasePurchase:
    async def test_pending_purchase_credits_nothing(self, db, tokens, assert_conserved) -> None:
        tx = await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")

        assert (tx.type, tx.status, tx.tokens) == ("PURCHASE_PENDING", "PENDING", 200)
        assert (await tokens.get_or_create_wallet(db, "u-1")).balance_tokens == 100
        await assert_conserved(db)

    async def test_confirm_credits_exactly_once(self, db, tokens, assert_conserved) -> None:
        await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")

        first = await tokens.confirm_purchase(db, "u-1", "chk-1", 200)
        second = await tokens.confirm_purchase(db, "u-1", "chk-1", 200)

        assert first.credited is True
        assert first.wallet.balance_tokens == 300
        assert first.wallet.lifetime_purchased_tokens == 200
        assert first.transaction.status == "SETTLED"
        assert first.transaction.type == "PURCHASE"
        assert second.credited is False
        assert second.wallet.balance_tokens == 300
        await assert_conserved(db)

    async def test_repeated_pending_request_returns_same_intent(self, db, tokens) -> None:
        a = await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        b = await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        assert a.id == b.id

    async def test_pending_with_other_amount_rejected(self, db, tokens) -> None:
        await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        with pytest.raises(TokenAmountMismatchError):
            await tokens.create_pending_purchase(db, "u-1", 300, "chk-1")

    async def test_confirm_amount_mismatch(self, db, tokens, assert_conserved) -> None:
        await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        with pytest.raises(TokenAmountMismatchError):
            await tokens.confirm_purchase(db, "u-1", "chk-1", 150)
        assert (await tokens.get_or_create_wallet(db, "u-1")).balance_tokens == 100
        await assert_conserved(db)

    async def test_confirm_unknown_reference(self, db, tokens) -> None:
        with pytest.raises(PendingPurchaseNotFoundError):
            await tokens.confirm_purchase(db, "u-1", "chk-missing", 200)

    async def test_cancel_then_confirm_rejected(self, db, tokens, assert_conserved) -> None:
        await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")

        cancelled = await tokens.cancel_pending_purchase(db, "u-1", "chk-1")
        again = await tokens.cancel_pending_purchase(db, "u-1", "chk-1")

        assert (cancelled.type, cancelled.status) == ("REFUND", "CANCELLED")
        assert again.id == cancelled.id
        with pytest.raises(PurchaseNotPendingError):
            await tokens.confirm_purchase(db, "u-1", "chk-1", 200)
        assert (await tokens.get_or_create_wallet(db, "u-1")).balance_tokens == 100
        await assert_conserved(db)

    async def test_reopening_cancelled_reference_rejected(self, db, tokens) -> None:
        await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        await tokens.cancel_pending_purchase(db, "u-1", "chk-1")

        with pytest.raises(PurchaseNotPendingError):
            await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")

    async def test_recreate_after_confirm_returns_settled_row(self, db, tokens) -> None:
        first = await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        await tokens.confirm_purchase(db, "u-1", "chk-1", 200)

        again = await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")

        assert again.id == first.id
        assert (again.type, again.status) == ("PURCHASE", "SETTLED")
        assert (await tokens.get_or_create_wallet(db, "u-1")).balance_tokens == 300

    async def test_cannot_cancel_confirmed(self, db, tokens) -> None:
        await tokens.create_pending_purchase(db, "u-1", 200, "chk-1")
        await tokens.confirm_purchase(db, "u-1", "chk-1", 200)
        with pytest.raises(PurchaseNotPendingError):
            await tokens.cancel_pending_purchase(db, "u-1", "chk-1")

    async def test_package_purchase_includes_bonus(self, db, tokens, assert_conserved) -> None:
        tx = await tokens.create_package_purchase(db, "u-1", "growth", "chk-9")
        assert tx.tokens == 700

        result = await tokens.confirm_purchase(db, "u-1", "chk-9", 700)
        assert result.wallet.balance_tokens == 800
        await assert_conserved(db)

    async def test_unknown_package(self, db, tokens) -> None:
        with pytest.raises(UnknownTokenPackageError):
            await tokens.create_package_purchase(db, "u-1", "platinum", "chk-1")


class TestListing:
    async def test_filter_by_type_newest_first(self, db, tokens) -> None:
        await tokens.consume_tokens(db, "u-1", "TITLE_ENGINE")
        await tokens.consume_tokens(db, "u-1", "PATTERN_ANALYSIS")

        page = await tokens.list_transactions(db, "u-1", limit=10, offset=0, tx_type="CONSUMPTION")

        assert page.total == 2
        assert [t.tokens for t in page.items] == [-10, -3]
