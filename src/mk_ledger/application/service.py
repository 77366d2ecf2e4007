"""BalanceProjector: the only writer of creator balances and the ledger.

Two layers:

* ``*_in_tx`` / reservation methods are building blocks. They mutate a
  projection row and append the matching ledger entries, but never open or
  commit a transaction; the caller (e.g. the withdrawal state machine) wraps
  several of them in one ``transaction(db)`` block.
* ``credit`` / ``debit`` / ``adjust`` / ``record_earning`` are complete
  operations that own their transaction.

Ledger layout per creator:
  CREATOR_BALANCE entries sum to available_cents
  CREATOR_PENDING entries sum to pending_cents
Moving money between the two always appends one entry on each side.
"""

import logging
from typing import NoReturn

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_campaign.domain.repository import CampaignBudgetRepositoryProtocol
from src.mk_campaign.infrastructure.persistence import CampaignBudgetRepository
from src.mk_common.database import transaction
from src.mk_common.enums import AccountType, LedgerEntryType, value_of
from src.mk_common.errors import (
    BudgetExhaustedError,
    CampaignNotFoundError,
    DuplicateEventError,
    InsufficientFundsError,
    IntegrityViolationError,
    InvalidAmountError,
    UnsupportedAccountTypeError,
)
from src.mk_ledger.application.schemas import (
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.mk_ledger.domain.models import (
    CreatorBalance,
    EarningResult,
    LedgerRefs,
    ProjectedBalance,
)
from src.mk_ledger.domain.repository import LedgerRepositoryProtocol
from src.mk_ledger.infrastructure.persistence import LedgerRepository
from src.mk_tokens.domain.repository import TokenWalletRepositoryProtocol
from src.mk_tokens.infrastructure.persistence import TokenWalletRepository

logger = logging.getLogger(__name__)

TOKENS_UNIT = "TOKENS"


class BalanceProjector:
    def __init__(
        self,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        campaign_repo: CampaignBudgetRepositoryProtocol | None = None,
        wallet_repo: TokenWalletRepositoryProtocol | None = None,
        currency: str = "EUR",
    ) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._campaigns: CampaignBudgetRepositoryProtocol = campaign_repo or CampaignBudgetRepository()
        self._wallets: TokenWalletRepositoryProtocol = wallet_repo or TokenWalletRepository()
        self._currency = currency

    # ------------------------------------------------------------------
    # Reads (advisory, no locking)
    # ------------------------------------------------------------------

    async def get_creator_balance(self, db: AsyncSession, creator_id: str) -> CreatorBalance:
        """Cached projection; a creator with no row yet has a zero balance."""
        balance = await self._ledger.get_creator_balance(db, creator_id)
        if balance is None:
            return CreatorBalance(
                creator_id=creator_id,
                available_cents=0,
                pending_cents=0,
                total_earned_cents=0,
                currency=self._currency,
            )
        return balance

    async def project_balance(
        self, db: AsyncSession, account_id: str, account_type: str
    ) -> ProjectedBalance:
        if account_type in (AccountType.CREATOR_BALANCE, AccountType.CREATOR_PENDING):
            creator = await self.get_creator_balance(db, account_id)
            value = (
                creator.available_cents
                if account_type == AccountType.CREATOR_BALANCE
                else creator.pending_cents
            )
            return ProjectedBalance(account_id, account_type, value, creator.currency)
        if account_type == AccountType.TOKEN_WALLET:
            wallet = await self._wallets.get_wallet(db, account_id)
            return ProjectedBalance(
                account_id, account_type, wallet.balance_tokens if wallet else 0, TOKENS_UNIT
            )
        if account_type == AccountType.CAMPAIGN_BUDGET:
            budget = await self._campaigns.get_budget(db, account_id)
            if budget is None:
                raise CampaignNotFoundError(account_id)
            return ProjectedBalance(
                account_id, account_type, budget.spent_budget_cents, budget.currency
            )
        raise UnsupportedAccountTypeError(account_type)

    async def recompute_balance(
        self, db: AsyncSession, account_id: str, account_type: str
    ) -> int:
        """Balance derived from the ledger alone (sum of signed entries)."""
        return await self._ledger.sum_entries(db, account_id, account_type)

    async def list_ledger(
        self,
        db: AsyncSession,
        creator_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._ledger.list_entries(
            db,
            creator_id,
            [AccountType.CREATOR_BALANCE.value, AccountType.CREATOR_PENDING.value],
            cursor_id,
            limit + 1,
            entry_type,
        )
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[LedgerEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # In-transaction building blocks
    # ------------------------------------------------------------------

    async def lock_creator(self, db: AsyncSession, creator_id: str) -> CreatorBalance:
        """SELECT ... FOR UPDATE on the creator row, provisioning it if needed."""
        return await self._ledger.lock_creator_balance(db, creator_id, self._currency)

    async def credit_in_tx(
        self,
        db: AsyncSession,
        creator_id: str,
        amount: int,
        entry_type: str,
        refs: LedgerRefs,
    ) -> CreatorBalance:
        _require_positive(amount)
        balance = await self._ledger.credit_available(
            db, creator_id, amount, self._currency, is_earning=entry_type == LedgerEntryType.EARNING
        )
        await self._ledger.append_entry(
            db, creator_id, AccountType.CREATOR_BALANCE.value, value_of(entry_type),
            amount, balance.available_cents, balance.currency, refs,
        )
        return balance

    async def debit_in_tx(
        self,
        db: AsyncSession,
        creator_id: str,
        amount: int,
        entry_type: str,
        refs: LedgerRefs,
    ) -> CreatorBalance:
        _require_positive(amount)
        balance = await self._ledger.debit_available(db, creator_id, amount)
        if balance is None:
            await self._raise_insufficient(db, creator_id, amount)
        await self._ledger.append_entry(
            db, creator_id, AccountType.CREATOR_BALANCE.value, value_of(entry_type),
            -amount, balance.available_cents, balance.currency, refs,
        )
        return balance

    async def reserve_for_withdrawal(
        self, db: AsyncSession, creator_id: str, amount: int, withdrawal_id: str
    ) -> CreatorBalance:
        """available -> pending, one WITHDRAWAL_HOLD entry on each side."""
        _require_positive(amount)
        balance = await self._ledger.move_available_to_pending(db, creator_id, amount)
        if balance is None:
            await self._raise_insufficient(db, creator_id, amount)
        refs = LedgerRefs(related_withdrawal_id=withdrawal_id, description="Withdrawal reserved")
        hold = LedgerEntryType.WITHDRAWAL_HOLD.value
        await self._ledger.append_entry(
            db, creator_id, AccountType.CREATOR_BALANCE.value, hold,
            -amount, balance.available_cents, balance.currency, refs,
        )
        await self._ledger.append_entry(
            db, creator_id, AccountType.CREATOR_PENDING.value, hold,
            amount, balance.pending_cents, balance.currency, refs,
        )
        return balance

    async def release_reservation(
        self,
        db: AsyncSession,
        creator_id: str,
        amount: int,
        withdrawal_id: str,
        description: str,
    ) -> CreatorBalance:
        """pending -> available (compensation for a cancelled or failed withdrawal)."""
        balance = await self._ledger.move_pending_to_available(db, creator_id, amount)
        if balance is None:
            raise IntegrityViolationError(
                f"Withdrawal {withdrawal_id}: pending funds of creator {creator_id} "
                f"are below the reserved {amount} cents"
            )
        refs = LedgerRefs(related_withdrawal_id=withdrawal_id, description=description)
        release = LedgerEntryType.WITHDRAWAL_RELEASE.value
        await self._ledger.append_entry(
            db, creator_id, AccountType.CREATOR_PENDING.value, release,
            -amount, balance.pending_cents, balance.currency, refs,
        )
        await self._ledger.append_entry(
            db, creator_id, AccountType.CREATOR_BALANCE.value, release,
            amount, balance.available_cents, balance.currency, refs,
        )
        return balance

    async def settle_reservation(
        self,
        db: AsyncSession,
        creator_id: str,
        amount: int,
        fee: int,
        withdrawal_id: str,
    ) -> CreatorBalance:
        """pending -> out of the platform: payout (amount - fee) plus platform fee."""
        balance = await self._ledger.remove_pending(db, creator_id, amount)
        if balance is None:
            raise IntegrityViolationError(
                f"Withdrawal {withdrawal_id}: pending funds of creator {creator_id} "
                f"are below the reserved {amount} cents"
            )
        refs = LedgerRefs(related_withdrawal_id=withdrawal_id, description="Withdrawal paid out")
        await self._ledger.append_entry(
            db, creator_id, AccountType.CREATOR_PENDING.value,
            LedgerEntryType.WITHDRAWAL_PAYOUT.value,
            -(amount - fee), balance.pending_cents + fee, balance.currency, refs,
        )
        if fee > 0:
            await self._ledger.append_entry(
                db, creator_id, AccountType.CREATOR_PENDING.value,
                LedgerEntryType.PLATFORM_FEE.value,
                -fee, balance.pending_cents, balance.currency,
                LedgerRefs(related_withdrawal_id=withdrawal_id, description="Platform fee"),
            )
        return balance

    # ------------------------------------------------------------------
    # Complete operations (own their transaction)
    # ------------------------------------------------------------------

    async def credit(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        entry_type: str,
        refs: LedgerRefs | None = None,
    ) -> int:
        """Credit a creator's available balance. Returns the new available balance."""
        async with transaction(db):
            balance = await self.credit_in_tx(db, account_id, amount, entry_type, refs or LedgerRefs())
        return balance.available_cents

    async def debit(
        self,
        db: AsyncSession,
        account_id: str,
        amount: int,
        entry_type: str,
        refs: LedgerRefs | None = None,
    ) -> int:
        """Debit a creator's available balance. Raises InsufficientFundsError, nothing written."""
        async with transaction(db):
            balance = await self.debit_in_tx(db, account_id, amount, entry_type, refs or LedgerRefs())
        return balance.available_cents

    async def adjust(
        self, db: AsyncSession, creator_id: str, amount: int, description: str, actor_id: str
    ) -> int:
        """Signed manual correction by an operator."""
        if amount == 0:
            raise InvalidAmountError(amount)
        refs = LedgerRefs(description=f"{description} (by {actor_id})")
        if amount > 0:
            new_available = await self.credit(db, creator_id, amount, LedgerEntryType.ADJUSTMENT.value, refs)
        else:
            new_available = await self.debit(db, creator_id, -amount, LedgerEntryType.ADJUSTMENT.value, refs)
        logger.info(
            "Manual adjustment creator=%s amount=%d by=%s new_available=%d",
            creator_id, amount, actor_id, new_available,
        )
        return new_available

    async def record_earning(
        self,
        db: AsyncSession,
        creator_id: str,
        campaign_id: str,
        amount: int,
        event_id: str,
    ) -> EarningResult:
        """Pay a creator for one validated event out of the campaign budget.

        Campaign spend, creator credit and both ledger entries commit together.
        The spend UPDATE locks the campaign row first, which serializes
        concurrent payouts per campaign and makes the duplicate check below
        see every earlier commit for the same event.
        """
        _require_positive(amount)
        async with transaction(db):
            budget = await self._campaigns.increment_spend(db, campaign_id, amount)
            if budget is None:
                if await self._campaigns.get_budget(db, campaign_id) is None:
                    raise CampaignNotFoundError(campaign_id)
                raise BudgetExhaustedError(campaign_id, amount)

            earning_type = LedgerEntryType.EARNING.value
            if await self._ledger.find_entry_by_reference(
                db, AccountType.CREATOR_BALANCE.value, earning_type, event_id
            ):
                raise DuplicateEventError(event_id)

            spend_entry = await self._ledger.append_entry(
                db, campaign_id, AccountType.CAMPAIGN_BUDGET.value,
                LedgerEntryType.CAMPAIGN_SPEND.value,
                amount, budget.spent_budget_cents, budget.currency,
                LedgerRefs(related_campaign_id=campaign_id, reference_id=event_id),
            )
            balance = await self._ledger.credit_available(
                db, creator_id, amount, self._currency, is_earning=True
            )
            earning_entry = await self._ledger.append_entry(
                db, creator_id, AccountType.CREATOR_BALANCE.value, earning_type,
                amount, balance.available_cents, balance.currency,
                LedgerRefs(related_campaign_id=campaign_id, reference_id=event_id),
            )

        logger.info(
            "Earning recorded creator=%s campaign=%s amount=%d event=%s",
            creator_id, campaign_id, amount, event_id,
        )
        return EarningResult(
            creator_balance=balance,
            campaign_spent_cents=budget.spent_budget_cents,
            earning_entry_id=earning_entry.id,
            spend_entry_id=spend_entry.id,
        )

    async def _raise_insufficient(self, db: AsyncSession, creator_id: str, amount: int) -> NoReturn:
        current = await self._ledger.get_creator_balance(db, creator_id)
        raise InsufficientFundsError(amount, current.available_cents if current else 0)


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmountError(amount)
