"""In-memory stand-ins for the repositories and the database session.

FakeSession keeps every table in ``tables``. commit() snapshots them and
rollback() restores the last snapshot, so code running under
mk_common.database.transaction behaves like it would against PostgreSQL:
a failed operation leaves nothing behind.

The in-memory repositories implement the same protocols as the SQL ones,
including the WHERE guards (0 rows -> None) and the unique indexes.
"""

import copy
import itertools
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

import pytest

from src.mk_campaign.domain.models import (
    CampaignBudgetConfig,
    CampaignBudgetState,
    PacingSnapshot,
)
from src.mk_common.enums import AccountType, TokenTransactionType, WithdrawalStatus
from src.mk_common.errors import IntegrityViolationError, WithdrawalAlreadyPendingError
from src.mk_common.events import DomainEvent
from src.mk_ledger.application.service import BalanceProjector
from src.mk_ledger.domain.models import CreatorBalance, LedgerEntry, LedgerRefs
from src.mk_tokens.domain.models import TokenTransaction, TokenWallet
from src.mk_withdrawal.domain.models import PayoutResult, StatusSummary, WithdrawalRequest


class FakeSession:
    def __init__(self) -> None:
        self.tables: dict[str, Any] = {
            "ledger_entries": [],
            "creator_balances": {},
            "campaign_budgets": {},
            "token_wallets": {},
            "token_transactions": {},
            "withdrawal_requests": {},
        }
        self._committed = copy.deepcopy(self.tables)
        self._ids = itertools.count(1)
        self.commits = 0
        self.rollbacks = 0

    def next_id(self) -> int:
        return next(self._ids)

    async def commit(self) -> None:
        self._committed = copy.deepcopy(self.tables)
        self.commits += 1

    async def rollback(self) -> None:
        self.tables = copy.deepcopy(self._committed)
        self.rollbacks += 1


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class InMemoryLedgerRepository:
    async def append_entry(
        self,
        db: FakeSession,
        account_id: str,
        account_type: str,
        entry_type: str,
        amount: int,
        balance_after: int,
        unit: str,
        refs: LedgerRefs,
    ) -> LedgerEntry:
        if amount == 0 or balance_after < 0:
            raise IntegrityViolationError(f"ledger CHECK failed: amount={amount} after={balance_after}")
        entries: list[LedgerEntry] = db.tables["ledger_entries"]
        if refs.reference_id is not None and any(
            e.account_type == account_type
            and e.entry_type == entry_type
            and e.reference_id == refs.reference_id
            for e in entries
        ):
            raise IntegrityViolationError(f"duplicate ledger reference {refs.reference_id}")
        entry = LedgerEntry(
            id=db.next_id(),
            account_id=account_id,
            account_type=account_type,
            entry_type=entry_type,
            amount=amount,
            balance_after=balance_after,
            unit=unit,
            related_campaign_id=refs.related_campaign_id,
            related_withdrawal_id=refs.related_withdrawal_id,
            reference_id=refs.reference_id,
            description=refs.description,
            created_at=datetime.now(UTC),
        )
        entries.append(entry)
        return replace(entry)

    async def find_entry_by_reference(
        self, db: FakeSession, account_type: str, entry_type: str, reference_id: str
    ) -> LedgerEntry | None:
        for e in db.tables["ledger_entries"]:
            if (e.account_type, e.entry_type, e.reference_id) == (account_type, entry_type, reference_id):
                return replace(e)
        return None

    async def sum_entries(self, db: FakeSession, account_id: str, account_type: str) -> int:
        return sum(
            e.amount
            for e in db.tables["ledger_entries"]
            if e.account_id == account_id and e.account_type == account_type
        )

    async def list_entries(
        self,
        db: FakeSession,
        account_id: str,
        account_types: list[str],
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        rows = [
            e for e in db.tables["ledger_entries"]
            if e.account_id == account_id
            and e.account_type in account_types
            and (cursor_id is None or e.id < cursor_id)
            and (entry_type is None or e.entry_type == entry_type)
        ]
        rows.sort(key=lambda e: e.id, reverse=True)
        return [replace(e) for e in rows[:limit]]

    async def get_creator_balance(self, db: FakeSession, creator_id: str) -> CreatorBalance | None:
        row = db.tables["creator_balances"].get(creator_id)
        return replace(row) if row else None

    async def lock_creator_balance(
        self, db: FakeSession, creator_id: str, currency: str
    ) -> CreatorBalance:
        return replace(self._ensure(db, creator_id, currency))

    async def credit_available(
        self, db: FakeSession, creator_id: str, amount: int, currency: str, is_earning: bool
    ) -> CreatorBalance:
        row = self._ensure(db, creator_id, currency)
        row.available_cents += amount
        if is_earning:
            row.total_earned_cents += amount
        row.version += 1
        return replace(row)

    async def debit_available(
        self, db: FakeSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        row = db.tables["creator_balances"].get(creator_id)
        if row is None or row.available_cents < amount:
            return None
        row.available_cents -= amount
        row.version += 1
        return replace(row)

    async def move_available_to_pending(
        self, db: FakeSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        row = db.tables["creator_balances"].get(creator_id)
        if row is None or row.available_cents < amount:
            return None
        row.available_cents -= amount
        row.pending_cents += amount
        row.version += 1
        return replace(row)

    async def move_pending_to_available(
        self, db: FakeSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        row = db.tables["creator_balances"].get(creator_id)
        if row is None or row.pending_cents < amount:
            return None
        row.pending_cents -= amount
        row.available_cents += amount
        row.version += 1
        return replace(row)

    async def remove_pending(
        self, db: FakeSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        row = db.tables["creator_balances"].get(creator_id)
        if row is None or row.pending_cents < amount:
            return None
        row.pending_cents -= amount
        row.version += 1
        return replace(row)

    @staticmethod
    def _ensure(db: FakeSession, creator_id: str, currency: str) -> CreatorBalance:
        balances = db.tables["creator_balances"]
        if creator_id not in balances:
            balances[creator_id] = CreatorBalance(
                creator_id=creator_id,
                available_cents=0,
                pending_cents=0,
                total_earned_cents=0,
                currency=currency,
            )
        return balances[creator_id]


# ---------------------------------------------------------------------------
# Campaign budgets
# ---------------------------------------------------------------------------


class InMemoryCampaignRepository:
    async def get_budget(self, db: FakeSession, campaign_id: str) -> CampaignBudgetState | None:
        row = db.tables["campaign_budgets"].get(campaign_id)
        return replace(row) if row else None

    async def upsert_budget(
        self, db: FakeSession, config: CampaignBudgetConfig
    ) -> CampaignBudgetState | None:
        budgets = db.tables["campaign_budgets"]
        existing = budgets.get(config.campaign_id)
        spent = existing.spent_budget_cents if existing else 0
        if existing is not None and spent > config.total_budget_cents:
            return None
        state = CampaignBudgetState(
            campaign_id=config.campaign_id,
            advertiser_id=config.advertiser_id,
            total_budget_cents=config.total_budget_cents,
            spent_budget_cents=spent,
            campaign_start_date=config.campaign_start_date,
            campaign_end_date=config.campaign_end_date,
            daily_budget_cents=config.daily_budget_cents,
            pacing_enabled=config.pacing_enabled,
            pacing_mode=config.pacing_mode,
            target_spend_per_hour_cents=config.target_spend_per_hour_cents,
            status=config.status,
            currency=config.currency,
        )
        budgets[config.campaign_id] = state
        return replace(state)

    async def increment_spend(
        self, db: FakeSession, campaign_id: str, amount: int
    ) -> CampaignBudgetState | None:
        row = db.tables["campaign_budgets"].get(campaign_id)
        if row is None or row.spent_budget_cents + amount > row.total_budget_cents:
            return None
        row.spent_budget_cents += amount
        return replace(row)

    async def list_pacing_enabled(self, db: FakeSession) -> list[CampaignBudgetState]:
        return [
            replace(b) for _, b in sorted(db.tables["campaign_budgets"].items())
            if b.pacing_enabled and b.status == "ACTIVE"
        ]

    async def list_active(self, db: FakeSession) -> list[CampaignBudgetState]:
        return [
            replace(b) for _, b in sorted(db.tables["campaign_budgets"].items())
            if b.status == "ACTIVE"
        ]

    async def save_pacing_snapshot(
        self, db: FakeSession, campaign_id: str, snapshot: PacingSnapshot
    ) -> None:
        row = db.tables["campaign_budgets"][campaign_id]
        row.delivery_progress_percent = snapshot.delivery_progress_percent
        row.is_over_delivering = snapshot.is_over_delivering
        row.is_under_delivering = snapshot.is_under_delivering
        row.last_pacing_at = snapshot.computed_at


# ---------------------------------------------------------------------------
# Token wallets
# ---------------------------------------------------------------------------


class InMemoryTokenRepository:
    async def get_wallet(self, db: FakeSession, user_id: str) -> TokenWallet | None:
        row = db.tables["token_wallets"].get(user_id)
        return replace(row) if row else None

    async def create_wallet(
        self, db: FakeSession, user_id: str, grant_tokens: int
    ) -> TokenWallet | None:
        wallets = db.tables["token_wallets"]
        if user_id in wallets:
            return None
        wallets[user_id] = TokenWallet(
            user_id=user_id, balance_tokens=grant_tokens, lifetime_granted_tokens=grant_tokens
        )
        return replace(wallets[user_id])

    async def credit_wallet(
        self, db: FakeSession, user_id: str, tokens: int, reason: str
    ) -> TokenWallet | None:
        row = db.tables["token_wallets"].get(user_id)
        if row is None:
            return None
        row.balance_tokens += tokens
        if reason == TokenTransactionType.PURCHASE:
            row.lifetime_purchased_tokens += tokens
            row.last_top_up_at = datetime.now(UTC)
        elif reason in (TokenTransactionType.BONUS, TokenTransactionType.FREE_GRANT):
            row.lifetime_granted_tokens += tokens
        return replace(row)

    async def debit_wallet(self, db: FakeSession, user_id: str, tokens: int) -> TokenWallet | None:
        row = db.tables["token_wallets"].get(user_id)
        if row is None or row.balance_tokens < tokens:
            return None
        row.balance_tokens -= tokens
        row.lifetime_consumed_tokens += tokens
        return replace(row)

    async def insert_transaction(self, db: FakeSession, tx: TokenTransaction) -> TokenTransaction:
        txs = db.tables["token_transactions"]
        if tx.reference_id is not None and any(
            t.user_id == tx.user_id and t.reference_id == tx.reference_id for t in txs.values()
        ):
            raise IntegrityViolationError(f"duplicate token reference {tx.reference_id}")
        stored = replace(tx, created_at=datetime.now(UTC))
        txs[tx.id] = stored
        return replace(stored)

    async def find_transaction_by_reference(
        self, db: FakeSession, user_id: str, reference_id: str, for_update: bool = False
    ) -> TokenTransaction | None:
        for t in db.tables["token_transactions"].values():
            if t.user_id == user_id and t.reference_id == reference_id:
                return replace(t)
        return None

    async def update_transaction(
        self, db: FakeSession, tx_id: str, tx_type: str, status: str, description: str | None
    ) -> TokenTransaction:
        row = db.tables["token_transactions"][tx_id]
        row.type = tx_type
        row.status = status
        if description is not None:
            row.description = description
        return replace(row)

    async def list_transactions(
        self,
        db: FakeSession,
        user_id: str,
        limit: int,
        offset: int,
        tx_type: str | None,
    ) -> tuple[list[TokenTransaction], int]:
        rows = [
            t for t in db.tables["token_transactions"].values()
            if t.user_id == user_id and (tx_type is None or t.type == tx_type)
        ]
        rows.reverse()
        return [replace(t) for t in rows[offset:offset + limit]], len(rows)


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


_ACTIVE = (WithdrawalStatus.PENDING.value, WithdrawalStatus.PROCESSING.value)


class InMemoryWithdrawalRepository:
    async def create(self, db: FakeSession, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        table = db.tables["withdrawal_requests"]
        if any(w.creator_id == withdrawal.creator_id and w.status in _ACTIVE for w in table.values()):
            raise WithdrawalAlreadyPendingError()
        stored = replace(withdrawal, created_at=datetime.now(UTC))
        table[withdrawal.id] = stored
        return replace(stored)

    async def get(
        self, db: FakeSession, withdrawal_id: str, for_update: bool = False
    ) -> WithdrawalRequest | None:
        row = db.tables["withdrawal_requests"].get(withdrawal_id)
        return replace(row) if row else None

    async def find_active_for_creator(
        self, db: FakeSession, creator_id: str
    ) -> WithdrawalRequest | None:
        for w in db.tables["withdrawal_requests"].values():
            if w.creator_id == creator_id and w.status in _ACTIVE:
                return replace(w)
        return None

    async def update_status(
        self,
        db: FakeSession,
        withdrawal_id: str,
        status: str,
        provider_reference: str | None = None,
        failure_reason: str | None = None,
        processed_at: datetime | None = None,
    ) -> WithdrawalRequest:
        row = db.tables["withdrawal_requests"][withdrawal_id]
        row.status = status
        row.provider_reference = provider_reference or row.provider_reference
        row.failure_reason = failure_reason or row.failure_reason
        row.processed_at = processed_at or row.processed_at
        return replace(row)

    async def list_requests(
        self,
        db: FakeSession,
        creator_id: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[WithdrawalRequest], int]:
        rows = [
            w for w in db.tables["withdrawal_requests"].values()
            if (creator_id is None or w.creator_id == creator_id)
            and (status is None or w.status == status)
        ]
        rows.reverse()
        return [replace(w) for w in rows[offset:offset + limit]], len(rows)

    async def summarize_by_status(self, db: FakeSession) -> list[StatusSummary]:
        summary: dict[str, StatusSummary] = {}
        for w in db.tables["withdrawal_requests"].values():
            item = summary.setdefault(w.status, StatusSummary(w.status, 0, 0))
            item.count += 1
            item.amount_cents += w.amount_cents
        return [summary[k] for k in sorted(summary)]


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class RecordingPayoutProvider:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, int, str]] = []

    async def create_payout(
        self, user_id: str, amount_cents: int, withdrawal_request_id: str
    ) -> PayoutResult:
        self.calls.append((user_id, amount_cents, withdrawal_request_id))
        if self.error is not None:
            raise self.error
        return PayoutResult(payout_id=f"po_{withdrawal_request_id}")


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[DomainEvent] = []

    async def dispatch(self, event: DomainEvent) -> None:
        if self.fail:
            raise RuntimeError("notification service down")
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.event_type for e in self.events]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db() -> FakeSession:
    return FakeSession()


@pytest.fixture
def ledger_repo() -> InMemoryLedgerRepository:
    return InMemoryLedgerRepository()


@pytest.fixture
def campaign_repo() -> InMemoryCampaignRepository:
    return InMemoryCampaignRepository()


@pytest.fixture
def token_repo() -> InMemoryTokenRepository:
    return InMemoryTokenRepository()


@pytest.fixture
def withdrawal_repo() -> InMemoryWithdrawalRepository:
    return InMemoryWithdrawalRepository()


@pytest.fixture
def projector(
    ledger_repo: InMemoryLedgerRepository,
    campaign_repo: InMemoryCampaignRepository,
    token_repo: InMemoryTokenRepository,
) -> BalanceProjector:
    return BalanceProjector(
        ledger_repo=ledger_repo, campaign_repo=campaign_repo, wallet_repo=token_repo, currency="EUR"
    )


@pytest.fixture
def assert_conserved(ledger_repo: InMemoryLedgerRepository):
    """Every stored balance equals the sum of its ledger entries."""

    async def check(db: FakeSession) -> None:
        for creator_id, row in db.tables["creator_balances"].items():
            available = await ledger_repo.sum_entries(db, creator_id, AccountType.CREATOR_BALANCE.value)
            pending = await ledger_repo.sum_entries(db, creator_id, AccountType.CREATOR_PENDING.value)
            assert row.available_cents == available, creator_id
            assert row.pending_cents == pending, creator_id
            assert row.available_cents >= 0 and row.pending_cents >= 0
        for user_id, wallet in db.tables["token_wallets"].items():
            ledger = await ledger_repo.sum_entries(db, user_id, AccountType.TOKEN_WALLET.value)
            settled = sum(
                t.tokens for t in db.tables["token_transactions"].values()
                if t.user_id == user_id and t.status == "SETTLED"
            )
            assert wallet.balance_tokens == ledger == settled, user_id
        for campaign_id, budget in db.tables["campaign_budgets"].items():
            spent = await ledger_repo.sum_entries(db, campaign_id, AccountType.CAMPAIGN_BUDGET.value)
            assert budget.spent_budget_cents == spent, campaign_id
            assert budget.spent_budget_cents <= budget.total_budget_cents

    return check


@pytest.fixture
def payout_provider() -> RecordingPayoutProvider:
    return RecordingPayoutProvider()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
