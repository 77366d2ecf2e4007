"""Repository Protocol: dependency inversion for testability.

Unit tests inject an in-memory implementation that conforms to this Protocol.
Infrastructure layer provides the real implementation.

None of these methods commit. Each runs inside the caller's transaction
(mk_common.database.transaction), so a balance mutation and the ledger
entry describing it land or vanish together.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_ledger.domain.models import CreatorBalance, LedgerEntry, LedgerRefs


class LedgerRepositoryProtocol(Protocol):
    # --- ledger_entries (append-only) ---

    async def append_entry(
        self,
        db: AsyncSession,
        account_id: str,
        account_type: str,
        entry_type: str,
        amount: int,
        balance_after: int,
        unit: str,
        refs: LedgerRefs,
    ) -> LedgerEntry: ...

    async def find_entry_by_reference(
        self, db: AsyncSession, account_type: str, entry_type: str, reference_id: str
    ) -> LedgerEntry | None: ...

    async def sum_entries(
        self, db: AsyncSession, account_id: str, account_type: str
    ) -> int: ...

    async def list_entries(
        self,
        db: AsyncSession,
        account_id: str,
        account_types: list[str],
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...

    # --- creator_balances (projection) ---

    async def get_creator_balance(
        self, db: AsyncSession, creator_id: str
    ) -> CreatorBalance | None: ...

    async def lock_creator_balance(
        self, db: AsyncSession, creator_id: str, currency: str
    ) -> CreatorBalance: ...

    async def credit_available(
        self, db: AsyncSession, creator_id: str, amount: int, currency: str, is_earning: bool
    ) -> CreatorBalance: ...

    async def debit_available(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None: ...

    async def move_available_to_pending(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None: ...

    async def move_pending_to_available(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None: ...

    async def remove_pending(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None: ...
