"""LedgerRepository: concrete implementation of LedgerRepositoryProtocol.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING.
The guard lives in the WHERE clause, so the check and the write are one
statement under one row lock; a result of 0 rows means the guard failed
(insufficient funds) and nothing was written.

Transaction ownership: The CALLER (application service) is responsible for
the transaction via `async with transaction(db)`.
"""

from sqlalchemy import TextClause, bindparam, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.errors import IntegrityViolationError, InternalError
from src.mk_ledger.domain.models import CreatorBalance, LedgerEntry, LedgerRefs

_BALANCE_COLUMNS = """
    creator_id, available_cents, pending_cents, total_earned_cents,
    currency, version, created_at, updated_at
"""

_LEDGER_COLUMNS = """
    id, account_id, account_type, entry_type, amount, balance_after, unit,
    related_campaign_id, related_withdrawal_id, reference_id, description, created_at
"""

# ---------------------------------------------------------------------------
# SQL: ledger_entries
# ---------------------------------------------------------------------------

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO ledger_entries
        (account_id, account_type, entry_type, amount, balance_after, unit,
         related_campaign_id, related_withdrawal_id, reference_id, description)
    VALUES
        (:account_id, :account_type, :entry_type, :amount, :balance_after, :unit,
         :related_campaign_id, :related_withdrawal_id, :reference_id, :description)
    RETURNING {_LEDGER_COLUMNS}
""")

_FIND_BY_REFERENCE_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE account_type = :account_type
      AND entry_type = :entry_type
      AND reference_id = :reference_id
""")

_SUM_ENTRIES_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM ledger_entries
    WHERE account_id = :account_id AND account_type = :account_type
""")

_LIST_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE account_id = :account_id
      AND account_type IN :account_types
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:entry_type AS VARCHAR) IS NULL OR entry_type = :entry_type)
    ORDER BY id DESC
    LIMIT :limit
""").bindparams(bindparam("account_types", expanding=True))

# ---------------------------------------------------------------------------
# SQL: creator_balances
# ---------------------------------------------------------------------------

_GET_BALANCE_SQL = text(f"""
    SELECT {_BALANCE_COLUMNS}
    FROM creator_balances
    WHERE creator_id = :creator_id
""")

_ENSURE_BALANCE_SQL = text("""
    INSERT INTO creator_balances (creator_id, currency)
    VALUES (:creator_id, :currency)
    ON CONFLICT (creator_id) DO NOTHING
""")

_LOCK_BALANCE_SQL = text(f"""
    SELECT {_BALANCE_COLUMNS}
    FROM creator_balances
    WHERE creator_id = :creator_id
    FOR UPDATE
""")

_CREDIT_AVAILABLE_SQL = text(f"""
    INSERT INTO creator_balances (creator_id, currency, available_cents, total_earned_cents)
    VALUES (:creator_id, :currency, :amount, :earned)
    ON CONFLICT (creator_id) DO UPDATE
    SET available_cents = creator_balances.available_cents + EXCLUDED.available_cents,
        total_earned_cents = creator_balances.total_earned_cents + EXCLUDED.total_earned_cents,
        version = creator_balances.version + 1,
        updated_at = NOW()
    RETURNING {_BALANCE_COLUMNS}
""")

_DEBIT_AVAILABLE_SQL = text(f"""
    UPDATE creator_balances
    SET available_cents = available_cents - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE creator_id = :creator_id AND available_cents >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")

_AVAILABLE_TO_PENDING_SQL = text(f"""
    UPDATE creator_balances
    SET available_cents = available_cents - :amount,
        pending_cents   = pending_cents   + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE creator_id = :creator_id AND available_cents >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")

_PENDING_TO_AVAILABLE_SQL = text(f"""
    UPDATE creator_balances
    SET available_cents = available_cents + :amount,
        pending_cents   = pending_cents   - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE creator_id = :creator_id AND pending_cents >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")

_REMOVE_PENDING_SQL = text(f"""
    UPDATE creator_balances
    SET pending_cents = pending_cents - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE creator_id = :creator_id AND pending_cents >= :amount
    RETURNING {_BALANCE_COLUMNS}
""")


def _row_to_balance(row: object) -> CreatorBalance:
    return CreatorBalance(
        creator_id=row.creator_id,  # type: ignore[attr-defined]
        available_cents=row.available_cents,  # type: ignore[attr-defined]
        pending_cents=row.pending_cents,  # type: ignore[attr-defined]
        total_earned_cents=row.total_earned_cents,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        account_id=row.account_id,  # type: ignore[attr-defined]
        account_type=row.account_type,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        unit=row.unit,  # type: ignore[attr-defined]
        related_campaign_id=row.related_campaign_id,  # type: ignore[attr-defined]
        related_withdrawal_id=row.related_withdrawal_id,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete repository: all operations atomic at the SQL level."""

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
    ) -> LedgerEntry:
        try:
            result = await db.execute(
                _INSERT_LEDGER_SQL,
                {
                    "account_id": account_id,
                    "account_type": account_type,
                    "entry_type": entry_type,
                    "amount": amount,
                    "balance_after": balance_after,
                    "unit": unit,
                    "related_campaign_id": refs.related_campaign_id,
                    "related_withdrawal_id": refs.related_withdrawal_id,
                    "reference_id": refs.reference_id,
                    "description": refs.description,
                },
            )
        except IntegrityError as e:
            raise IntegrityViolationError(
                f"Ledger append rejected for {account_type}/{account_id} "
                f"{entry_type} ref={refs.reference_id}: {e.orig}"
            ) from e
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(row)

    async def find_entry_by_reference(
        self, db: AsyncSession, account_type: str, entry_type: str, reference_id: str
    ) -> LedgerEntry | None:
        result = await db.execute(
            _FIND_BY_REFERENCE_SQL,
            {"account_type": account_type, "entry_type": entry_type, "reference_id": reference_id},
        )
        row = result.fetchone()
        return _row_to_ledger(row) if row else None

    async def sum_entries(
        self, db: AsyncSession, account_id: str, account_type: str
    ) -> int:
        result = await db.execute(
            _SUM_ENTRIES_SQL, {"account_id": account_id, "account_type": account_type}
        )
        return int(result.scalar_one())

    async def list_entries(
        self,
        db: AsyncSession,
        account_id: str,
        account_types: list[str],
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "account_id": account_id,
                "account_types": account_types,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def get_creator_balance(
        self, db: AsyncSession, creator_id: str
    ) -> CreatorBalance | None:
        result = await db.execute(_GET_BALANCE_SQL, {"creator_id": creator_id})
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def lock_creator_balance(
        self, db: AsyncSession, creator_id: str, currency: str
    ) -> CreatorBalance:
        """Provision the row if missing, then take SELECT ... FOR UPDATE on it."""
        await db.execute(_ENSURE_BALANCE_SQL, {"creator_id": creator_id, "currency": currency})
        result = await db.execute(_LOCK_BALANCE_SQL, {"creator_id": creator_id})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Creator balance vanished after provisioning: {creator_id}")
        return _row_to_balance(row)

    async def credit_available(
        self, db: AsyncSession, creator_id: str, amount: int, currency: str, is_earning: bool
    ) -> CreatorBalance:
        result = await db.execute(
            _CREDIT_AVAILABLE_SQL,
            {
                "creator_id": creator_id,
                "currency": currency,
                "amount": amount,
                "earned": amount if is_earning else 0,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Credit returned no rows for creator {creator_id}")
        return _row_to_balance(row)

    async def debit_available(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        return await self._guarded_update(db, _DEBIT_AVAILABLE_SQL, creator_id, amount)

    async def move_available_to_pending(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        return await self._guarded_update(db, _AVAILABLE_TO_PENDING_SQL, creator_id, amount)

    async def move_pending_to_available(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        return await self._guarded_update(db, _PENDING_TO_AVAILABLE_SQL, creator_id, amount)

    async def remove_pending(
        self, db: AsyncSession, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        return await self._guarded_update(db, _REMOVE_PENDING_SQL, creator_id, amount)

    async def _guarded_update(
        self, db: AsyncSession, statement: TextClause, creator_id: str, amount: int
    ) -> CreatorBalance | None:
        """Run a WHERE-guarded UPDATE. None means the guard rejected it."""
        result = await db.execute(statement, {"creator_id": creator_id, "amount": amount})
        row = result.fetchone()
        return _row_to_balance(row) if row else None
