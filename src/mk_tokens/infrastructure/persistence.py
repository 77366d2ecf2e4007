"""TokenWalletRepository: raw-SQL implementation of TokenWalletRepositoryProtocol.

Same discipline as creator balances: every wallet mutation is one guarded
UPDATE ... RETURNING, and 0 rows means the guard (balance_tokens >= n) failed.
"""

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.enums import TokenTransactionType
from src.mk_common.errors import (
    DuplicateTokenReferenceError,
    IntegrityViolationError,
    InternalError,
)
from src.mk_tokens.domain.models import TokenTransaction, TokenWallet

_WALLET_COLUMNS = """
    user_id, balance_tokens, lifetime_purchased_tokens, lifetime_consumed_tokens,
    lifetime_granted_tokens, last_top_up_at, created_at, updated_at
"""

_TX_COLUMNS = "id, user_id, type, tokens, status, reference_id, description, created_at"

_GET_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM token_wallets
    WHERE user_id = :user_id
""")

# Loser of a concurrent first-access race gets 0 rows and re-reads.
_CREATE_WALLET_SQL = text(f"""
    INSERT INTO token_wallets (user_id, balance_tokens, lifetime_granted_tokens)
    VALUES (:user_id, :grant, :grant)
    ON CONFLICT (user_id) DO NOTHING
    RETURNING {_WALLET_COLUMNS}
""")

_CREDIT_WALLET_SQL = text(f"""
    UPDATE token_wallets
    SET balance_tokens = balance_tokens + :tokens,
        lifetime_purchased_tokens = lifetime_purchased_tokens + :purchased,
        lifetime_granted_tokens = lifetime_granted_tokens + :granted,
        last_top_up_at = CASE WHEN :purchased > 0 THEN NOW() ELSE last_top_up_at END,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_WALLET_COLUMNS}
""")

_DEBIT_WALLET_SQL = text(f"""
    UPDATE token_wallets
    SET balance_tokens = balance_tokens - :tokens,
        lifetime_consumed_tokens = lifetime_consumed_tokens + :tokens,
        updated_at = NOW()
    WHERE user_id = :user_id AND balance_tokens >= :tokens
    RETURNING {_WALLET_COLUMNS}
""")

_INSERT_TX_SQL = text(f"""
    INSERT INTO token_transactions
        (id, user_id, type, tokens, status, reference_id, description)
    VALUES
        (:id, :user_id, :type, :tokens, :status, :reference_id, :description)
    RETURNING {_TX_COLUMNS}
""")

_FIND_TX_BY_REFERENCE_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM token_transactions
    WHERE user_id = :user_id AND reference_id = :reference_id
""")

_FIND_TX_BY_REFERENCE_FOR_UPDATE_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM token_transactions
    WHERE user_id = :user_id AND reference_id = :reference_id
    FOR UPDATE
""")

_UPDATE_TX_SQL = text(f"""
    UPDATE token_transactions
    SET type = :type, status = :status, description = COALESCE(:description, description)
    WHERE id = :id
    RETURNING {_TX_COLUMNS}
""")

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM token_transactions
    WHERE user_id = :user_id
      AND (CAST(:type AS VARCHAR) IS NULL OR type = :type)
    ORDER BY created_at DESC, id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_TX_SQL = text("""
    SELECT COUNT(*)
    FROM token_transactions
    WHERE user_id = :user_id
      AND (CAST(:type AS VARCHAR) IS NULL OR type = :type)
""")


def _row_to_wallet(row: object) -> TokenWallet:
    return TokenWallet(
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance_tokens=row.balance_tokens,  # type: ignore[attr-defined]
        lifetime_purchased_tokens=row.lifetime_purchased_tokens,  # type: ignore[attr-defined]
        lifetime_consumed_tokens=row.lifetime_consumed_tokens,  # type: ignore[attr-defined]
        lifetime_granted_tokens=row.lifetime_granted_tokens,  # type: ignore[attr-defined]
        last_top_up_at=row.last_top_up_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_tx(row: object) -> TokenTransaction:
    return TokenTransaction(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        type=row.type,  # type: ignore[attr-defined]
        tokens=row.tokens,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class TokenWalletRepository:
    async def get_wallet(self, db: AsyncSession, user_id: str) -> TokenWallet | None:
        result = await db.execute(_GET_WALLET_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def create_wallet(
        self, db: AsyncSession, user_id: str, grant_tokens: int
    ) -> TokenWallet | None:
        result = await db.execute(_CREATE_WALLET_SQL, {"user_id": user_id, "grant": grant_tokens})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def credit_wallet(
        self, db: AsyncSession, user_id: str, tokens: int, reason: str
    ) -> TokenWallet | None:
        purchased = tokens if reason == TokenTransactionType.PURCHASE else 0
        granted = (
            tokens
            if reason in (TokenTransactionType.BONUS, TokenTransactionType.FREE_GRANT)
            else 0
        )
        result = await db.execute(
            _CREDIT_WALLET_SQL,
            {"user_id": user_id, "tokens": tokens, "purchased": purchased, "granted": granted},
        )
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def debit_wallet(
        self, db: AsyncSession, user_id: str, tokens: int
    ) -> TokenWallet | None:
        result = await db.execute(_DEBIT_WALLET_SQL, {"user_id": user_id, "tokens": tokens})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def insert_transaction(self, db: AsyncSession, tx: TokenTransaction) -> TokenTransaction:
        try:
            result = await db.execute(
                _INSERT_TX_SQL,
                {
                    "id": tx.id,
                    "user_id": tx.user_id,
                    "type": tx.type,
                    "tokens": tx.tokens,
                    "status": tx.status,
                    "reference_id": tx.reference_id,
                    "description": tx.description,
                },
            )
        except IntegrityError as e:
            # A concurrent request took the same reference first
            if "uq_token_tx_user_reference" in str(e.orig):
                raise DuplicateTokenReferenceError(tx.reference_id or "") from e
            raise IntegrityViolationError(f"Token transaction rejected: {e.orig}") from e
        row = result.fetchone()
        if row is None:
            raise InternalError("Token transaction insert returned no rows")
        return _row_to_tx(row)

    async def find_transaction_by_reference(
        self, db: AsyncSession, user_id: str, reference_id: str, for_update: bool = False
    ) -> TokenTransaction | None:
        sql = _FIND_TX_BY_REFERENCE_FOR_UPDATE_SQL if for_update else _FIND_TX_BY_REFERENCE_SQL
        result = await db.execute(sql, {"user_id": user_id, "reference_id": reference_id})
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def update_transaction(
        self, db: AsyncSession, tx_id: str, tx_type: str, status: str, description: str | None
    ) -> TokenTransaction:
        result = await db.execute(
            _UPDATE_TX_SQL,
            {"id": tx_id, "type": tx_type, "status": status, "description": description},
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Token transaction vanished during update: {tx_id}")
        return _row_to_tx(row)

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int,
        offset: int,
        tx_type: str | None,
    ) -> tuple[list[TokenTransaction], int]:
        params = {"user_id": user_id, "type": tx_type}
        rows = (
            await db.execute(_LIST_TX_SQL, {**params, "limit": limit, "offset": offset})
        ).fetchall()
        total = (await db.execute(_COUNT_TX_SQL, params)).scalar_one()
        return [_row_to_tx(row) for row in rows], int(total)
