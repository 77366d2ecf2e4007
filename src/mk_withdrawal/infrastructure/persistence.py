"""WithdrawalRepository: raw-SQL implementation of WithdrawalRepositoryProtocol."""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.errors import (
    IntegrityViolationError,
    InternalError,
    WithdrawalAlreadyPendingError,
)
from src.mk_withdrawal.domain.models import StatusSummary, WithdrawalRequest

_COLUMNS = """
    id, creator_id, amount_cents, platform_fee_cents, net_amount_cents, currency,
    status, provider_reference, failure_reason, created_at, processed_at, updated_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO withdrawal_requests
        (id, creator_id, amount_cents, platform_fee_cents, net_amount_cents, currency, status)
    VALUES
        (:id, :creator_id, :amount_cents, :platform_fee_cents, :net_amount_cents, :currency, :status)
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM withdrawal_requests WHERE id = :id")

_GET_FOR_UPDATE_SQL = text(f"SELECT {_COLUMNS} FROM withdrawal_requests WHERE id = :id FOR UPDATE")

_FIND_ACTIVE_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM withdrawal_requests
    WHERE creator_id = :creator_id AND status IN ('PENDING', 'PROCESSING')
    LIMIT 1
""")

_UPDATE_STATUS_SQL = text(f"""
    UPDATE withdrawal_requests
    SET status = :status,
        provider_reference = COALESCE(:provider_reference, provider_reference),
        failure_reason = COALESCE(:failure_reason, failure_reason),
        processed_at = COALESCE(:processed_at, processed_at),
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_COLUMNS}
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM withdrawal_requests
    WHERE (CAST(:creator_id AS VARCHAR) IS NULL OR creator_id = :creator_id)
      AND (CAST(:status AS VARCHAR) IS NULL OR status = :status)
    ORDER BY created_at DESC, id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_SQL = text("""
    SELECT COUNT(*)
    FROM withdrawal_requests
    WHERE (CAST(:creator_id AS VARCHAR) IS NULL OR creator_id = :creator_id)
      AND (CAST(:status AS VARCHAR) IS NULL OR status = :status)
""")

_SUMMARY_SQL = text("""
    SELECT status, COUNT(*) AS request_count, COALESCE(SUM(amount_cents), 0) AS amount_cents
    FROM withdrawal_requests
    GROUP BY status
    ORDER BY status
""")


def _row_to_withdrawal(row: object) -> WithdrawalRequest:
    return WithdrawalRequest(
        id=row.id,  # type: ignore[attr-defined]
        creator_id=row.creator_id,  # type: ignore[attr-defined]
        amount_cents=row.amount_cents,  # type: ignore[attr-defined]
        platform_fee_cents=row.platform_fee_cents,  # type: ignore[attr-defined]
        net_amount_cents=row.net_amount_cents,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        provider_reference=row.provider_reference,  # type: ignore[attr-defined]
        failure_reason=row.failure_reason,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        processed_at=row.processed_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class WithdrawalRepository:
    async def create(self, db: AsyncSession, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        try:
            result = await db.execute(
                _INSERT_SQL,
                {
                    "id": withdrawal.id,
                    "creator_id": withdrawal.creator_id,
                    "amount_cents": withdrawal.amount_cents,
                    "platform_fee_cents": withdrawal.platform_fee_cents,
                    "net_amount_cents": withdrawal.net_amount_cents,
                    "currency": withdrawal.currency,
                    "status": withdrawal.status,
                },
            )
        except IntegrityError as e:
            # Backstop for the locked check in the service
            if "uq_withdrawal_active_per_creator" in str(e.orig):
                raise WithdrawalAlreadyPendingError() from e
            raise IntegrityViolationError(f"Withdrawal insert rejected: {e.orig}") from e
        row = result.fetchone()
        if row is None:
            raise InternalError("Withdrawal insert returned no rows")
        return _row_to_withdrawal(row)

    async def get(
        self, db: AsyncSession, withdrawal_id: str, for_update: bool = False
    ) -> WithdrawalRequest | None:
        sql = _GET_FOR_UPDATE_SQL if for_update else _GET_SQL
        result = await db.execute(sql, {"id": withdrawal_id})
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def find_active_for_creator(
        self, db: AsyncSession, creator_id: str
    ) -> WithdrawalRequest | None:
        result = await db.execute(_FIND_ACTIVE_SQL, {"creator_id": creator_id})
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def update_status(
        self,
        db: AsyncSession,
        withdrawal_id: str,
        status: str,
        provider_reference: str | None = None,
        failure_reason: str | None = None,
        processed_at: datetime | None = None,
    ) -> WithdrawalRequest:
        result = await db.execute(
            _UPDATE_STATUS_SQL,
            {
                "id": withdrawal_id,
                "status": status,
                "provider_reference": provider_reference,
                "failure_reason": failure_reason,
                "processed_at": processed_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Withdrawal vanished during update: {withdrawal_id}")
        return _row_to_withdrawal(row)

    async def list_requests(
        self,
        db: AsyncSession,
        creator_id: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[WithdrawalRequest], int]:
        params = {"creator_id": creator_id, "status": status}
        rows = (
            await db.execute(_LIST_SQL, {**params, "limit": limit, "offset": offset})
        ).fetchall()
        total = (await db.execute(_COUNT_SQL, params)).scalar_one()
        return [_row_to_withdrawal(row) for row in rows], int(total)

    async def summarize_by_status(self, db: AsyncSession) -> list[StatusSummary]:
        rows = (await db.execute(_SUMMARY_SQL)).fetchall()
        return [
            StatusSummary(status=r.status, count=int(r.request_count), amount_cents=int(r.amount_cents))
            for r in rows
        ]
