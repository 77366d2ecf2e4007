"""CampaignBudgetRepository: raw-SQL implementation of CampaignBudgetRepositoryProtocol.

Spend only moves through _INCREMENT_SPEND_SQL, whose WHERE clause keeps
spent_budget_cents <= total_budget_cents under the row lock taken by the
UPDATE itself. The table CHECK constraint is the last line.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_campaign.domain.models import (
    CampaignBudgetConfig,
    CampaignBudgetState,
    PacingSnapshot,
)

_COLUMNS = """
    campaign_id, advertiser_id, total_budget_cents, spent_budget_cents,
    daily_budget_cents, pacing_enabled, pacing_mode, target_spend_per_hour_cents,
    campaign_start_date, campaign_end_date, status, currency,
    delivery_progress_percent, is_over_delivering, is_under_delivering, last_pacing_at,
    created_at, updated_at
"""

_GET_BUDGET_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM campaign_budgets
    WHERE campaign_id = :campaign_id
""")

# Lowering the total below what is already spent is refused (0 rows).
_UPSERT_BUDGET_SQL = text(f"""
    INSERT INTO campaign_budgets
        (campaign_id, advertiser_id, total_budget_cents, daily_budget_cents,
         pacing_enabled, pacing_mode, target_spend_per_hour_cents,
         campaign_start_date, campaign_end_date, status, currency)
    VALUES
        (:campaign_id, :advertiser_id, :total_budget_cents, :daily_budget_cents,
         :pacing_enabled, :pacing_mode, :target_spend_per_hour_cents,
         :campaign_start_date, :campaign_end_date, :status, :currency)
    ON CONFLICT (campaign_id) DO UPDATE
    SET advertiser_id = EXCLUDED.advertiser_id,
        total_budget_cents = EXCLUDED.total_budget_cents,
        daily_budget_cents = EXCLUDED.daily_budget_cents,
        pacing_enabled = EXCLUDED.pacing_enabled,
        pacing_mode = EXCLUDED.pacing_mode,
        target_spend_per_hour_cents = EXCLUDED.target_spend_per_hour_cents,
        campaign_start_date = EXCLUDED.campaign_start_date,
        campaign_end_date = EXCLUDED.campaign_end_date,
        status = EXCLUDED.status,
        updated_at = NOW()
    WHERE campaign_budgets.spent_budget_cents <= EXCLUDED.total_budget_cents
    RETURNING {_COLUMNS}
""")

_INCREMENT_SPEND_SQL = text(f"""
    UPDATE campaign_budgets
    SET spent_budget_cents = spent_budget_cents + :amount,
        updated_at = NOW()
    WHERE campaign_id = :campaign_id
      AND spent_budget_cents + :amount <= total_budget_cents
    RETURNING {_COLUMNS}
""")

_LIST_PACING_ENABLED_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM campaign_budgets
    WHERE pacing_enabled = TRUE AND status = 'ACTIVE'
    ORDER BY campaign_id
""")

_LIST_ACTIVE_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM campaign_budgets
    WHERE status = 'ACTIVE'
    ORDER BY campaign_id
""")

_SAVE_SNAPSHOT_SQL = text("""
    UPDATE campaign_budgets
    SET delivery_progress_percent = :delivery_progress_percent,
        is_over_delivering = :is_over_delivering,
        is_under_delivering = :is_under_delivering,
        last_pacing_at = :computed_at
    WHERE campaign_id = :campaign_id
""")


def _row_to_budget(row: object) -> CampaignBudgetState:
    progress = row.delivery_progress_percent  # type: ignore[attr-defined]
    return CampaignBudgetState(
        campaign_id=row.campaign_id,  # type: ignore[attr-defined]
        advertiser_id=row.advertiser_id,  # type: ignore[attr-defined]
        total_budget_cents=row.total_budget_cents,  # type: ignore[attr-defined]
        spent_budget_cents=row.spent_budget_cents,  # type: ignore[attr-defined]
        daily_budget_cents=row.daily_budget_cents,  # type: ignore[attr-defined]
        pacing_enabled=row.pacing_enabled,  # type: ignore[attr-defined]
        pacing_mode=row.pacing_mode,  # type: ignore[attr-defined]
        target_spend_per_hour_cents=row.target_spend_per_hour_cents,  # type: ignore[attr-defined]
        campaign_start_date=row.campaign_start_date,  # type: ignore[attr-defined]
        campaign_end_date=row.campaign_end_date,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        delivery_progress_percent=float(progress) if progress is not None else None,
        is_over_delivering=row.is_over_delivering,  # type: ignore[attr-defined]
        is_under_delivering=row.is_under_delivering,  # type: ignore[attr-defined]
        last_pacing_at=row.last_pacing_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class CampaignBudgetRepository:
    async def get_budget(
        self, db: AsyncSession, campaign_id: str
    ) -> CampaignBudgetState | None:
        result = await db.execute(_GET_BUDGET_SQL, {"campaign_id": campaign_id})
        row = result.fetchone()
        return _row_to_budget(row) if row else None

    async def upsert_budget(
        self, db: AsyncSession, config: CampaignBudgetConfig
    ) -> CampaignBudgetState | None:
        result = await db.execute(
            _UPSERT_BUDGET_SQL,
            {
                "campaign_id": config.campaign_id,
                "advertiser_id": config.advertiser_id,
                "total_budget_cents": config.total_budget_cents,
                "daily_budget_cents": config.daily_budget_cents,
                "pacing_enabled": config.pacing_enabled,
                "pacing_mode": config.pacing_mode,
                "target_spend_per_hour_cents": config.target_spend_per_hour_cents,
                "campaign_start_date": config.campaign_start_date,
                "campaign_end_date": config.campaign_end_date,
                "status": config.status,
                "currency": config.currency,
            },
        )
        row = result.fetchone()
        return _row_to_budget(row) if row else None

    async def increment_spend(
        self, db: AsyncSession, campaign_id: str, amount: int
    ) -> CampaignBudgetState | None:
        result = await db.execute(
            _INCREMENT_SPEND_SQL, {"campaign_id": campaign_id, "amount": amount}
        )
        row = result.fetchone()
        return _row_to_budget(row) if row else None

    async def list_pacing_enabled(self, db: AsyncSession) -> list[CampaignBudgetState]:
        result = await db.execute(_LIST_PACING_ENABLED_SQL)
        return [_row_to_budget(row) for row in result.fetchall()]

    async def list_active(self, db: AsyncSession) -> list[CampaignBudgetState]:
        result = await db.execute(_LIST_ACTIVE_SQL)
        return [_row_to_budget(row) for row in result.fetchall()]

    async def save_pacing_snapshot(
        self, db: AsyncSession, campaign_id: str, snapshot: PacingSnapshot
    ) -> None:
        await db.execute(
            _SAVE_SNAPSHOT_SQL,
            {
                "campaign_id": campaign_id,
                "delivery_progress_percent": snapshot.delivery_progress_percent,
                "is_over_delivering": snapshot.is_over_delivering,
                "is_under_delivering": snapshot.is_under_delivering,
                "computed_at": snapshot.computed_at,
            },
        )
