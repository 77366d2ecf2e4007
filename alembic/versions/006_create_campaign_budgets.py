"""006: create campaign_budgets table

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE campaign_budgets (
            campaign_id                 VARCHAR(64)  PRIMARY KEY,
            advertiser_id               VARCHAR(64)  NOT NULL,
            total_budget_cents          BIGINT       NOT NULL,
            spent_budget_cents          BIGINT       NOT NULL DEFAULT 0,
            daily_budget_cents          BIGINT,
            pacing_enabled              BOOLEAN      NOT NULL DEFAULT TRUE,
            pacing_mode                 VARCHAR(16)  NOT NULL DEFAULT 'EVEN',
            target_spend_per_hour_cents BIGINT,
            campaign_start_date         TIMESTAMPTZ  NOT NULL,
            campaign_end_date           TIMESTAMPTZ,
            status                      VARCHAR(16)  NOT NULL DEFAULT 'ACTIVE',
            currency                    CHAR(3)      NOT NULL DEFAULT 'EUR',
            delivery_progress_percent   NUMERIC(7, 2),
            is_over_delivering          BOOLEAN      NOT NULL DEFAULT FALSE,
            is_under_delivering         BOOLEAN      NOT NULL DEFAULT FALSE,
            last_pacing_at              TIMESTAMPTZ,
            created_at                  TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_campaign_total_gte_0 CHECK (total_budget_cents >= 0),
            CONSTRAINT ck_campaign_spent_gte_0 CHECK (spent_budget_cents >= 0),
            CONSTRAINT ck_campaign_spent_lte_total CHECK (spent_budget_cents <= total_budget_cents),
            CONSTRAINT ck_campaign_pacing_mode CHECK (
                pacing_mode IN ('EVEN', 'ACCELERATED', 'CONSERVATIVE')
            ),
            CONSTRAINT ck_campaign_status CHECK (
                status IN ('DRAFT', 'ACTIVE', 'PAUSED', 'COMPLETED', 'CANCELLED')
            )
        );
    """)
    op.execute("CREATE INDEX idx_campaign_advertiser ON campaign_budgets (advertiser_id);")
    op.execute("""
        CREATE INDEX idx_campaign_active_pacing
        ON campaign_budgets (campaign_id)
        WHERE status = 'ACTIVE' AND pacing_enabled;
    """)
    op.execute("""
        CREATE TRIGGER trg_campaign_budgets_updated_at
            BEFORE UPDATE ON campaign_budgets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS campaign_budgets CASCADE;")
