"""007: create campaign_traffic_daily and payout_queue tables

Both are written by the view-validation pipeline and only read here.

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE campaign_traffic_daily (
            campaign_id             VARCHAR(64) NOT NULL,
            day                     DATE        NOT NULL,
            total_views             BIGINT      NOT NULL DEFAULT 0,
            validated_views         BIGINT      NOT NULL DEFAULT 0,
            creators_with_traffic   INTEGER     NOT NULL DEFAULT 0,
            flagged_creators        INTEGER     NOT NULL DEFAULT 0,
            PRIMARY KEY (campaign_id, day),
            CONSTRAINT ck_traffic_validated_lte_total CHECK (validated_views <= total_views),
            CONSTRAINT ck_traffic_flagged_lte_creators CHECK (flagged_creators <= creators_with_traffic)
        );
    """)
    op.execute("""
        CREATE TABLE payout_queue (
            id              VARCHAR(64)  PRIMARY KEY,
            campaign_id     VARCHAR(64)  NOT NULL,
            creator_id      VARCHAR(64)  NOT NULL,
            amount_cents    BIGINT       NOT NULL,
            status          VARCHAR(12)  NOT NULL DEFAULT 'PENDING',
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_payout_queue_amount_gt_0 CHECK (amount_cents > 0),
            CONSTRAINT ck_payout_queue_status CHECK (status IN ('PENDING', 'RELEASED', 'REVERSED'))
        );
    """)
    op.execute("CREATE INDEX idx_payout_queue_campaign ON payout_queue (campaign_id, status);")
    op.execute("""
        CREATE TRIGGER trg_payout_queue_updated_at
            BEFORE UPDATE ON payout_queue
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payout_queue CASCADE;")
    op.execute("DROP TABLE IF EXISTS campaign_traffic_daily CASCADE;")
