"""004: create withdrawal_requests table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE withdrawal_requests (
            id                  VARCHAR(64)  PRIMARY KEY,
            creator_id          VARCHAR(64)  NOT NULL,
            amount_cents        BIGINT       NOT NULL,
            platform_fee_cents  BIGINT       NOT NULL DEFAULT 0,
            net_amount_cents    BIGINT       NOT NULL,
            currency            CHAR(3)      NOT NULL DEFAULT 'EUR',
            status              VARCHAR(20)  NOT NULL DEFAULT 'PENDING',
            provider_reference  VARCHAR(128),
            failure_reason      VARCHAR(500),
            created_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            processed_at        TIMESTAMPTZ,
            updated_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_withdrawal_amount_gt_0 CHECK (amount_cents > 0),
            CONSTRAINT ck_withdrawal_fee_gte_0   CHECK (platform_fee_cents >= 0),
            CONSTRAINT ck_withdrawal_net         CHECK (
                net_amount_cents > 0 AND net_amount_cents = amount_cents - platform_fee_cents
            ),
            CONSTRAINT ck_withdrawal_status CHECK (
                status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'CANCELLED')
            ),
            CONSTRAINT ck_withdrawal_completed_reference CHECK (
                status <> 'COMPLETED' OR provider_reference IS NOT NULL
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_withdrawal_creator_time
        ON withdrawal_requests (creator_id, created_at DESC);
    """)
    op.execute("CREATE INDEX idx_withdrawal_status ON withdrawal_requests (status, created_at);")
    # Backstop for the locked check in the service: one in-flight request per creator
    op.execute("""
        CREATE UNIQUE INDEX uq_withdrawal_active_per_creator
        ON withdrawal_requests (creator_id)
        WHERE status IN ('PENDING', 'PROCESSING');
    """)
    op.execute("""
        CREATE TRIGGER trg_withdrawal_requests_updated_at
            BEFORE UPDATE ON withdrawal_requests
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS withdrawal_requests CASCADE;")
