"""003: create creator_balances table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE creator_balances (
            creator_id          VARCHAR(64) PRIMARY KEY,
            available_cents     BIGINT      NOT NULL DEFAULT 0,
            pending_cents       BIGINT      NOT NULL DEFAULT 0,
            total_earned_cents  BIGINT      NOT NULL DEFAULT 0,
            currency            CHAR(3)     NOT NULL DEFAULT 'EUR',
            version             BIGINT      NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_creator_available_gte_0 CHECK (available_cents >= 0),
            CONSTRAINT ck_creator_pending_gte_0   CHECK (pending_cents >= 0),
            CONSTRAINT ck_creator_earned_gte_0    CHECK (total_earned_cents >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_creator_balances_updated_at
            BEFORE UPDATE ON creator_balances
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON TABLE creator_balances IS "
        "'Projection of CREATOR_BALANCE / CREATOR_PENDING ledger entries, in cents';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS creator_balances CASCADE;")
