"""005: create token_wallets and token_transactions tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE token_wallets (
            user_id                     VARCHAR(64) PRIMARY KEY,
            balance_tokens              BIGINT      NOT NULL DEFAULT 0,
            lifetime_purchased_tokens   BIGINT      NOT NULL DEFAULT 0,
            lifetime_consumed_tokens    BIGINT      NOT NULL DEFAULT 0,
            lifetime_granted_tokens     BIGINT      NOT NULL DEFAULT 0,
            last_top_up_at              TIMESTAMPTZ,
            created_at                  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_token_balance_gte_0 CHECK (balance_tokens >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_token_wallets_updated_at
            BEFORE UPDATE ON token_wallets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE token_transactions (
            id              VARCHAR(64)  PRIMARY KEY,
            user_id         VARCHAR(64)  NOT NULL,
            type            VARCHAR(20)  NOT NULL,
            tokens          BIGINT       NOT NULL,
            status          VARCHAR(12)  NOT NULL DEFAULT 'SETTLED',
            reference_id    VARCHAR(128),
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_token_tx_type CHECK (
                type IN ('FREE_GRANT', 'PURCHASE', 'PURCHASE_PENDING', 'BONUS', 'REFUND', 'CONSUMPTION')
            ),
            CONSTRAINT ck_token_tx_status CHECK (status IN ('SETTLED', 'PENDING', 'CANCELLED')),
            CONSTRAINT ck_token_tx_nonzero CHECK (tokens <> 0),
            CONSTRAINT ck_token_tx_pending_type CHECK (
                (status = 'PENDING') = (type = 'PURCHASE_PENDING')
            )
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_token_tx_user_reference
        ON token_transactions (user_id, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE INDEX idx_token_tx_user_time
        ON token_transactions (user_id, created_at DESC);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS token_transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS token_wallets CASCADE;")
