"""002: create ledger_entries table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id                      BIGSERIAL       PRIMARY KEY,
            account_id              VARCHAR(64)     NOT NULL,
            account_type            VARCHAR(20)     NOT NULL,
            entry_type              VARCHAR(30)     NOT NULL,
            amount                  BIGINT          NOT NULL,
            balance_after           BIGINT          NOT NULL,
            unit                    VARCHAR(8)      NOT NULL,
            related_campaign_id     VARCHAR(64),
            related_withdrawal_id   VARCHAR(64),
            reference_id            VARCHAR(128),
            description             VARCHAR(500),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_account_type CHECK (
                account_type IN (
                    'CREATOR_BALANCE', 'CREATOR_PENDING', 'TOKEN_WALLET', 'CAMPAIGN_BUDGET'
                )
            ),
            CONSTRAINT ck_ledger_entry_type CHECK (
                entry_type IN (
                    'EARNING', 'CAMPAIGN_SPEND',
                    'WITHDRAWAL_HOLD', 'WITHDRAWAL_RELEASE',
                    'WITHDRAWAL_PAYOUT', 'PLATFORM_FEE',
                    'ADJUSTMENT',
                    'FREE_GRANT', 'PURCHASE', 'BONUS', 'REFUND', 'CONSUMPTION'
                )
            ),
            CONSTRAINT ck_ledger_amount_nonzero CHECK (amount <> 0),
            CONSTRAINT ck_ledger_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_ledger_account
        ON ledger_entries (account_type, account_id, id DESC);
    """)
    # One entry per external event: a replayed event is rejected by the storage layer
    op.execute("""
        CREATE UNIQUE INDEX uq_ledger_event_reference
        ON ledger_entries (account_type, entry_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE INDEX idx_ledger_withdrawal
        ON ledger_entries (related_withdrawal_id)
        WHERE related_withdrawal_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_ledger_entries_append_only
            BEFORE UPDATE OR DELETE ON ledger_entries
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute(
        "COMMENT ON TABLE ledger_entries IS "
        "'Append-only ledger; amounts in cents, or tokens when unit = TOKENS';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
