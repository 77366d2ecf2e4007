"""Ledger reconciliation: stored projections vs. sum of ledger entries.

Creator balances, token wallets and campaign spend are mutable projections
kept for read speed. This job recomputes each one from ledger_entries and
reports every account where the two disagree. A non-empty result means a
transactional-boundary defect somewhere upstream.
"""

import logging

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Each query returns (account_id, stored, ledger) for mismatching accounts.
# LEFT JOIN from the projection catches rows with no entries at all;
# the UNION branch catches entries whose projection row is missing.

_CREATOR_AVAILABLE_SQL = text("""
    SELECT b.creator_id AS account_id, b.available_cents AS stored,
           COALESCE(l.total, 0) AS ledger
    FROM creator_balances b
    LEFT JOIN (
        SELECT account_id, SUM(amount) AS total
        FROM ledger_entries WHERE account_type = 'CREATOR_BALANCE'
        GROUP BY account_id
    ) l ON l.account_id = b.creator_id
    WHERE b.available_cents <> COALESCE(l.total, 0)
    UNION ALL
    SELECT l.account_id, 0, SUM(l.amount)
    FROM ledger_entries l
    WHERE l.account_type = 'CREATOR_BALANCE'
      AND NOT EXISTS (SELECT 1 FROM creator_balances b WHERE b.creator_id = l.account_id)
    GROUP BY l.account_id
""")

_CREATOR_PENDING_SQL = text("""
    SELECT b.creator_id AS account_id, b.pending_cents AS stored,
           COALESCE(l.total, 0) AS ledger
    FROM creator_balances b
    LEFT JOIN (
        SELECT account_id, SUM(amount) AS total
        FROM ledger_entries WHERE account_type = 'CREATOR_PENDING'
        GROUP BY account_id
    ) l ON l.account_id = b.creator_id
    WHERE b.pending_cents <> COALESCE(l.total, 0)
""")

_TOKEN_WALLET_SQL = text("""
    SELECT w.user_id AS account_id, w.balance_tokens AS stored,
           COALESCE(l.total, 0) AS ledger
    FROM token_wallets w
    LEFT JOIN (
        SELECT account_id, SUM(amount) AS total
        FROM ledger_entries WHERE account_type = 'TOKEN_WALLET'
        GROUP BY account_id
    ) l ON l.account_id = w.user_id
    WHERE w.balance_tokens <> COALESCE(l.total, 0)
""")

_CAMPAIGN_SPEND_SQL = text("""
    SELECT c.campaign_id AS account_id, c.spent_budget_cents AS stored,
           COALESCE(l.total, 0) AS ledger
    FROM campaign_budgets c
    LEFT JOIN (
        SELECT account_id, SUM(amount) AS total
        FROM ledger_entries WHERE account_type = 'CAMPAIGN_BUDGET'
        GROUP BY account_id
    ) l ON l.account_id = c.campaign_id
    WHERE c.spent_budget_cents <> COALESCE(l.total, 0)
""")

# Token history: settled transactions must also sum to the wallet balance.
_TOKEN_HISTORY_SQL = text("""
    SELECT w.user_id AS account_id, w.balance_tokens AS stored,
           COALESCE(t.total, 0) AS ledger
    FROM token_wallets w
    LEFT JOIN (
        SELECT user_id, SUM(tokens) AS total
        FROM token_transactions WHERE status = 'SETTLED'
        GROUP BY user_id
    ) t ON t.user_id = w.user_id
    WHERE w.balance_tokens <> COALESCE(t.total, 0)
""")

_CHECKS: list[tuple[str, TextClause]] = [
    ("CREATOR_BALANCE", _CREATOR_AVAILABLE_SQL),
    ("CREATOR_PENDING", _CREATOR_PENDING_SQL),
    ("TOKEN_WALLET", _TOKEN_WALLET_SQL),
    ("TOKEN_TRANSACTIONS", _TOKEN_HISTORY_SQL),
    ("CAMPAIGN_BUDGET", _CAMPAIGN_SPEND_SQL),
]


async def verify_ledger_consistency(db: AsyncSession) -> list[str]:
    """Returns one violation string per mismatching account (empty when consistent)."""
    violations: list[str] = []
    for label, statement in _CHECKS:
        rows = (await db.execute(statement)).fetchall()
        for row in rows:
            msg = (
                f"{label} {row.account_id}: stored={row.stored} "
                f"!= ledger={row.ledger}"
            )
            violations.append(msg)
            logger.error("Reconciliation mismatch: %s", msg)
    if not violations:
        logger.info("Reconciliation passed: %d checks clean", len(_CHECKS))
    return violations
