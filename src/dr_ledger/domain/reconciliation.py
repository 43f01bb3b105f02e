"""Balance vs. ledger reconciliation.

For every user:
  total_recharge - total_consume + total_refund == sum of signed BASE records == dr_balance
  pre_deducted_balance == sum of reserved deltas - sum of RESERVED draws
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_RECONCILE_SQL = text("""
    WITH ledger AS (
        SELECT user_id,
               COALESCE(SUM(CASE
                   WHEN balance_account = 'BASE' AND bill_type = 'CONSUME' THEN -amount
                   WHEN balance_account = 'BASE' THEN amount
               END), 0) AS base_net,
               COALESCE(SUM(CASE
                   WHEN balance_account = 'BASE'
                        AND extra_data ->> 'pre_deducted_after' IS NOT NULL
                   THEN (extra_data ->> 'pre_deducted_after')::NUMERIC
                        - (extra_data ->> 'pre_deducted_before')::NUMERIC
               END), 0)
               - COALESCE(SUM(CASE
                   WHEN balance_account = 'RESERVED' THEN amount
               END), 0) AS reserved_net
        FROM billing_records
        WHERE (CAST(:user_id AS VARCHAR) IS NULL OR user_id = :user_id)
        GROUP BY user_id
    )
    SELECT b.user_id,
           b.dr_balance,
           b.pre_deducted_balance,
           b.total_recharge - b.total_consume + b.total_refund AS counters_net,
           COALESCE(l.base_net, 0) AS base_net,
           COALESCE(l.reserved_net, 0) AS reserved_net
    FROM user_balances b
    LEFT JOIN ledger l ON l.user_id = b.user_id
    WHERE (CAST(:user_id AS VARCHAR) IS NULL OR b.user_id = :user_id)
""")


async def verify_balance_reconciliation(
    db: AsyncSession, user_id: str | None = None
) -> list[str]:
    """Check one user (or all when user_id is None). Returns violation strings."""
    violations: list[str] = []
    rows = (await db.execute(_RECONCILE_SQL, {"user_id": user_id})).fetchall()
    for row in rows:
        if row.counters_net != row.base_net:
            violations.append(
                f"user {row.user_id}: counters net {row.counters_net} "
                f"!= ledger BASE net {row.base_net}"
            )
        if row.dr_balance != row.base_net:
            violations.append(
                f"user {row.user_id}: dr_balance {row.dr_balance} "
                f"!= ledger BASE net {row.base_net}"
            )
        if row.pre_deducted_balance != row.reserved_net:
            violations.append(
                f"user {row.user_id}: pre_deducted_balance {row.pre_deducted_balance} "
                f"!= ledger reserved net {row.reserved_net}"
            )
    for msg in violations:
        logger.error("Reconciliation violated: %s", msg)
    return violations
