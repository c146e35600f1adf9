"""Ledger-wide invariant check: balances are fully explained by the log.

Every balance change is paired with exactly one ledger entry, so:
  * SUM(balances) == SUM(admin adjustments)       (purchases/transfers are zero-sum)
  * each balance == received - paid (+ adjustments) per the log
  * no balance and no stock below zero
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_TOTAL_BALANCE_SQL = text("SELECT COALESCE(SUM(balance_cents), 0) FROM accounts")
_NET_ADJUSTMENTS_SQL = text(
    "SELECT COALESCE(SUM(amount_cents), 0) FROM ledger_entries WHERE payer_id IS NULL"
)
_NEGATIVE_BALANCES_SQL = text("SELECT id, balance_cents FROM accounts WHERE balance_cents < 0")
_NEGATIVE_STOCK_SQL = text("SELECT id, stock FROM listings WHERE stock < 0")
_UNEXPLAINED_BALANCES_SQL = text("""
    SELECT a.id, a.balance_cents, COALESCE(flows.net, 0) AS expected
    FROM accounts a
    LEFT JOIN (
        SELECT account_id, SUM(delta) AS net FROM (
            SELECT receiver_id AS account_id, amount_cents AS delta FROM ledger_entries
            UNION ALL
            SELECT payer_id, -amount_cents FROM ledger_entries WHERE payer_id IS NOT NULL
        ) moves
        GROUP BY account_id
    ) flows ON flows.account_id = a.id
    WHERE a.balance_cents <> COALESCE(flows.net, 0)
""")


async def verify_ledger_invariants(db: AsyncSession) -> list[str]:
    """Return a list of violation strings; empty when the ledger is consistent.

    All queries must see one snapshot: run inside a REPEATABLE READ (or
    stricter) transaction.
    """
    violations: list[str] = []

    total = (await db.execute(_TOTAL_BALANCE_SQL)).scalar_one()
    adjustments = (await db.execute(_NET_ADJUSTMENTS_SQL)).scalar_one()
    if total != adjustments:
        violations.append(
            f"Zero-sum violated: total balances {total} != net admin adjustments {adjustments}"
        )

    for row in (await db.execute(_NEGATIVE_BALANCES_SQL)).fetchall():
        violations.append(f"Negative balance: account {row.id} has {row.balance_cents}")

    for row in (await db.execute(_NEGATIVE_STOCK_SQL)).fetchall():
        violations.append(f"Negative stock: listing {row.id} has {row.stock}")

    for row in (await db.execute(_UNEXPLAINED_BALANCES_SQL)).fetchall():
        violations.append(
            f"Unexplained balance: account {row.id} has {row.balance_cents}, "
            f"ledger implies {row.expected}"
        )

    for msg in violations:
        logger.error(msg)
    return violations
