"""Ledger chain verification.

For one team, entries in append order must form a chain: each entry's
before-values equal the previous entry's after-values.
"""

import logging
from collections.abc import Sequence

from src.fm_ledger.domain.models import TeamLedgerEntry

logger = logging.getLogger(__name__)

_CHAINED_FIELDS = (
    ("market_cap_before", "market_cap_after"),
    ("shares_outstanding_before", "shares_outstanding_after"),
)


def verify_ledger_chain(entries: Sequence[TeamLedgerEntry]) -> list[str]:
    """Return violation strings; empty when the chain is intact.

    `entries` must belong to a single team and be in chronological order.
    """
    violations: list[str] = []
    for prev, curr in zip(entries, entries[1:]):
        if curr.team_id != prev.team_id:
            violations.append(
                f"mixed teams in chain: entry {curr.id} team {curr.team_id} "
                f"after team {prev.team_id}"
            )
            continue
        for before_field, after_field in _CHAINED_FIELDS:
            before = getattr(curr, before_field)
            after = getattr(prev, after_field)
            if before != after:
                violations.append(
                    f"team {curr.team_id}: entry {curr.id} {before_field}={before} "
                    f"!= previous entry {prev.id} {after_field}={after}"
                )
    for msg in violations:
        logger.error("Ledger chain broken: %s", msg)
    return violations
