"""Market-wide invariant audit.

Checks every team for share-pool capacity, the market cap floor, an
unbroken ledger chain, and that user holdings account for exactly the
shares taken out of the pool. Returns violation strings; each violation is
also logged at ERROR.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_ledger.domain.chain import verify_ledger_chain
from src.fm_ledger.domain.repository import LedgerRepositoryProtocol
from src.fm_market.domain.repository import TeamRepositoryProtocol
from src.fm_market.domain.rules import verify_team_invariants
from src.fm_position.domain.repository import PositionRepositoryProtocol

logger = logging.getLogger(__name__)


async def verify_market_invariants(
    db: AsyncSession,
    teams: TeamRepositoryProtocol,
    positions: PositionRepositoryProtocol,
    ledger: LedgerRepositoryProtocol,
) -> list[str]:
    violations: list[str] = []
    held_by_team = await positions.total_quantity_by_team(db)
    checked = 0

    for team in await teams.list_teams(db):
        team_violations = verify_team_invariants(team, settings.MIN_MARKET_CAP_CENTS)

        held = held_by_team.get(team.id, 0)
        if held != team.shares_held:
            team_violations.append(
                f"team {team.id}: positions hold {held} shares, "
                f"pool accounts for {team.shares_held}"
            )

        entries = await ledger.query_by_team(db, team.id)
        if entries and entries[-1].market_cap_after != team.market_cap:
            team_violations.append(
                f"team {team.id}: last ledger market_cap_after="
                f"{entries[-1].market_cap_after} != current {team.market_cap}"
            )

        for msg in team_violations:
            logger.error("Invariant violated: %s", msg)
        violations.extend(team_violations)
        # verify_ledger_chain logs its own violations
        violations.extend(verify_ledger_chain(entries))
        checked += 1

    if not violations:
        logger.debug("Market invariants OK across %d teams", checked)
    return violations
