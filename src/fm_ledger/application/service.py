"""LedgerApplicationService: read-only team history for charts and audit.

Not on the settlement hot path; runs without an explicit transaction.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import TeamNotFoundError
from src.fm_ledger.application.schemas import LedgerEntryItem, TeamHistoryResponse
from src.fm_ledger.domain.chain import verify_ledger_chain
from src.fm_ledger.domain.repository import LedgerRepositoryProtocol
from src.fm_ledger.infrastructure.persistence import LedgerRepository
from src.fm_market.domain.repository import TeamRepositoryProtocol
from src.fm_market.infrastructure.persistence import TeamRepository


class LedgerApplicationService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        teams: TeamRepositoryProtocol | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._teams: TeamRepositoryProtocol = teams or TeamRepository()

    async def get_team_history(
        self,
        db: AsyncSession,
        team_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> TeamHistoryResponse:
        if await self._teams.get_team(db, team_id) is None:
            raise TeamNotFoundError(team_id)
        entries = await self._repo.query_by_team(db, team_id, since, until, limit)
        return TeamHistoryResponse(
            team_id=team_id,
            items=[LedgerEntryItem.from_domain(e) for e in entries],
            chain_intact=not verify_ledger_chain(entries),
        )
