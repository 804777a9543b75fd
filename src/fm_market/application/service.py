"""TeamApplicationService: thin composition layer.

Reads run without an explicit transaction. Team launch and the tradeable
toggle commit on success and roll back on any failure.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_common.errors import MarketCapBelowFloorError, TeamNotFoundError
from src.fm_market.application.schemas import TeamItem, TeamListResponse
from src.fm_market.domain.repository import TeamRepositoryProtocol
from src.fm_market.infrastructure.persistence import TeamRepository

logger = logging.getLogger(__name__)


class TeamApplicationService:
    def __init__(self, repo: TeamRepositoryProtocol | None = None) -> None:
        self._repo: TeamRepositoryProtocol = repo or TeamRepository()

    async def list_teams(self, db: AsyncSession) -> TeamListResponse:
        teams = await self._repo.list_teams(db)
        return TeamListResponse(items=[TeamItem.from_domain(t) for t in teams])

    async def get_team(self, db: AsyncSession, team_id: int) -> TeamItem:
        team = await self._repo.get_team(db, team_id)
        if team is None:
            raise TeamNotFoundError(team_id)
        return TeamItem.from_domain(team)

    async def create_team(
        self,
        db: AsyncSession,
        name: str,
        market_cap: int | None = None,
        total_shares: int | None = None,
    ) -> TeamItem:
        cap = market_cap if market_cap is not None else settings.DEFAULT_LAUNCH_MARKET_CAP_CENTS
        shares = total_shares if total_shares is not None else settings.DEFAULT_TOTAL_SHARES
        if cap < settings.MIN_MARKET_CAP_CENTS:
            raise MarketCapBelowFloorError(cap, settings.MIN_MARKET_CAP_CENTS)
        try:
            team = await self._repo.create_team(db, name, cap, shares)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Team launched: id=%s name=%s cap=%d shares=%d", team.id, name, cap, shares)
        return TeamItem.from_domain(team)

    async def set_tradeable(
        self, db: AsyncSession, team_id: int, is_tradeable: bool
    ) -> TeamItem:
        try:
            team = await self._repo.set_tradeable(db, team_id, is_tradeable)
            if team is None:
                raise TeamNotFoundError(team_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return TeamItem.from_domain(team)
