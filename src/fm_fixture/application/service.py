"""FixtureApplicationService: admin lifecycle plus the buy-window policy.

Each lifecycle action locks the fixture row, applies the transition from
fm_fixture.domain.state, and commits. Applying a closed fixture to the
market belongs to the settlement service.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_common.datetime_utils import ensure_utc, utc_now
from src.fm_common.enums import FixtureStatus
from src.fm_common.errors import (
    FixtureNotFoundError,
    InvalidFixtureError,
    TeamNotFoundError,
)
from src.fm_fixture.application.schemas import (
    BuyWindowResponse,
    FixtureItem,
    FixtureListResponse,
)
from src.fm_fixture.domain import state
from src.fm_fixture.domain.models import Fixture
from src.fm_fixture.domain.repository import FixtureRepositoryProtocol
from src.fm_fixture.infrastructure.persistence import FixtureRepository
from src.fm_market.domain.repository import TeamRepositoryProtocol
from src.fm_market.infrastructure.persistence import TeamRepository

logger = logging.getLogger(__name__)


def _buy_close_offset() -> timedelta:
    return timedelta(minutes=settings.BUY_CLOSE_OFFSET_MINUTES)


class FixtureApplicationService:
    def __init__(
        self,
        repo: FixtureRepositoryProtocol | None = None,
        teams: TeamRepositoryProtocol | None = None,
    ) -> None:
        self._repo: FixtureRepositoryProtocol = repo or FixtureRepository()
        self._teams: TeamRepositoryProtocol = teams or TeamRepository()

    async def get_fixture(self, db: AsyncSession, fixture_id: int) -> FixtureItem:
        fixture = await self._repo.get_fixture(db, fixture_id)
        if fixture is None:
            raise FixtureNotFoundError(fixture_id)
        return FixtureItem.from_domain(fixture)

    async def list_fixtures(
        self, db: AsyncSession, team_id: int | None = None, status: str | None = None
    ) -> FixtureListResponse:
        fixtures = await self._repo.list_fixtures(db, team_id, status)
        return FixtureListResponse(items=[FixtureItem.from_domain(f) for f in fixtures])

    async def create_fixture(
        self,
        db: AsyncSession,
        home_team_id: int,
        away_team_id: int,
        kickoff_at: datetime,
    ) -> FixtureItem:
        if home_team_id == away_team_id:
            raise InvalidFixtureError("home and away team must differ")
        for team_id in (home_team_id, away_team_id):
            if await self._teams.get_team(db, team_id) is None:
                raise TeamNotFoundError(team_id)
        kickoff = ensure_utc(kickoff_at)
        try:
            fixture = await self._repo.create_fixture(
                db, home_team_id, away_team_id, kickoff, kickoff - _buy_close_offset()
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Fixture scheduled: id=%s home=%s away=%s kickoff=%s",
            fixture.id,
            home_team_id,
            away_team_id,
            kickoff.isoformat(),
        )
        return FixtureItem.from_domain(fixture)

    async def close_fixture(self, db: AsyncSession, fixture_id: int) -> FixtureItem:
        async def _close(fixture: Fixture) -> None:
            state.transition(fixture, FixtureStatus.CLOSED)
            await self._snapshot_caps(db, fixture)

        return await self._mutate(db, fixture_id, _close)

    async def record_result(
        self, db: AsyncSession, fixture_id: int, home_score: int, away_score: int
    ) -> FixtureItem:
        async def _record(fixture: Fixture) -> None:
            was_scheduled = fixture.status == FixtureStatus.SCHEDULED.value
            state.record_result(fixture, home_score, away_score)
            if was_scheduled:
                await self._snapshot_caps(db, fixture)

        return await self._mutate(db, fixture_id, _record)

    async def postpone_fixture(self, db: AsyncSession, fixture_id: int) -> FixtureItem:
        async def _postpone(fixture: Fixture) -> None:
            state.transition(fixture, FixtureStatus.POSTPONED)

        return await self._mutate(db, fixture_id, _postpone)

    async def reschedule_fixture(
        self, db: AsyncSession, fixture_id: int, kickoff_at: datetime
    ) -> FixtureItem:
        async def _reschedule(fixture: Fixture) -> None:
            state.reschedule(fixture, ensure_utc(kickoff_at), _buy_close_offset())

        return await self._mutate(db, fixture_id, _reschedule)

    async def is_buy_window_open(
        self, db: AsyncSession, team_id: int, now: datetime | None = None
    ) -> bool:
        window = await self.get_buy_window(db, team_id, now)
        return window.is_open

    async def get_buy_window(
        self, db: AsyncSession, team_id: int, now: datetime | None = None
    ) -> BuyWindowResponse:
        moment = ensure_utc(now) if now is not None else utc_now()
        fixture = await self._repo.next_fixture_for_team(db, team_id, moment)
        if fixture is None:
            return BuyWindowResponse(team_id=team_id, is_open=True)
        return BuyWindowResponse(
            team_id=team_id,
            is_open=state.buy_window_open(fixture, moment),
            next_fixture_id=fixture.id,
            kickoff_at=fixture.kickoff_at.isoformat(),
            buy_close_at=fixture.buy_close_at.isoformat(),
        )

    async def _snapshot_caps(self, db: AsyncSession, fixture: Fixture) -> None:
        home = await self._teams.get_team(db, fixture.home_team_id)
        away = await self._teams.get_team(db, fixture.away_team_id)
        fixture.snapshot_home_cap = home.market_cap if home else None
        fixture.snapshot_away_cap = away.market_cap if away else None

    async def _mutate(
        self,
        db: AsyncSession,
        fixture_id: int,
        action: Callable[[Fixture], Awaitable[None]],
    ) -> FixtureItem:
        try:
            fixture = await self._repo.get_fixture(db, fixture_id, for_update=True)
            if fixture is None:
                raise FixtureNotFoundError(fixture_id)
            previous = fixture.status
            await action(fixture)
            saved = await self._repo.save_fixture(db, fixture)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Fixture %s: %s -> %s (result=%s)", fixture_id, previous, saved.status, saved.result
        )
        return FixtureItem.from_domain(saved)
