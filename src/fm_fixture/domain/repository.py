"""Repository Protocol for fixtures."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_fixture.domain.models import Fixture


class FixtureRepositoryProtocol(Protocol):
    async def get_fixture(
        self, db: AsyncSession, fixture_id: int, for_update: bool = False
    ) -> Fixture | None: ...

    async def create_fixture(
        self,
        db: AsyncSession,
        home_team_id: int,
        away_team_id: int,
        kickoff_at: datetime,
        buy_close_at: datetime,
    ) -> Fixture: ...

    async def save_fixture(self, db: AsyncSession, fixture: Fixture) -> Fixture: ...

    async def list_fixtures(
        self,
        db: AsyncSession,
        team_id: int | None = None,
        status: str | None = None,
    ) -> list[Fixture]: ...

    async def next_fixture_for_team(
        self, db: AsyncSession, team_id: int, now: datetime
    ) -> Fixture | None: ...
