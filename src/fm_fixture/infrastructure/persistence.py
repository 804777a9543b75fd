"""FixtureRepository: concrete implementation of FixtureRepositoryProtocol.

Lifecycle rules live in fm_fixture.domain.state; this layer only reads and
writes rows. Callers lock with for_update=True before save_fixture.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import FixtureNotFoundError, InternalError
from src.fm_fixture.domain.models import Fixture

_FIXTURE_COLUMNS = """
    id, home_team_id, away_team_id, kickoff_at, buy_close_at,
    status, result, home_score, away_score,
    snapshot_home_cap, snapshot_away_cap, created_at, updated_at
"""

_GET_FIXTURE_SQL = text(f"SELECT {_FIXTURE_COLUMNS} FROM fixtures WHERE id = :fixture_id")

_GET_FIXTURE_FOR_UPDATE_SQL = text(f"""
    SELECT {_FIXTURE_COLUMNS} FROM fixtures WHERE id = :fixture_id FOR UPDATE
""")

_INSERT_FIXTURE_SQL = text(f"""
    INSERT INTO fixtures (home_team_id, away_team_id, kickoff_at, buy_close_at)
    VALUES (:home_team_id, :away_team_id, :kickoff_at, :buy_close_at)
    RETURNING {_FIXTURE_COLUMNS}
""")

_SAVE_FIXTURE_SQL = text(f"""
    UPDATE fixtures
    SET kickoff_at = :kickoff_at,
        buy_close_at = :buy_close_at,
        status = :status,
        result = :result,
        home_score = :home_score,
        away_score = :away_score,
        snapshot_home_cap = :snapshot_home_cap,
        snapshot_away_cap = :snapshot_away_cap,
        updated_at = NOW()
    WHERE id = :fixture_id
    RETURNING {_FIXTURE_COLUMNS}
""")

_LIST_FIXTURES_SQL = text(f"""
    SELECT {_FIXTURE_COLUMNS}
    FROM fixtures
    WHERE (CAST(:team_id AS INTEGER) IS NULL
           OR home_team_id = CAST(:team_id AS INTEGER)
           OR away_team_id = CAST(:team_id AS INTEGER))
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
    ORDER BY kickoff_at ASC, id ASC
""")

_NEXT_FIXTURE_SQL = text(f"""
    SELECT {_FIXTURE_COLUMNS}
    FROM fixtures
    WHERE (home_team_id = :team_id OR away_team_id = :team_id)
      AND kickoff_at >= :now
      AND status IN ('scheduled', 'closed')
    ORDER BY kickoff_at ASC
    LIMIT 1
""")


def _row_to_fixture(row: object) -> Fixture:
    return Fixture(
        id=row.id,  # type: ignore[attr-defined]
        home_team_id=row.home_team_id,  # type: ignore[attr-defined]
        away_team_id=row.away_team_id,  # type: ignore[attr-defined]
        kickoff_at=row.kickoff_at,  # type: ignore[attr-defined]
        buy_close_at=row.buy_close_at,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        result=row.result,  # type: ignore[attr-defined]
        home_score=row.home_score,  # type: ignore[attr-defined]
        away_score=row.away_score,  # type: ignore[attr-defined]
        snapshot_home_cap=row.snapshot_home_cap,  # type: ignore[attr-defined]
        snapshot_away_cap=row.snapshot_away_cap,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class FixtureRepository:
    async def get_fixture(
        self, db: AsyncSession, fixture_id: int, for_update: bool = False
    ) -> Fixture | None:
        sql = _GET_FIXTURE_FOR_UPDATE_SQL if for_update else _GET_FIXTURE_SQL
        result = await db.execute(sql, {"fixture_id": fixture_id})
        row = result.fetchone()
        return _row_to_fixture(row) if row else None

    async def create_fixture(
        self,
        db: AsyncSession,
        home_team_id: int,
        away_team_id: int,
        kickoff_at: datetime,
        buy_close_at: datetime,
    ) -> Fixture:
        result = await db.execute(
            _INSERT_FIXTURE_SQL,
            {
                "home_team_id": home_team_id,
                "away_team_id": away_team_id,
                "kickoff_at": kickoff_at,
                "buy_close_at": buy_close_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Fixture insert returned no rows")
        return _row_to_fixture(row)

    async def save_fixture(self, db: AsyncSession, fixture: Fixture) -> Fixture:
        result = await db.execute(
            _SAVE_FIXTURE_SQL,
            {
                "fixture_id": fixture.id,
                "kickoff_at": fixture.kickoff_at,
                "buy_close_at": fixture.buy_close_at,
                "status": fixture.status,
                "result": fixture.result,
                "home_score": fixture.home_score,
                "away_score": fixture.away_score,
                "snapshot_home_cap": fixture.snapshot_home_cap,
                "snapshot_away_cap": fixture.snapshot_away_cap,
            },
        )
        row = result.fetchone()
        if row is None:
            raise FixtureNotFoundError(fixture.id)
        return _row_to_fixture(row)

    async def list_fixtures(
        self,
        db: AsyncSession,
        team_id: int | None = None,
        status: str | None = None,
    ) -> list[Fixture]:
        result = await db.execute(_LIST_FIXTURES_SQL, {"team_id": team_id, "status": status})
        return [_row_to_fixture(row) for row in result.fetchall()]

    async def next_fixture_for_team(
        self, db: AsyncSession, team_id: int, now: datetime
    ) -> Fixture | None:
        result = await db.execute(_NEXT_FIXTURE_SQL, {"team_id": team_id, "now": now})
        row = result.fetchone()
        return _row_to_fixture(row) if row else None
