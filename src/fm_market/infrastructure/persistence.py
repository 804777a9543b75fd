"""TeamRepository: concrete implementation of TeamRepositoryProtocol.

All queries use raw text() SQL (no ORM).
Transaction ownership: the caller (SettlementService or an application
service) begins and commits; `for_update=True` takes the row lock that
serialises settlement on the same team.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.cents import share_price
from src.fm_common.errors import InternalError
from src.fm_market.domain.models import Team

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_TEAM_COLUMNS = """
    id, name, market_cap, total_shares, available_shares,
    is_tradeable, launch_price, created_at, updated_at
"""

_GET_TEAM_SQL = text(f"SELECT {_TEAM_COLUMNS} FROM teams WHERE id = :team_id")

_GET_TEAM_FOR_UPDATE_SQL = text(
    f"SELECT {_TEAM_COLUMNS} FROM teams WHERE id = :team_id FOR UPDATE"
)

_LIST_TEAMS_SQL = text(f"SELECT {_TEAM_COLUMNS} FROM teams ORDER BY name ASC")

_CREATE_TEAM_SQL = text(f"""
    INSERT INTO teams (name, market_cap, total_shares, available_shares, launch_price)
    VALUES (:name, :market_cap, :total_shares, :total_shares, :launch_price)
    RETURNING {_TEAM_COLUMNS}
""")

_SAVE_STATE_SQL = text("""
    UPDATE teams
    SET market_cap = :market_cap,
        available_shares = :available_shares,
        updated_at = NOW()
    WHERE id = :team_id
""")

_SET_TRADEABLE_SQL = text(f"""
    UPDATE teams
    SET is_tradeable = :is_tradeable,
        updated_at = NOW()
    WHERE id = :team_id
    RETURNING {_TEAM_COLUMNS}
""")


def _row_to_team(row: object) -> Team:
    return Team(
        id=row.id,  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        market_cap=row.market_cap,  # type: ignore[attr-defined]
        total_shares=row.total_shares,  # type: ignore[attr-defined]
        available_shares=row.available_shares,  # type: ignore[attr-defined]
        is_tradeable=row.is_tradeable,  # type: ignore[attr-defined]
        launch_price=row.launch_price,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class TeamRepository:
    async def get_team(
        self, db: AsyncSession, team_id: int, for_update: bool = False
    ) -> Team | None:
        sql = _GET_TEAM_FOR_UPDATE_SQL if for_update else _GET_TEAM_SQL
        result = await db.execute(sql, {"team_id": team_id})
        row = result.fetchone()
        return _row_to_team(row) if row else None

    async def list_teams(self, db: AsyncSession) -> list[Team]:
        result = await db.execute(_LIST_TEAMS_SQL)
        return [_row_to_team(row) for row in result.fetchall()]

    async def create_team(
        self,
        db: AsyncSession,
        name: str,
        market_cap: int,
        total_shares: int,
    ) -> Team:
        result = await db.execute(
            _CREATE_TEAM_SQL,
            {
                "name": name,
                "market_cap": market_cap,
                "total_shares": total_shares,
                "launch_price": share_price(market_cap, total_shares),
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Team insert returned no rows")
        return _row_to_team(row)

    async def save_state(self, db: AsyncSession, team: Team) -> None:
        result = await db.execute(
            _SAVE_STATE_SQL,
            {
                "team_id": team.id,
                "market_cap": team.market_cap,
                "available_shares": team.available_shares,
            },
        )
        if result.rowcount != 1:
            raise InternalError(f"Team state flush touched {result.rowcount} rows for {team.id}")

    async def set_tradeable(
        self, db: AsyncSession, team_id: int, is_tradeable: bool
    ) -> Team | None:
        result = await db.execute(
            _SET_TRADEABLE_SQL, {"team_id": team_id, "is_tradeable": is_tradeable}
        )
        row = result.fetchone()
        return _row_to_team(row) if row else None
