"""PositionRepository: concrete implementation of PositionRepositoryProtocol.

Transaction ownership: the caller begins and commits. Mutations only run
while the team row is locked by the settlement transaction, so one
(user, team) row is never written by two transactions at once.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import InternalError
from src.fm_position.domain.models import Position

_POSITION_COLUMNS = "id, user_id, team_id, quantity, total_invested, created_at, updated_at"

_GET_POSITION_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id AND team_id = :team_id
""")

_GET_POSITION_FOR_UPDATE_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id AND team_id = :team_id
    FOR UPDATE
""")

_INSERT_POSITION_SQL = text(f"""
    INSERT INTO positions (user_id, team_id, quantity, total_invested)
    VALUES (:user_id, :team_id, :quantity, :total_invested)
    RETURNING {_POSITION_COLUMNS}
""")

_UPDATE_POSITION_SQL = text(f"""
    UPDATE positions
    SET quantity = :quantity,
        total_invested = :total_invested,
        updated_at = NOW()
    WHERE id = :position_id
    RETURNING {_POSITION_COLUMNS}
""")

_DELETE_POSITION_SQL = text("DELETE FROM positions WHERE id = :position_id")

_LIST_BY_USER_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id
    ORDER BY team_id ASC
""")

_TOTAL_QUANTITY_BY_TEAM_SQL = text("""
    SELECT team_id, COALESCE(SUM(quantity), 0) AS held
    FROM positions
    GROUP BY team_id
""")


def _row_to_position(row: object) -> Position:
    return Position(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        team_id=row.team_id,  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        total_invested=row.total_invested,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class PositionRepository:
    async def get_position(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        for_update: bool = False,
    ) -> Position | None:
        sql = _GET_POSITION_FOR_UPDATE_SQL if for_update else _GET_POSITION_SQL
        result = await db.execute(sql, {"user_id": user_id, "team_id": team_id})
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def insert_position(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        quantity: int,
        total_invested: int,
    ) -> Position:
        result = await db.execute(
            _INSERT_POSITION_SQL,
            {
                "user_id": user_id,
                "team_id": team_id,
                "quantity": quantity,
                "total_invested": total_invested,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Position insert returned no rows")
        return _row_to_position(row)

    async def update_position(
        self,
        db: AsyncSession,
        position_id: int,
        quantity: int,
        total_invested: int,
    ) -> Position:
        result = await db.execute(
            _UPDATE_POSITION_SQL,
            {
                "position_id": position_id,
                "quantity": quantity,
                "total_invested": total_invested,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Position {position_id} vanished during update")
        return _row_to_position(row)

    async def delete_position(self, db: AsyncSession, position_id: int) -> None:
        result = await db.execute(_DELETE_POSITION_SQL, {"position_id": position_id})
        if result.rowcount != 1:
            raise InternalError(f"Position {position_id} delete touched {result.rowcount} rows")

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Position]:
        result = await db.execute(_LIST_BY_USER_SQL, {"user_id": user_id})
        return [_row_to_position(row) for row in result.fetchall()]

    async def total_quantity_by_team(self, db: AsyncSession) -> dict[int, int]:
        result = await db.execute(_TOTAL_QUANTITY_BY_TEAM_SQL)
        return {row.team_id: row.held for row in result.fetchall()}
