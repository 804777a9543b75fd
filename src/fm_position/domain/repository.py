"""Repository Protocol for per-(user, team) holdings."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_position.domain.models import Position


class PositionRepositoryProtocol(Protocol):
    async def get_position(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        for_update: bool = False,
    ) -> Position | None: ...

    async def insert_position(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        quantity: int,
        total_invested: int,
    ) -> Position: ...

    async def update_position(
        self,
        db: AsyncSession,
        position_id: int,
        quantity: int,
        total_invested: int,
    ) -> Position: ...

    async def delete_position(self, db: AsyncSession, position_id: int) -> None: ...

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Position]: ...

    async def total_quantity_by_team(self, db: AsyncSession) -> dict[int, int]: ...
