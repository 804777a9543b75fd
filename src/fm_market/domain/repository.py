"""Repository Protocol: dependency inversion for testability.

Unit tests inject an in-memory double that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_market.domain.models import Team


class TeamRepositoryProtocol(Protocol):
    async def get_team(
        self, db: AsyncSession, team_id: int, for_update: bool = False
    ) -> Team | None: ...

    async def list_teams(self, db: AsyncSession) -> list[Team]: ...

    async def create_team(
        self,
        db: AsyncSession,
        name: str,
        market_cap: int,
        total_shares: int,
    ) -> Team: ...

    async def save_state(self, db: AsyncSession, team: Team) -> None: ...

    async def set_tradeable(
        self, db: AsyncSession, team_id: int, is_tradeable: bool
    ) -> Team | None: ...
