"""Repository Protocol for write-once orders.

Insert and read only: an order row has no update path.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_settlement.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def insert_order(self, db: AsyncSession, order: Order) -> Order: ...

    async def get_order(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def list_by_user(
        self, db: AsyncSession, user_id: str, team_id: int | None = None
    ) -> list[Order]: ...

    async def realized_pnl_by_team(
        self, db: AsyncSession, user_id: str
    ) -> dict[int, int]: ...
