"""PortfolioService: per-user holdings valued at the current share price.

Unrealized P&L uses the live price; realized P&L is summed from SELL orders
so it survives a position being closed. Teams the user has fully exited
still appear with quantity 0 while they carry realized P&L.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_market.domain.repository import TeamRepositoryProtocol
from src.fm_market.infrastructure.persistence import TeamRepository
from src.fm_position.application.schemas import PortfolioItem, PortfolioResponse
from src.fm_position.domain.book import PositionBook
from src.fm_position.infrastructure.persistence import PositionRepository
from src.fm_settlement.domain.repository import OrderRepositoryProtocol
from src.fm_settlement.infrastructure.persistence import OrderRepository


class PortfolioService:
    def __init__(
        self,
        book: PositionBook | None = None,
        teams: TeamRepositoryProtocol | None = None,
        orders: OrderRepositoryProtocol | None = None,
    ) -> None:
        self._book = book or PositionBook(PositionRepository())
        self._teams: TeamRepositoryProtocol = teams or TeamRepository()
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()

    async def get_portfolio(self, db: AsyncSession, user_id: str) -> PortfolioResponse:
        positions = {p.team_id: p for p in await self._book.list_positions(db, user_id)}
        realized = await self._orders.realized_pnl_by_team(db, user_id)
        teams = {t.id: t for t in await self._teams.list_teams(db)}

        items: list[PortfolioItem] = []
        for team_id in sorted(set(positions) | set(realized)):
            team = teams.get(team_id)
            if team is None:
                continue
            position = positions.get(team_id)
            items.append(
                PortfolioItem.from_cents(
                    team_id=team_id,
                    team_name=team.name,
                    quantity=position.quantity if position else 0,
                    total_invested=position.total_invested if position else 0,
                    share_price=team.share_price,
                    realized_pnl=realized.get(team_id, 0),
                )
            )
        return PortfolioResponse.from_items(user_id, items)
