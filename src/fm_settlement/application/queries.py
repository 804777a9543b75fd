"""Read-side services for orders and the market-wide audit."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import OrderNotFoundError
from src.fm_ledger.domain.repository import LedgerRepositoryProtocol
from src.fm_ledger.infrastructure.persistence import LedgerRepository
from src.fm_market.domain.repository import TeamRepositoryProtocol
from src.fm_market.infrastructure.persistence import TeamRepository
from src.fm_position.domain.repository import PositionRepositoryProtocol
from src.fm_position.infrastructure.persistence import PositionRepository
from src.fm_settlement.application.schemas import AuditResponse, OrderItem, OrderListResponse
from src.fm_settlement.domain.invariants import verify_market_invariants
from src.fm_settlement.domain.repository import OrderRepositoryProtocol
from src.fm_settlement.infrastructure.persistence import OrderRepository

_SNAPSHOT_SQL = text("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ READ ONLY")


class OrderQueryService:
    def __init__(self, repo: OrderRepositoryProtocol | None = None) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()

    async def get_order(self, db: AsyncSession, user_id: str, order_id: str) -> OrderItem:
        order = await self._repo.get_order(db, order_id)
        # Other users' orders are reported as missing.
        if order is None or order.user_id != user_id:
            raise OrderNotFoundError(order_id)
        return OrderItem.from_domain(order)

    async def list_orders(
        self, db: AsyncSession, user_id: str, team_id: int | None = None
    ) -> OrderListResponse:
        orders = await self._repo.list_by_user(db, user_id, team_id)
        return OrderListResponse(items=[OrderItem.from_domain(o) for o in orders])


class AuditService:
    def __init__(
        self,
        teams: TeamRepositoryProtocol | None = None,
        positions: PositionRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._teams: TeamRepositoryProtocol = teams or TeamRepository()
        self._positions: PositionRepositoryProtocol = positions or PositionRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()

    async def run(self, db: AsyncSession) -> AuditResponse:
        # Holdings, pools and ledgers must come from one snapshot.
        await db.execute(_SNAPSHOT_SQL)
        try:
            violations = await verify_market_invariants(
                db, self._teams, self._positions, self._ledger
            )
        finally:
            await db.rollback()
        return AuditResponse(ok=not violations, violations=violations)
