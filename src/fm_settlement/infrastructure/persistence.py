"""OrderRepository: INSERT and SELECT on the orders table.

Orders are append-only: a DB trigger rejects UPDATE and DELETE, and this
repository exposes no mutation besides the single insert at execution time.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import InternalError
from src.fm_settlement.domain.models import Order

_ORDER_COLUMNS = """
    id, user_id, team_id, order_type, quantity,
    price_per_share, total_amount, cost_basis,
    market_cap_before, market_cap_after,
    shares_outstanding_before, shares_outstanding_after,
    status, executed_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders
        (id, user_id, team_id, order_type, quantity,
         price_per_share, total_amount, cost_basis,
         market_cap_before, market_cap_after,
         shares_outstanding_before, shares_outstanding_after,
         status, executed_at)
    VALUES
        (:id, :user_id, :team_id, :order_type, :quantity,
         :price_per_share, :total_amount, :cost_basis,
         :market_cap_before, :market_cap_after,
         :shares_outstanding_before, :shares_outstanding_after,
         :status, :executed_at)
    RETURNING {_ORDER_COLUMNS}
""")

_GET_ORDER_SQL = text(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = :order_id")

_LIST_BY_USER_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders
    WHERE user_id = :user_id
      AND (CAST(:team_id AS INTEGER) IS NULL OR team_id = CAST(:team_id AS INTEGER))
    ORDER BY executed_at ASC, id ASC
""")

_REALIZED_PNL_SQL = text("""
    SELECT team_id, COALESCE(SUM(total_amount - cost_basis), 0) AS realized
    FROM orders
    WHERE user_id = :user_id AND order_type = 'SELL'
    GROUP BY team_id
""")


def _row_to_order(row: object) -> Order:
    return Order(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        team_id=row.team_id,  # type: ignore[attr-defined]
        order_type=row.order_type,  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        price_per_share=row.price_per_share,  # type: ignore[attr-defined]
        total_amount=row.total_amount,  # type: ignore[attr-defined]
        cost_basis=row.cost_basis,  # type: ignore[attr-defined]
        market_cap_before=row.market_cap_before,  # type: ignore[attr-defined]
        market_cap_after=row.market_cap_after,  # type: ignore[attr-defined]
        shares_outstanding_before=row.shares_outstanding_before,  # type: ignore[attr-defined]
        shares_outstanding_after=row.shares_outstanding_after,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        executed_at=row.executed_at,  # type: ignore[attr-defined]
    )


class OrderRepository:
    async def insert_order(self, db: AsyncSession, order: Order) -> Order:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "user_id": order.user_id,
                "team_id": order.team_id,
                "order_type": order.order_type,
                "quantity": order.quantity,
                "price_per_share": order.price_per_share,
                "total_amount": order.total_amount,
                "cost_basis": order.cost_basis,
                "market_cap_before": order.market_cap_before,
                "market_cap_after": order.market_cap_after,
                "shares_outstanding_before": order.shares_outstanding_before,
                "shares_outstanding_after": order.shares_outstanding_after,
                "status": order.status,
                "executed_at": order.executed_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Order insert returned no rows")
        return _row_to_order(row)

    async def get_order(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_GET_ORDER_SQL, {"order_id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def list_by_user(
        self, db: AsyncSession, user_id: str, team_id: int | None = None
    ) -> list[Order]:
        result = await db.execute(_LIST_BY_USER_SQL, {"user_id": user_id, "team_id": team_id})
        return [_row_to_order(row) for row in result.fetchall()]

    async def realized_pnl_by_team(
        self, db: AsyncSession, user_id: str
    ) -> dict[int, int]:
        result = await db.execute(_REALIZED_PNL_SQL, {"user_id": user_id})
        return {row.team_id: row.realized for row in result.fetchall()}
