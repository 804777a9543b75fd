"""Domain models for fm_position: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Position:
    user_id: str
    team_id: int
    quantity: int            # > 0 while the row exists
    total_invested: int      # cents, remaining cost basis
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def market_value(self, share_price: int) -> int:
        return self.quantity * share_price

    def unrealized_pnl(self, share_price: int) -> int:
        return self.market_value(share_price) - self.total_invested

    @property
    def average_cost(self) -> int:
        """Average cost per share in cents (floor)."""
        return self.total_invested // self.quantity if self.quantity else 0


@dataclass(frozen=True)
class SellOutcome:
    """Result of reducing a position by a sale."""

    position: Position | None   # None when the sale closed the position
    quantity_before: int
    removed_cost: int           # cents of cost basis released by the sale
    proceeds: int               # cents credited for the sale

    @property
    def realized_pnl(self) -> int:
        return self.proceeds - self.removed_cost

    @property
    def closed(self) -> bool:
        return self.position is None
