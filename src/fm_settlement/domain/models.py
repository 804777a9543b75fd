"""Domain models for fm_settlement.

Order is frozen: its execution-time snapshot is written once and never
recalculated, whatever happens to the team's live market cap afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.fm_position.domain.models import Position


@dataclass(frozen=True)
class Order:
    id: str
    user_id: str
    team_id: int
    order_type: str                  # OrderType value
    quantity: int
    price_per_share: int             # cents
    total_amount: int                # cents
    cost_basis: int                  # BUY: total_amount; SELL: cost basis removed
    market_cap_before: int
    market_cap_after: int
    shares_outstanding_before: int
    shares_outstanding_after: int
    status: str                      # OrderStatus value, always FILLED here
    executed_at: datetime

    @property
    def realized_pnl(self) -> int:
        """Zero for buys; proceeds minus removed cost basis for sells."""
        if self.order_type == "SELL":
            return self.total_amount - self.cost_basis
        return 0


@dataclass(frozen=True)
class PositionSnapshot:
    user_id: str
    team_id: int
    quantity: int
    total_invested: int
    position_id: int | None

    @classmethod
    def from_position(cls, position: Position) -> "PositionSnapshot":
        return cls(
            user_id=position.user_id,
            team_id=position.team_id,
            quantity=position.quantity,
            total_invested=position.total_invested,
            position_id=position.id,
        )


@dataclass(frozen=True)
class OrderResult:
    """Success payload of BUY / SELL."""

    order_id: str
    order_type: str
    team_id: int
    quantity: int
    price_per_share: int
    total_amount: int
    new_wallet_balance: int
    position: PositionSnapshot | None    # None after a SELL that closed the position
    ledger_entry_id: int | None
    removed_cost: int = 0
    realized_pnl: int = 0


@dataclass(frozen=True)
class TransferResult:
    """Success payload of APPLY_MATCH_RESULT (including idempotent replays)."""

    fixture_id: int
    result: str                          # FixtureResult value
    already_applied: bool = False
    winner_team_id: int | None = None
    loser_team_id: int | None = None
    nominal_transfer: int = 0
    transfer_amount: int = 0
    floor_shortfall: int = 0
    pair_total_before: int = 0
    pair_total_after: int = 0
    ledger_entry_ids: tuple[int | None, ...] = field(default_factory=tuple)

    @property
    def conserved(self) -> bool:
        return self.pair_total_before == self.pair_total_after
