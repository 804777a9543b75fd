"""Domain models for fm_market: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fm_common.cents import share_price


@dataclass
class Team:
    """Market state for one club.

    Held in memory while a settlement transaction has the row locked,
    mutated by the rules in fm_market.domain.rules, then flushed.
    """

    id: int
    name: str
    market_cap: int          # cents
    total_shares: int        # fixed at launch
    available_shares: int    # pool not held by users
    is_tradeable: bool = True
    launch_price: int | None = None  # cents per share at launch
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def share_price(self) -> int:
        return share_price(self.market_cap, self.total_shares)

    @property
    def shares_held(self) -> int:
        return self.total_shares - self.available_shares


@dataclass(frozen=True)
class MatchTransfer:
    """Outcome of moving value from loser to winner after a match."""

    nominal_amount: int      # floor(loser_cap * percent / 100)
    amount: int              # actually moved after the floor clamp
    winner_cap_before: int
    winner_cap_after: int
    loser_cap_before: int
    loser_cap_after: int

    @property
    def floor_shortfall(self) -> int:
        return self.nominal_amount - self.amount

    @property
    def clamped(self) -> bool:
        return self.amount < self.nominal_amount
