"""Domain models for fm_ledger: append-only team valuation history."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TeamLedgerEntry:
    """One value-moving event for one team, with before/after snapshots.

    shares_outstanding_* records the pool's available share count at the
    time of the event, matching the order snapshot columns.
    """

    team_id: int
    ledger_type: str                 # LedgerType value
    market_cap_before: int           # cents
    market_cap_after: int            # cents
    share_price_before: int          # cents
    share_price_after: int           # cents
    shares_outstanding_before: int
    shares_outstanding_after: int
    amount: int = 0                  # cents moved: trade total or match transfer
    price_impact: int = 0            # share_price_after - share_price_before
    trigger_event_type: str | None = None   # TriggerEventType value
    trigger_event_id: str | None = None     # order id or fixture id
    opponent_team_id: int | None = None
    match_score: str | None = None
    event_description: str | None = None
    created_by: str = "system"
    id: int | None = None            # BIGSERIAL, None until appended
    created_at: datetime | None = None


@dataclass(frozen=True)
class MatchTransferRecord:
    """Pairwise record of one applied match transfer."""

    fixture_id: int
    winner_team_id: int
    loser_team_id: int
    nominal_amount: int
    transfer_amount: int
    floor_shortfall: int
    id: int | None = None
    created_at: datetime | None = None
