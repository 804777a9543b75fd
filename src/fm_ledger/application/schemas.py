"""Pydantic schemas for the team ledger history API."""

from pydantic import BaseModel

from src.fm_common.cents import cents_to_display
from src.fm_ledger.domain.models import TeamLedgerEntry


class LedgerEntryItem(BaseModel):
    id: int | None
    ledger_type: str
    market_cap_before_cents: int
    market_cap_after_cents: int
    market_cap_after_display: str
    share_price_before_cents: int
    share_price_after_cents: int
    share_price_after_display: str
    shares_outstanding_before: int
    shares_outstanding_after: int
    amount_cents: int
    price_impact_cents: int
    trigger_event_type: str | None
    trigger_event_id: str | None
    opponent_team_id: int | None
    match_score: str | None
    event_description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, entry: TeamLedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            ledger_type=entry.ledger_type,
            market_cap_before_cents=entry.market_cap_before,
            market_cap_after_cents=entry.market_cap_after,
            market_cap_after_display=cents_to_display(entry.market_cap_after),
            share_price_before_cents=entry.share_price_before,
            share_price_after_cents=entry.share_price_after,
            share_price_after_display=cents_to_display(entry.share_price_after),
            shares_outstanding_before=entry.shares_outstanding_before,
            shares_outstanding_after=entry.shares_outstanding_after,
            amount_cents=entry.amount,
            price_impact_cents=entry.price_impact,
            trigger_event_type=entry.trigger_event_type,
            trigger_event_id=entry.trigger_event_id,
            opponent_team_id=entry.opponent_team_id,
            match_score=entry.match_score,
            event_description=entry.event_description,
            created_at=entry.created_at.isoformat() if entry.created_at else "",
        )


class TeamHistoryResponse(BaseModel):
    team_id: int
    items: list[LedgerEntryItem]
    chain_intact: bool
