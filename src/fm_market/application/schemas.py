"""Pydantic schemas for fm_market API."""

from pydantic import BaseModel, Field

from src.fm_common.cents import cents_to_display
from src.fm_market.domain.models import Team


class CreateTeamRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    market_cap_cents: int | None = Field(None, gt=0)
    total_shares: int | None = Field(None, gt=0)


class SetTradeableRequest(BaseModel):
    is_tradeable: bool


class TeamItem(BaseModel):
    id: int
    name: str
    market_cap_cents: int
    market_cap_display: str
    share_price_cents: int
    share_price_display: str
    total_shares: int
    available_shares: int
    shares_held: int
    is_tradeable: bool
    launch_price_cents: int | None

    @classmethod
    def from_domain(cls, team: Team) -> "TeamItem":
        return cls(
            id=team.id,
            name=team.name,
            market_cap_cents=team.market_cap,
            market_cap_display=cents_to_display(team.market_cap),
            share_price_cents=team.share_price,
            share_price_display=cents_to_display(team.share_price),
            total_shares=team.total_shares,
            available_shares=team.available_shares,
            shares_held=team.shares_held,
            is_tradeable=team.is_tradeable,
            launch_price_cents=team.launch_price,
        )


class TeamListResponse(BaseModel):
    items: list[TeamItem]
