"""Pydantic schemas for fm_position API."""

from pydantic import BaseModel

from src.fm_common.cents import cents_to_display


class PortfolioItem(BaseModel):
    team_id: int
    team_name: str
    quantity: int
    total_invested_cents: int
    total_invested_display: str
    average_cost_cents: int
    share_price_cents: int
    share_price_display: str
    market_value_cents: int
    market_value_display: str
    unrealized_pnl_cents: int
    unrealized_pnl_display: str
    realized_pnl_cents: int
    realized_pnl_display: str
    total_pnl_cents: int
    total_pnl_display: str

    @classmethod
    def from_cents(
        cls,
        team_id: int,
        team_name: str,
        quantity: int,
        total_invested: int,
        share_price: int,
        realized_pnl: int,
    ) -> "PortfolioItem":
        market_value = quantity * share_price
        unrealized = market_value - total_invested
        total = unrealized + realized_pnl
        return cls(
            team_id=team_id,
            team_name=team_name,
            quantity=quantity,
            total_invested_cents=total_invested,
            total_invested_display=cents_to_display(total_invested),
            average_cost_cents=total_invested // quantity if quantity else 0,
            share_price_cents=share_price,
            share_price_display=cents_to_display(share_price),
            market_value_cents=market_value,
            market_value_display=cents_to_display(market_value),
            unrealized_pnl_cents=unrealized,
            unrealized_pnl_display=cents_to_display(unrealized),
            realized_pnl_cents=realized_pnl,
            realized_pnl_display=cents_to_display(realized_pnl),
            total_pnl_cents=total,
            total_pnl_display=cents_to_display(total),
        )


class PortfolioResponse(BaseModel):
    user_id: str
    items: list[PortfolioItem]
    total_invested_cents: int
    total_market_value_cents: int
    total_market_value_display: str
    total_unrealized_pnl_cents: int
    total_realized_pnl_cents: int
    total_pnl_cents: int
    total_pnl_display: str

    @classmethod
    def from_items(cls, user_id: str, items: list[PortfolioItem]) -> "PortfolioResponse":
        market_value = sum(i.market_value_cents for i in items)
        total_pnl = sum(i.total_pnl_cents for i in items)
        return cls(
            user_id=user_id,
            items=items,
            total_invested_cents=sum(i.total_invested_cents for i in items),
            total_market_value_cents=market_value,
            total_market_value_display=cents_to_display(market_value),
            total_unrealized_pnl_cents=sum(i.unrealized_pnl_cents for i in items),
            total_realized_pnl_cents=sum(i.realized_pnl_cents for i in items),
            total_pnl_cents=total_pnl,
            total_pnl_display=cents_to_display(total_pnl),
        )
