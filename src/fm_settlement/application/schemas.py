"""Pydantic schemas for fm_settlement API."""

from pydantic import BaseModel, Field

from src.fm_common.cents import cents_to_display
from src.fm_ledger.domain.models import TeamLedgerEntry
from src.fm_settlement.domain.models import Order, OrderResult, TransferResult

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TradeRequest(BaseModel):
    quantity: int = Field(..., gt=0, description="Whole shares")
    expected_price_cents: int = Field(..., ge=0, description="Quoted price per share")


class AdjustMarketCapRequest(BaseModel):
    new_market_cap_cents: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PositionSnapshotItem(BaseModel):
    position_id: int | None
    quantity: int
    total_invested_cents: int
    total_invested_display: str


class OrderResultResponse(BaseModel):
    order_id: str
    order_type: str
    team_id: int
    quantity: int
    price_per_share_cents: int
    price_per_share_display: str
    total_amount_cents: int
    total_amount_display: str
    new_wallet_balance_cents: int
    new_wallet_balance_display: str
    position: PositionSnapshotItem | None
    ledger_entry_id: int | None
    removed_cost_cents: int
    realized_pnl_cents: int
    realized_pnl_display: str

    @classmethod
    def from_result(cls, result: OrderResult) -> "OrderResultResponse":
        position = None
        if result.position is not None:
            position = PositionSnapshotItem(
                position_id=result.position.position_id,
                quantity=result.position.quantity,
                total_invested_cents=result.position.total_invested,
                total_invested_display=cents_to_display(result.position.total_invested),
            )
        return cls(
            order_id=result.order_id,
            order_type=result.order_type,
            team_id=result.team_id,
            quantity=result.quantity,
            price_per_share_cents=result.price_per_share,
            price_per_share_display=cents_to_display(result.price_per_share),
            total_amount_cents=result.total_amount,
            total_amount_display=cents_to_display(result.total_amount),
            new_wallet_balance_cents=result.new_wallet_balance,
            new_wallet_balance_display=cents_to_display(result.new_wallet_balance),
            position=position,
            ledger_entry_id=result.ledger_entry_id,
            removed_cost_cents=result.removed_cost,
            realized_pnl_cents=result.realized_pnl,
            realized_pnl_display=cents_to_display(result.realized_pnl),
        )


class TransferResultResponse(BaseModel):
    fixture_id: int
    result: str
    already_applied: bool
    winner_team_id: int | None
    loser_team_id: int | None
    nominal_transfer_cents: int
    transfer_amount_cents: int
    transfer_amount_display: str
    floor_shortfall_cents: int
    pair_total_before_cents: int
    pair_total_after_cents: int
    ledger_entry_ids: list[int | None]

    @classmethod
    def from_result(cls, result: TransferResult) -> "TransferResultResponse":
        return cls(
            fixture_id=result.fixture_id,
            result=result.result,
            already_applied=result.already_applied,
            winner_team_id=result.winner_team_id,
            loser_team_id=result.loser_team_id,
            nominal_transfer_cents=result.nominal_transfer,
            transfer_amount_cents=result.transfer_amount,
            transfer_amount_display=cents_to_display(result.transfer_amount),
            floor_shortfall_cents=result.floor_shortfall,
            pair_total_before_cents=result.pair_total_before,
            pair_total_after_cents=result.pair_total_after,
            ledger_entry_ids=list(result.ledger_entry_ids),
        )


class AdjustmentResponse(BaseModel):
    team_id: int
    ledger_entry_id: int | None
    market_cap_before_cents: int
    market_cap_after_cents: int
    share_price_after_cents: int

    @classmethod
    def from_entry(cls, entry: TeamLedgerEntry) -> "AdjustmentResponse":
        return cls(
            team_id=entry.team_id,
            ledger_entry_id=entry.id,
            market_cap_before_cents=entry.market_cap_before,
            market_cap_after_cents=entry.market_cap_after,
            share_price_after_cents=entry.share_price_after,
        )


class OrderItem(BaseModel):
    id: str
    team_id: int
    order_type: str
    quantity: int
    price_per_share_cents: int
    total_amount_cents: int
    total_amount_display: str
    realized_pnl_cents: int
    market_cap_before_cents: int
    market_cap_after_cents: int
    shares_outstanding_before: int
    shares_outstanding_after: int
    status: str
    executed_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, order: Order) -> "OrderItem":
        return cls(
            id=order.id,
            team_id=order.team_id,
            order_type=order.order_type,
            quantity=order.quantity,
            price_per_share_cents=order.price_per_share,
            total_amount_cents=order.total_amount,
            total_amount_display=cents_to_display(order.total_amount),
            realized_pnl_cents=order.realized_pnl,
            market_cap_before_cents=order.market_cap_before,
            market_cap_after_cents=order.market_cap_after,
            shares_outstanding_before=order.shares_outstanding_before,
            shares_outstanding_after=order.shares_outstanding_after,
            status=order.status,
            executed_at=order.executed_at.isoformat(),
        )


class OrderListResponse(BaseModel):
    items: list[OrderItem]


class AuditResponse(BaseModel):
    ok: bool
    violations: list[str]
