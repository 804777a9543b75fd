# tests/unit/test_settlement_service.py
"""SettlementService end-to-end against the in-memory store doubles.

Covers the BUY / SELL / APPLY_MATCH_RESULT flows, their all-or-nothing
rollback, idempotent match application and per-team serialisation.
"""
import asyncio
import logging

import pytest
from sqlalchemy.exc import OperationalError

from config.settings import settings
from src.fm_common.enums import LedgerType, OrderType, TriggerEventType
from src.fm_common.errors import (
    FixtureNotFoundError,
    FixtureResultPendingError,
    InsufficientFundsError,
    InsufficientSharesError,
    InternalError,
    InvalidFixtureTransitionError,
    InvalidQuantityError,
    MarketCapBelowFloorError,
    PriceMismatchError,
    TeamNotFoundError,
    TeamNotTradeableError,
    TransactionConflictError,
    WalletNotFoundError,
)
from src.fm_ledger.domain.chain import verify_ledger_chain
from src.fm_settlement.domain.models import OrderResult, TransferResult


def _state(store):
    return (
        dict(store.teams),
        dict(store.wallets),
        dict(store.positions),
        dict(store.orders),
        list(store.ledger),
        list(store.wallet_txs),
        list(store.transfers),
        dict(store.fixtures),
    )


class _DeadlockError(Exception):
    sqlstate = "40P01"


class TestBuy:
    @pytest.mark.asyncio
    async def test_first_buy_opens_position_and_keeps_cap(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)

        result = await settlement.buy(session, "u1", team.id, 10, 10)

        assert isinstance(result, OrderResult)
        assert result.total_amount == 100
        assert result.new_wallet_balance == 900
        assert result.position.quantity == 10
        assert result.position.total_invested == 100
        assert store.teams[team.id].available_shares == 990
        assert store.teams[team.id].market_cap == 10000
        assert store.wallets["u1"].balance == 900
        assert len(store.orders) == 1
        assert len(store.ledger) == 1
        assert session.commits == 1

    @pytest.mark.asyncio
    async def test_order_ledger_and_wallet_share_reference(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)

        result = await settlement.buy(session, "u1", team.id, 10, 10)

        order = store.orders[result.order_id]
        entry = store.ledger[0]
        tx = store.wallet_txs[0]
        assert order.order_type == OrderType.BUY.value
        assert order.cost_basis == 100
        assert order.market_cap_before == order.market_cap_after == 10000
        assert order.shares_outstanding_before == 1000
        assert order.shares_outstanding_after == 990
        assert entry.id == result.ledger_entry_id
        assert entry.ledger_type == LedgerType.SHARE_PURCHASE.value
        assert entry.trigger_event_type == TriggerEventType.ORDER.value
        assert entry.trigger_event_id == result.order_id
        assert entry.amount == 100
        assert entry.created_by == "u1"
        assert tx.amount == -100
        assert tx.reference_id == result.order_id

    @pytest.mark.asyncio
    async def test_second_buy_accumulates_position(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)

        await settlement.buy(session, "u1", team.id, 10, 10)
        result = await settlement.buy(session, "u1", team.id, 5, 10)

        assert result.position.quantity == 15
        assert result.position.total_invested == 150
        assert len(store.positions) == 1

    @pytest.mark.asyncio
    async def test_quote_within_tolerance_fills_at_current_price(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)

        result = await settlement.buy(session, "u1", team.id, 10, 11)

        assert result.price_per_share == 10
        assert result.total_amount == 100

    @pytest.mark.asyncio
    async def test_stale_quote_rejected(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        before = _state(store)

        with pytest.raises(PriceMismatchError):
            await settlement.buy(session, "u1", team.id, 10, 12)
        assert _state(store) == before
        assert session.rollbacks == 1

    @pytest.mark.asyncio
    async def test_non_positive_quantity_rejected_before_transaction(
        self, store, settlement, session
    ):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)

        with pytest.raises(InvalidQuantityError):
            await settlement.buy(session, "u1", team.id, 0, 10)
        assert session.executed == []
        assert session.commits == 0

    @pytest.mark.asyncio
    async def test_untradeable_team_rejected(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000, is_tradeable=False)
        store.add_wallet("u1", 1000)

        with pytest.raises(TeamNotTradeableError):
            await settlement.buy(session, "u1", team.id, 1, 10)
        assert store.teams[team.id].available_shares == 1000

    @pytest.mark.asyncio
    async def test_zero_share_price_not_tradeable(self, store, settlement, session):
        team = store.add_team("Minnows", market_cap=400)
        store.add_wallet("u1", 1000)

        with pytest.raises(TeamNotTradeableError):
            await settlement.buy(session, "u1", team.id, 1, 0)

    @pytest.mark.asyncio
    async def test_unknown_team(self, store, settlement, session):
        store.add_wallet("u1", 1000)
        with pytest.raises(TeamNotFoundError):
            await settlement.buy(session, "u1", 999, 1, 10)

    @pytest.mark.asyncio
    async def test_insufficient_funds_leaves_no_trace(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 50)
        before = _state(store)

        with pytest.raises(InsufficientFundsError):
            await settlement.buy(session, "u1", team.id, 10, 10)
        assert _state(store) == before

    @pytest.mark.asyncio
    async def test_missing_wallet(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        with pytest.raises(WalletNotFoundError):
            await settlement.buy(session, "ghost", team.id, 1, 10)
        assert store.teams[team.id].available_shares == 1000

    @pytest.mark.asyncio
    async def test_pool_exhausted(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000, available_shares=3)
        store.add_wallet("u1", 1000)

        with pytest.raises(InsufficientSharesError):
            await settlement.buy(session, "u1", team.id, 4, 10)
        assert store.teams[team.id].available_shares == 3

    @pytest.mark.asyncio
    async def test_ledger_failure_rolls_back_everything(
        self, store, repos, settlement, session
    ):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        repos.ledger.fail_with = OperationalError("INSERT", {}, Exception("boom"))
        before = _state(store)

        with pytest.raises(InternalError):
            await settlement.buy(session, "u1", team.id, 10, 10)
        assert _state(store) == before
        assert session.commits == 0
        assert session.rollbacks == 1

    @pytest.mark.asyncio
    async def test_deadlock_maps_to_conflict(self, store, repos, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        repos.ledger.fail_with = OperationalError("INSERT", {}, _DeadlockError())

        with pytest.raises(TransactionConflictError):
            await settlement.buy(session, "u1", team.id, 10, 10)
        assert store.wallets["u1"].balance == 1000

    @pytest.mark.asyncio
    async def test_deadline_maps_to_conflict(
        self, store, settlement, session, monkeypatch
    ):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        monkeypatch.setattr(settings, "SETTLEMENT_TIMEOUT_SECONDS", 0.01)
        lock = settlement._team_locks[team.id]
        await lock.acquire()
        try:
            with pytest.raises(TransactionConflictError):
                await settlement.buy(session, "u1", team.id, 1, 10)
        finally:
            lock.release()
        assert store.teams[team.id].available_shares == 1000


class TestConcurrentBuys:
    @pytest.mark.asyncio
    async def test_last_shares_go_to_exactly_one_buyer(self, store, settlement, make_session):
        team = store.add_team("Rovers", market_cap=10000, available_shares=5)
        store.add_wallet("u1", 1000)
        store.add_wallet("u2", 1000)
        results = await asyncio.gather(
            settlement.buy(make_session(), "u1", team.id, 5, 10),
            settlement.buy(make_session(), "u2", team.id, 5, 10),
            return_exceptions=True,
        )

        filled = [r for r in results if isinstance(r, OrderResult)]
        rejected = [r for r in results if isinstance(r, InsufficientSharesError)]
        assert len(filled) == 1
        assert len(rejected) == 1
        assert filled[0].quantity == 5
        assert store.teams[team.id].available_shares == 0
        assert sum(p.quantity for p in store.positions.values()) == 5
        assert len(store.orders) == 1


class TestSell:
    @pytest.mark.asyncio
    async def test_partial_sell_removes_proportional_cost(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        await settlement.buy(session, "u1", team.id, 10, 10)

        result = await settlement.sell(session, "u1", team.id, 4, 10)

        assert result.total_amount == 40
        assert result.removed_cost == 40
        assert result.realized_pnl == 0
        assert result.position.quantity == 6
        assert result.position.total_invested == 60
        assert result.new_wallet_balance == 940
        assert store.teams[team.id].available_shares == 994
        order = store.orders[result.order_id]
        assert order.order_type == OrderType.SELL.value
        assert order.cost_basis == 40
        assert store.ledger[-1].ledger_type == LedgerType.SHARE_SALE.value

    @pytest.mark.asyncio
    async def test_removed_cost_is_floored(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        await settlement.buy(session, "u1", team.id, 1, 10)
        await settlement.adjust_market_cap(session, team.id, 11000, "rebase", "admin1")
        await settlement.buy(session, "u1", team.id, 2, 11)

        result = await settlement.sell(session, "u1", team.id, 1, 11)

        assert result.removed_cost == 10  # floor(32 * 1 / 3)
        assert result.position.total_invested == 22
        assert result.realized_pnl == 1

    @pytest.mark.asyncio
    async def test_oversell_rejected_without_mutation(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        await settlement.buy(session, "u1", team.id, 10, 10)
        before = _state(store)

        with pytest.raises(InsufficientSharesError):
            await settlement.sell(session, "u1", team.id, 15, 10)
        assert _state(store) == before

    @pytest.mark.asyncio
    async def test_sell_without_position(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        store.add_wallet("u1", 1000)
        with pytest.raises(InsufficientSharesError):
            await settlement.sell(session, "u1", team.id, 1, 10)

    @pytest.mark.asyncio
    async def test_round_trip_after_win_realizes_gain(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        rival = store.add_team("United", market_cap=10000)
        store.add_wallet("u1", 1000)
        await settlement.buy(session, "u1", team.id, 10, 10)
        fixture = store.add_fixture(
            team.id, rival.id, result="home_win", home_score=2, away_score=0
        )
        await settlement.apply_match_result(session, fixture.id)

        result = await settlement.sell(session, "u1", team.id, 10, 11)

        assert result.total_amount == 110
        assert result.realized_pnl == 10
        assert result.position is None
        assert store.positions == {}
        assert store.teams[team.id].available_shares == 1000
        assert store.wallets["u1"].balance == 1010


class TestApplyMatchResult:
    @pytest.mark.asyncio
    async def test_away_win_moves_ten_percent(self, store, settlement, session):
        loser = store.add_team("X", market_cap=10000)
        winner = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            loser.id, winner.id, result="away_win", home_score=0, away_score=1
        )

        result = await settlement.apply_match_result(session, fixture.id)

        assert isinstance(result, TransferResult)
        assert result.already_applied is False
        assert result.winner_team_id == winner.id
        assert result.loser_team_id == loser.id
        assert result.transfer_amount == 1000
        assert result.floor_shortfall == 0
        assert result.conserved
        assert store.teams[loser.id].market_cap == 9000
        assert store.teams[winner.id].market_cap == 6000
        assert store.fixtures[fixture.id].status == "applied"
        assert len(store.ledger) == 2
        assert len(store.transfers) == 1

    @pytest.mark.asyncio
    async def test_ledger_entries_describe_the_match(self, store, settlement, session):
        loser = store.add_team("X", market_cap=10000)
        winner = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            loser.id, winner.id, result="away_win", home_score=0, away_score=1
        )

        await settlement.apply_match_result(session, fixture.id)

        win = store.ledger_for(winner.id)[0]
        loss = store.ledger_for(loser.id)[0]
        assert win.ledger_type == LedgerType.MATCH_WIN.value
        assert loss.ledger_type == LedgerType.MATCH_LOSS.value
        assert win.amount == loss.amount == 1000
        assert (win.market_cap_before, win.market_cap_after) == (5000, 6000)
        assert (loss.market_cap_before, loss.market_cap_after) == (10000, 9000)
        assert win.price_impact == 1
        assert loss.price_impact == -1
        assert win.trigger_event_id == loss.trigger_event_id == str(fixture.id)
        assert win.opponent_team_id == loser.id
        assert win.match_score == "0-1"

    @pytest.mark.asyncio
    async def test_replay_is_a_no_op(self, store, settlement, session):
        loser = store.add_team("X", market_cap=10000)
        winner = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            loser.id, winner.id, result="away_win", home_score=0, away_score=1
        )
        await settlement.apply_match_result(session, fixture.id)
        before = _state(store)

        result = await settlement.apply_match_result(session, fixture.id)

        assert result.already_applied is True
        assert _state(store) == before
        assert session.commits == 1
        assert session.rollbacks == 1

    @pytest.mark.asyncio
    async def test_concurrent_apply_transfers_once(self, store, settlement, make_session):
        loser = store.add_team("X", market_cap=10000)
        winner = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            loser.id, winner.id, result="away_win", home_score=0, away_score=1
        )
        results = await asyncio.gather(
            settlement.apply_match_result(make_session(), fixture.id),
            settlement.apply_match_result(make_session(), fixture.id),
        )

        assert sorted(r.already_applied for r in results) == [False, True]
        assert store.teams[loser.id].market_cap == 9000
        assert store.teams[winner.id].market_cap == 6000
        assert len(store.ledger) == 2

    @pytest.mark.asyncio
    async def test_draw_writes_entries_without_moving_caps(self, store, settlement, session):
        home = store.add_team("X", market_cap=10000)
        away = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            home.id, away.id, result="draw", home_score=1, away_score=1
        )

        result = await settlement.apply_match_result(session, fixture.id)

        assert result.transfer_amount == 0
        assert result.conserved
        assert store.teams[home.id].market_cap == 10000
        assert store.teams[away.id].market_cap == 5000
        assert [e.ledger_type for e in store.ledger] == [LedgerType.MATCH_DRAW.value] * 2
        assert store.transfers == []
        assert store.fixtures[fixture.id].status == "applied"

    @pytest.mark.asyncio
    async def test_loser_clamped_at_floor(self, store, settlement, session, caplog):
        winner = store.add_team("X", market_cap=5000)
        loser = store.add_team("Y", market_cap=1050)
        fixture = store.add_fixture(
            winner.id, loser.id, result="home_win", home_score=3, away_score=0
        )

        with caplog.at_level(logging.WARNING):
            result = await settlement.apply_match_result(session, fixture.id)

        assert result.nominal_transfer == 105
        assert result.transfer_amount == 50
        assert result.floor_shortfall == 55
        assert result.conserved
        assert store.teams[loser.id].market_cap == settings.MIN_MARKET_CAP_CENTS
        assert store.teams[winner.id].market_cap == 5050
        assert store.transfers[0].floor_shortfall == 55
        assert "clamped" in caplog.text

    @pytest.mark.asyncio
    async def test_loser_at_floor_transfers_nothing(self, store, settlement, session):
        winner = store.add_team("X", market_cap=5000)
        loser = store.add_team("Y", market_cap=1000)
        fixture = store.add_fixture(
            winner.id, loser.id, result="home_win", home_score=1, away_score=0
        )

        result = await settlement.apply_match_result(session, fixture.id)

        assert result.transfer_amount == 0
        assert result.floor_shortfall == 100
        assert store.teams[loser.id].market_cap == 1000
        assert store.teams[winner.id].market_cap == 5000

    @pytest.mark.asyncio
    async def test_loser_below_floor_is_applied_without_transfer(
        self, store, settlement, session
    ):
        winner = store.add_team("X", market_cap=5000)
        loser = store.add_team("Y", market_cap=900)
        fixture = store.add_fixture(
            winner.id, loser.id, result="home_win", home_score=2, away_score=0
        )

        result = await settlement.apply_match_result(session, fixture.id)

        assert result.transfer_amount == 0
        assert result.floor_shortfall == 90
        assert store.teams[loser.id].market_cap == 900
        assert store.teams[winner.id].market_cap == 5000
        assert store.fixtures[fixture.id].status == "applied"
        assert [e.ledger_type for e in store.ledger] == [
            LedgerType.MATCH_WIN.value,
            LedgerType.MATCH_LOSS.value,
        ]

        replay = await settlement.apply_match_result(session, fixture.id)
        assert replay.already_applied is True

    @pytest.mark.asyncio
    async def test_winner_below_floor_gains_full_transfer(self, store, settlement, session):
        winner = store.add_team("X", market_cap=800)
        loser = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            winner.id, loser.id, result="home_win", home_score=1, away_score=0
        )

        result = await settlement.apply_match_result(session, fixture.id)

        assert result.transfer_amount == 500
        assert store.teams[winner.id].market_cap == 1300
        assert store.teams[loser.id].market_cap == 4500

    @pytest.mark.asyncio
    async def test_orders_keep_execution_snapshot(self, store, settlement, session):
        loser = store.add_team("X", market_cap=10000)
        winner = store.add_team("Y", market_cap=5000)
        store.add_wallet("u1", 1000)
        bought = await settlement.buy(session, "u1", loser.id, 10, 10)
        order_before = store.orders[bought.order_id]
        fixture = store.add_fixture(
            loser.id, winner.id, result="away_win", home_score=0, away_score=1
        )

        await settlement.apply_match_result(session, fixture.id)

        assert store.orders[bought.order_id] == order_before
        assert store.orders[bought.order_id].market_cap_before == 10000
        assert store.orders[bought.order_id].price_per_share == 10

    @pytest.mark.asyncio
    async def test_pending_result_rejected(self, store, settlement, session):
        home = store.add_team("X", market_cap=10000)
        away = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(home.id, away.id)

        with pytest.raises(FixtureResultPendingError):
            await settlement.apply_match_result(session, fixture.id)
        assert store.ledger == []

    @pytest.mark.asyncio
    async def test_postponed_fixture_rejected(self, store, settlement, session):
        home = store.add_team("X", market_cap=10000)
        away = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(home.id, away.id, status="postponed")

        with pytest.raises(FixtureResultPendingError):
            await settlement.apply_match_result(session, fixture.id)
        assert store.fixtures[fixture.id].status == "postponed"

    @pytest.mark.asyncio
    async def test_result_on_unclosed_fixture_rejected(self, store, settlement, session):
        home = store.add_team("X", market_cap=10000)
        away = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            home.id, away.id, status="scheduled", result="home_win",
            home_score=1, away_score=0,
        )

        with pytest.raises(InvalidFixtureTransitionError):
            await settlement.apply_match_result(session, fixture.id)
        assert store.teams[home.id].market_cap == 10000

    @pytest.mark.asyncio
    async def test_unknown_fixture(self, settlement, session):
        with pytest.raises(FixtureNotFoundError):
            await settlement.apply_match_result(session, 404)
        assert session.rollbacks == 1

    @pytest.mark.asyncio
    async def test_failure_mid_transfer_rolls_back_both_teams(
        self, store, repos, settlement, session
    ):
        loser = store.add_team("X", market_cap=10000)
        winner = store.add_team("Y", market_cap=5000)
        fixture = store.add_fixture(
            loser.id, winner.id, result="away_win", home_score=0, away_score=1
        )
        repos.ledger.fail_with = OperationalError("INSERT", {}, Exception("disk full"))
        before = _state(store)

        with pytest.raises(InternalError):
            await settlement.apply_match_result(session, fixture.id)
        assert _state(store) == before
        assert store.fixtures[fixture.id].status == "closed"


class TestAdjustMarketCap:
    @pytest.mark.asyncio
    async def test_adjustment_is_ledgered(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)

        entry = await settlement.adjust_market_cap(session, team.id, 12000, "audit fix", "admin1")

        assert entry.ledger_type == LedgerType.MANUAL_ADJUSTMENT.value
        assert entry.amount == 2000
        assert entry.price_impact == 2
        assert entry.created_by == "admin1"
        assert entry.event_description == "audit fix"
        assert store.teams[team.id].market_cap == 12000

    @pytest.mark.asyncio
    async def test_below_floor_rejected(self, store, settlement, session):
        team = store.add_team("Rovers", market_cap=10000)
        with pytest.raises(MarketCapBelowFloorError):
            await settlement.adjust_market_cap(session, team.id, 999, "oops", "admin1")
        assert session.executed == []


class TestLedgerChainAcrossOperations:
    @pytest.mark.asyncio
    async def test_chain_stays_intact(self, store, settlement, session):
        team = store.add_team("X", market_cap=10000)
        rival = store.add_team("Y", market_cap=10000)
        store.add_wallet("u1", 1000)

        await settlement.buy(session, "u1", team.id, 10, 10)
        fixture = store.add_fixture(
            team.id, rival.id, result="away_win", home_score=0, away_score=2
        )
        await settlement.apply_match_result(session, fixture.id)
        await settlement.sell(session, "u1", team.id, 5, 9)
        await settlement.adjust_market_cap(session, team.id, 12000, "rebase", "admin1")

        entries = store.ledger_for(team.id)
        assert len(entries) == 4
        assert verify_ledger_chain(entries) == []
        assert entries[-1].market_cap_after == store.teams[team.id].market_cap
        assert entries[-1].shares_outstanding_after == store.teams[team.id].available_shares
