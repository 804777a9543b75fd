"""In-memory store doubles for settlement tests.

Each fake repository conforms to its module's Protocol and writes straight
into a shared InMemoryStore. FakeSession keeps an undo log of those writes:
commit() forgets it, rollback() replays it newest-first, so a failed
settlement leaves the store exactly as it was, even while other sessions
are writing to unrelated teams.
"""

import asyncio
import itertools
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple
from unittest.mock import MagicMock

import pytest

from src.fm_common.cents import share_price
from src.fm_common.errors import InsufficientFundsError, InvalidAmountError, WalletNotFoundError
from src.fm_fixture.domain.models import Fixture
from src.fm_ledger.domain.models import MatchTransferRecord, TeamLedgerEntry
from src.fm_market.domain.models import Team
from src.fm_position.domain.models import Position
from src.fm_settlement.application.service import SettlementService
from src.fm_settlement.domain.models import Order
from src.fm_wallet.domain.models import Wallet, WalletTransaction


class FakeSession:
    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []
        self.executed: list[str] = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, statement: Any, params: Any = None) -> MagicMock:
        self.executed.append(str(statement))
        return MagicMock()

    def on_rollback(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    async def commit(self) -> None:
        self._undo.clear()
        self.commits += 1

    async def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()
        self.rollbacks += 1


def _remember(db: FakeSession, mapping: dict, key: Any) -> None:
    if key in mapping:
        previous = mapping[key]
        db.on_rollback(lambda: mapping.__setitem__(key, previous))
    else:
        db.on_rollback(lambda: mapping.pop(key, None))


def _append(db: FakeSession, items: list, item: Any) -> None:
    items.append(item)
    db.on_rollback(lambda: items.remove(item))


class InMemoryStore:
    def __init__(self) -> None:
        self.teams: dict[int, Team] = {}
        self.wallets: dict[str, Wallet] = {}
        self.wallet_txs: list[WalletTransaction] = []
        self.positions: dict[tuple[str, int], Position] = {}
        self.orders: dict[str, Order] = {}
        self.ledger: list[TeamLedgerEntry] = []
        self.transfers: list[MatchTransferRecord] = []
        self.fixtures: dict[int, Fixture] = {}
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    # --- seeding helpers -------------------------------------------------

    def add_team(
        self,
        name: str,
        market_cap: int,
        total_shares: int = 1000,
        available_shares: int | None = None,
        is_tradeable: bool = True,
    ) -> Team:
        team = Team(
            id=self.next_id(),
            name=name,
            market_cap=market_cap,
            total_shares=total_shares,
            available_shares=total_shares if available_shares is None else available_shares,
            is_tradeable=is_tradeable,
            launch_price=share_price(market_cap, total_shares),
        )
        self.teams[team.id] = team
        return replace(team)

    def add_wallet(self, user_id: str, balance: int) -> None:
        self.wallets[user_id] = Wallet(user_id=user_id, balance=balance, id=self.next_id())

    def add_fixture(
        self,
        home_team_id: int,
        away_team_id: int,
        status: str = "closed",
        result: str = "pending",
        home_score: int | None = None,
        away_score: int | None = None,
        kickoff_at: datetime | None = None,
    ) -> Fixture:
        kickoff = kickoff_at or datetime(2026, 3, 1, 15, 0, tzinfo=UTC)
        fixture = Fixture(
            id=self.next_id(),
            home_team_id=home_team_id,
            away_team_id=away_team_id,
            kickoff_at=kickoff,
            buy_close_at=kickoff - timedelta(minutes=15),
            status=status,
            result=result,
            home_score=home_score,
            away_score=away_score,
        )
        self.fixtures[fixture.id] = fixture
        return replace(fixture)

    # --- inspection helpers ----------------------------------------------

    def ledger_for(self, team_id: int) -> list[TeamLedgerEntry]:
        return sorted((e for e in self.ledger if e.team_id == team_id), key=lambda e: e.id or 0)


class FakeTeamRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_team(self, db, team_id, for_update=False):  # type: ignore[no-untyped-def]
        await asyncio.sleep(0)
        team = self._store.teams.get(team_id)
        return replace(team) if team else None

    async def list_teams(self, db):  # type: ignore[no-untyped-def]
        return [replace(t) for t in sorted(self._store.teams.values(), key=lambda t: t.name)]

    async def create_team(self, db, name, market_cap, total_shares):  # type: ignore[no-untyped-def]
        team = Team(
            id=self._store.next_id(),
            name=name,
            market_cap=market_cap,
            total_shares=total_shares,
            available_shares=total_shares,
            launch_price=share_price(market_cap, total_shares),
        )
        _remember(db, self._store.teams, team.id)
        self._store.teams[team.id] = team
        return replace(team)

    async def save_state(self, db, team):  # type: ignore[no-untyped-def]
        _remember(db, self._store.teams, team.id)
        self._store.teams[team.id] = replace(team)

    async def set_tradeable(self, db, team_id, is_tradeable):  # type: ignore[no-untyped-def]
        team = self._store.teams.get(team_id)
        if team is None:
            return None
        _remember(db, self._store.teams, team_id)
        self._store.teams[team_id] = replace(team, is_tradeable=is_tradeable)
        return replace(self._store.teams[team_id])


class FakePositionRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _key_for(self, position_id: int) -> tuple[str, int]:
        for key, position in self._store.positions.items():
            if position.id == position_id:
                return key
        raise KeyError(position_id)

    async def get_position(self, db, user_id, team_id, for_update=False):  # type: ignore[no-untyped-def]
        position = self._store.positions.get((user_id, team_id))
        return replace(position) if position else None

    async def insert_position(self, db, user_id, team_id, quantity, total_invested):  # type: ignore[no-untyped-def]
        key = (user_id, team_id)
        if key in self._store.positions:
            raise AssertionError(f"duplicate position {key}")
        position = Position(
            user_id=user_id,
            team_id=team_id,
            quantity=quantity,
            total_invested=total_invested,
            id=self._store.next_id(),
        )
        _remember(db, self._store.positions, key)
        self._store.positions[key] = position
        return replace(position)

    async def update_position(self, db, position_id, quantity, total_invested):  # type: ignore[no-untyped-def]
        key = self._key_for(position_id)
        _remember(db, self._store.positions, key)
        self._store.positions[key] = replace(
            self._store.positions[key], quantity=quantity, total_invested=total_invested
        )
        return replace(self._store.positions[key])

    async def delete_position(self, db, position_id):  # type: ignore[no-untyped-def]
        key = self._key_for(position_id)
        _remember(db, self._store.positions, key)
        del self._store.positions[key]

    async def list_by_user(self, db, user_id):  # type: ignore[no-untyped-def]
        return [
            replace(p)
            for (uid, _), p in sorted(self._store.positions.items())
            if uid == user_id
        ]

    async def total_quantity_by_team(self, db):  # type: ignore[no-untyped-def]
        totals: dict[int, int] = {}
        for (_, team_id), p in self._store.positions.items():
            totals[team_id] = totals.get(team_id, 0) + p.quantity
        return totals


class FakeLedgerRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self.fail_with: Exception | None = None

    async def append(self, db, entry):  # type: ignore[no-untyped-def]
        if self.fail_with is not None:
            raise self.fail_with
        stored = replace(entry, id=self._store.next_id(), created_at=datetime.now(UTC))
        _append(db, self._store.ledger, stored)
        return stored

    async def query_by_team(self, db, team_id, since=None, until=None, limit=None):  # type: ignore[no-untyped-def]
        entries = self._store.ledger_for(team_id)
        return entries[:limit] if limit else entries

    async def record_transfer(self, db, record):  # type: ignore[no-untyped-def]
        stored = replace(record, id=self._store.next_id(), created_at=datetime.now(UTC))
        _append(db, self._store.transfers, stored)
        return stored


class FakeOrderRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def insert_order(self, db, order):  # type: ignore[no-untyped-def]
        if order.id in self._store.orders:
            raise AssertionError(f"order {order.id} written twice")
        _remember(db, self._store.orders, order.id)
        self._store.orders[order.id] = order
        return order

    async def get_order(self, db, order_id):  # type: ignore[no-untyped-def]
        return self._store.orders.get(order_id)

    async def list_by_user(self, db, user_id, team_id=None):  # type: ignore[no-untyped-def]
        return [
            o for o in self._store.orders.values()
            if o.user_id == user_id and (team_id is None or o.team_id == team_id)
        ]

    async def realized_pnl_by_team(self, db, user_id):  # type: ignore[no-untyped-def]
        totals: dict[int, int] = {}
        for o in self._store.orders.values():
            if o.user_id == user_id and o.order_type == "SELL":
                totals[o.team_id] = totals.get(o.team_id, 0) + o.realized_pnl
        return totals


class FakeWalletRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_wallet(self, db, user_id):  # type: ignore[no-untyped-def]
        wallet = self._store.wallets.get(user_id)
        return replace(wallet) if wallet else None

    async def open_wallet(self, db, user_id):  # type: ignore[no-untyped-def]
        if user_id not in self._store.wallets:
            _remember(db, self._store.wallets, user_id)
            self._store.wallets[user_id] = Wallet(
                user_id=user_id, balance=0, id=self._store.next_id()
            )
        return replace(self._store.wallets[user_id])

    async def debit(self, db, user_id, amount, tx_type, reference_type=None, reference_id=None, description=None):  # type: ignore[no-untyped-def]
        if amount <= 0:
            raise InvalidAmountError(amount)
        wallet = self._store.wallets.get(user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        if wallet.balance < amount:
            raise InsufficientFundsError(amount, wallet.balance)
        return self._apply(db, wallet, -amount, tx_type, reference_type, reference_id, description)

    async def credit(self, db, user_id, amount, tx_type, reference_type=None, reference_id=None, description=None):  # type: ignore[no-untyped-def]
        if amount <= 0:
            raise InvalidAmountError(amount)
        wallet = self._store.wallets.get(user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return self._apply(db, wallet, amount, tx_type, reference_type, reference_id, description)

    async def list_transactions(self, db, user_id, cursor_id, limit, tx_type):  # type: ignore[no-untyped-def]
        txs = [
            t for t in reversed(self._store.wallet_txs)
            if t.user_id == user_id
            and (cursor_id is None or t.id < cursor_id)
            and (tx_type is None or t.tx_type == tx_type)
        ]
        return txs[:limit]

    async def get_transaction(self, db, transaction_id, for_update=False):  # type: ignore[no-untyped-def]
        return next((t for t in self._store.wallet_txs if t.id == transaction_id), None)

    async def find_reversal(self, db, transaction_id):  # type: ignore[no-untyped-def]
        return next(
            (
                t for t in self._store.wallet_txs
                if t.tx_type == "credit_loan_reversal" and t.reference_id == str(transaction_id)
            ),
            None,
        )

    def _apply(self, db, wallet, signed_amount, tx_type, reference_type, reference_id, description):  # type: ignore[no-untyped-def]
        _remember(db, self._store.wallets, wallet.user_id)
        updated = replace(wallet, balance=wallet.balance + signed_amount)
        self._store.wallets[wallet.user_id] = updated
        tx = WalletTransaction(
            id=self._store.next_id(),
            user_id=wallet.user_id,
            tx_type=tx_type,
            amount=signed_amount,
            balance_after=updated.balance,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
        )
        _append(db, self._store.wallet_txs, tx)
        return replace(updated), tx


class FakeFixtureRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_fixture(self, db, fixture_id, for_update=False):  # type: ignore[no-untyped-def]
        await asyncio.sleep(0)
        fixture = self._store.fixtures.get(fixture_id)
        return replace(fixture) if fixture else None

    async def create_fixture(self, db, home_team_id, away_team_id, kickoff_at, buy_close_at):  # type: ignore[no-untyped-def]
        fixture = Fixture(
            id=self._store.next_id(),
            home_team_id=home_team_id,
            away_team_id=away_team_id,
            kickoff_at=kickoff_at,
            buy_close_at=buy_close_at,
        )
        _remember(db, self._store.fixtures, fixture.id)
        self._store.fixtures[fixture.id] = fixture
        return replace(fixture)

    async def save_fixture(self, db, fixture):  # type: ignore[no-untyped-def]
        _remember(db, self._store.fixtures, fixture.id)
        self._store.fixtures[fixture.id] = replace(fixture)
        return replace(fixture)

    async def list_fixtures(self, db, team_id=None, status=None):  # type: ignore[no-untyped-def]
        return [
            replace(f) for f in sorted(self._store.fixtures.values(), key=lambda f: f.kickoff_at)
            if (team_id is None or team_id in (f.home_team_id, f.away_team_id))
            and (status is None or f.status == status)
        ]

    async def next_fixture_for_team(self, db, team_id, now):  # type: ignore[no-untyped-def]
        upcoming = [
            f for f in await self.list_fixtures(db, team_id)
            if f.kickoff_at >= now and f.status in ("scheduled", "closed")
        ]
        return upcoming[0] if upcoming else None


class FakeRepos(NamedTuple):
    teams: FakeTeamRepository
    positions: FakePositionRepository
    ledger: FakeLedgerRepository
    orders: FakeOrderRepository
    wallet: FakeWalletRepository
    fixtures: FakeFixtureRepository


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repos(store: InMemoryStore) -> FakeRepos:
    return FakeRepos(
        teams=FakeTeamRepository(store),
        positions=FakePositionRepository(store),
        ledger=FakeLedgerRepository(store),
        orders=FakeOrderRepository(store),
        wallet=FakeWalletRepository(store),
        fixtures=FakeFixtureRepository(store),
    )


@pytest.fixture
def settlement(repos: FakeRepos) -> SettlementService:
    return SettlementService(
        teams=repos.teams,
        positions=repos.positions,
        ledger=repos.ledger,
        orders=repos.orders,
        wallet=repos.wallet,
        fixtures=repos.fixtures,
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_session() -> Callable[[], FakeSession]:
    """Factory for concurrent tests that need one session per task."""
    return FakeSession
