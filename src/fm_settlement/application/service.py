"""SettlementService: BUY, SELL and APPLY_MATCH_RESULT as single transactions.

Every operation runs inside `_run_in_transaction`, which:
  1. takes the in-process asyncio.Lock of each touched team (ascending id),
  2. bounds the whole unit with asyncio.timeout and Postgres lock_timeout,
  3. commits once on success and rolls back on any exception.

Team rows are additionally locked with SELECT ... FOR UPDATE, so the same
guarantee holds across worker processes. The wallet debit/credit, share pool
change, position change, order row and ledger entries either all persist or
none do. Failed sub-steps are never logged-and-continued.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from contextlib import AsyncExitStack
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_common.cents import match_transfer_amount, share_price
from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import (
    FixtureResult,
    FixtureStatus,
    LedgerType,
    OrderStatus,
    OrderType,
    TriggerEventType,
    WalletTransactionType,
)
from src.fm_common.errors import (
    FixtureNotFoundError,
    FixtureResultPendingError,
    InternalError,
    InvalidFixtureTransitionError,
    InvalidQuantityError,
    MarketCapBelowFloorError,
    PriceMismatchError,
    TeamNotFoundError,
    TeamNotTradeableError,
    TransactionConflictError,
)
from src.fm_common.id_generator import generate_order_id
from src.fm_fixture.domain import state as fixture_state
from src.fm_fixture.domain.models import Fixture
from src.fm_fixture.domain.repository import FixtureRepositoryProtocol
from src.fm_fixture.infrastructure.persistence import FixtureRepository
from src.fm_ledger.domain.models import MatchTransferRecord, TeamLedgerEntry
from src.fm_ledger.domain.repository import LedgerRepositoryProtocol
from src.fm_ledger.infrastructure.persistence import LedgerRepository
from src.fm_market.domain.models import Team
from src.fm_market.domain.repository import TeamRepositoryProtocol
from src.fm_market.domain.rules import (
    apply_match_transfer,
    release_shares_for_sell,
    reserve_shares_for_buy,
    verify_team_invariants,
)
from src.fm_market.infrastructure.persistence import TeamRepository
from src.fm_position.domain.book import PositionBook
from src.fm_position.domain.repository import PositionRepositoryProtocol
from src.fm_position.infrastructure.persistence import PositionRepository
from src.fm_settlement.domain.models import (
    Order,
    OrderResult,
    PositionSnapshot,
    TransferResult,
)
from src.fm_settlement.domain.repository import OrderRepositoryProtocol
from src.fm_settlement.infrastructure.persistence import OrderRepository
from src.fm_wallet.domain.repository import WalletLedgerProtocol
from src.fm_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available, unique_violation
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03", "23505"})


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class SettlementService:
    def __init__(
        self,
        teams: TeamRepositoryProtocol | None = None,
        positions: PositionRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        orders: OrderRepositoryProtocol | None = None,
        wallet: WalletLedgerProtocol | None = None,
        fixtures: FixtureRepositoryProtocol | None = None,
    ) -> None:
        self._teams: TeamRepositoryProtocol = teams or TeamRepository()
        self._book = PositionBook(positions or PositionRepository())
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._wallet: WalletLedgerProtocol = wallet or WalletRepository()
        self._fixtures: FixtureRepositoryProtocol = fixtures or FixtureRepository()
        self._team_locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    async def _run_in_transaction(
        self,
        db: AsyncSession,
        team_ids: Iterable[int],
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        lock_order = sorted(set(team_ids))
        try:
            async with asyncio.timeout(settings.SETTLEMENT_TIMEOUT_SECONDS):
                async with AsyncExitStack() as stack:
                    for team_id in lock_order:
                        await stack.enter_async_context(self._team_locks[team_id])
                    try:
                        await db.execute(
                            text(f"SET LOCAL lock_timeout = '{int(settings.LOCK_TIMEOUT_MS)}ms'")
                        )
                        result = await operation()
                        await db.commit()
                    except BaseException:
                        await db.rollback()
                        raise
                    return result
        except TimeoutError as exc:
            logger.warning("Settlement deadline exceeded for teams=%s", lock_order)
            raise TransactionConflictError("Settlement timed out, retry the operation") from exc
        except DBAPIError as exc:
            if _sqlstate(exc) in _CONFLICT_SQLSTATES:
                logger.warning("Settlement conflict (sqlstate=%s): %s", _sqlstate(exc), exc)
                raise TransactionConflictError() from exc
            logger.exception("Storage failure during settlement")
            raise InternalError("Storage failure during settlement") from exc
        except SQLAlchemyError as exc:
            logger.exception("Storage failure during settlement")
            raise InternalError("Storage failure during settlement") from exc

    async def _lock_team(self, db: AsyncSession, team_id: int) -> Team:
        team = await self._teams.get_team(db, team_id, for_update=True)
        if team is None:
            raise TeamNotFoundError(team_id)
        return team

    @staticmethod
    def _check_tradeable_and_price(team: Team, expected_price: int) -> int:
        if not team.is_tradeable:
            raise TeamNotTradeableError(team.id)
        current = team.share_price
        if current <= 0:
            raise TeamNotTradeableError(team.id, "share price rounds to zero")
        if abs(expected_price - current) > settings.PRICE_TOLERANCE_CENTS:
            raise PriceMismatchError(expected_price, current)
        return current

    # ------------------------------------------------------------------
    # BUY
    # ------------------------------------------------------------------

    async def buy(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        quantity: int,
        expected_price: int,
    ) -> OrderResult:
        if quantity <= 0:
            raise InvalidQuantityError(quantity)

        async def _buy() -> OrderResult:
            team = await self._lock_team(db, team_id)
            price = self._check_tradeable_and_price(team, expected_price)
            available_before = team.available_shares
            reserve_shares_for_buy(team, quantity)

            total = quantity * price
            order_id = generate_order_id()
            wallet, _ = await self._wallet.debit(
                db,
                user_id,
                total,
                WalletTransactionType.PURCHASE.value,
                reference_type=TriggerEventType.ORDER.value,
                reference_id=order_id,
                description=f"Bought {quantity} shares of {team.name}",
            )
            position = await self._book.apply_buy(db, user_id, team_id, quantity, total)
            order = await self._write_order(
                db, order_id, user_id, team, OrderType.BUY, quantity, price, total,
                cost_basis=total, available_before=available_before,
            )
            entry = await self._append_trade_entry(
                db, team, LedgerType.SHARE_PURCHASE, order, available_before,
                f"User {user_id} bought {quantity} shares",
            )
            await self._teams.save_state(db, team)
            return OrderResult(
                order_id=order.id,
                order_type=order.order_type,
                team_id=team_id,
                quantity=quantity,
                price_per_share=price,
                total_amount=total,
                new_wallet_balance=wallet.balance,
                position=PositionSnapshot.from_position(position),
                ledger_entry_id=entry.id,
            )

        result = await self._run_in_transaction(db, [team_id], _buy)
        logger.info(
            "BUY filled: order=%s user=%s team=%s qty=%d price=%d total=%d",
            result.order_id, user_id, team_id, quantity, result.price_per_share,
            result.total_amount,
        )
        return result

    # ------------------------------------------------------------------
    # SELL
    # ------------------------------------------------------------------

    async def sell(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        quantity: int,
        expected_price: int,
    ) -> OrderResult:
        if quantity <= 0:
            raise InvalidQuantityError(quantity)

        async def _sell() -> OrderResult:
            team = await self._lock_team(db, team_id)
            price = self._check_tradeable_and_price(team, expected_price)
            available_before = team.available_shares

            proceeds = quantity * price
            outcome = await self._book.apply_sell(db, user_id, team_id, quantity, proceeds)
            release_shares_for_sell(team, quantity)

            order_id = generate_order_id()
            wallet, _ = await self._wallet.credit(
                db,
                user_id,
                proceeds,
                WalletTransactionType.SALE.value,
                reference_type=TriggerEventType.ORDER.value,
                reference_id=order_id,
                description=f"Sold {quantity} shares of {team.name}",
            )
            order = await self._write_order(
                db, order_id, user_id, team, OrderType.SELL, quantity, price, proceeds,
                cost_basis=outcome.removed_cost, available_before=available_before,
            )
            entry = await self._append_trade_entry(
                db, team, LedgerType.SHARE_SALE, order, available_before,
                f"User {user_id} sold {quantity} shares",
            )
            await self._teams.save_state(db, team)
            return OrderResult(
                order_id=order.id,
                order_type=order.order_type,
                team_id=team_id,
                quantity=quantity,
                price_per_share=price,
                total_amount=proceeds,
                new_wallet_balance=wallet.balance,
                position=(
                    PositionSnapshot.from_position(outcome.position)
                    if outcome.position is not None
                    else None
                ),
                ledger_entry_id=entry.id,
                removed_cost=outcome.removed_cost,
                realized_pnl=outcome.realized_pnl,
            )

        result = await self._run_in_transaction(db, [team_id], _sell)
        logger.info(
            "SELL filled: order=%s user=%s team=%s qty=%d price=%d proceeds=%d pnl=%d",
            result.order_id, user_id, team_id, quantity, result.price_per_share,
            result.total_amount, result.realized_pnl,
        )
        return result

    # ------------------------------------------------------------------
    # APPLY_MATCH_RESULT
    # ------------------------------------------------------------------

    async def apply_match_result(self, db: AsyncSession, fixture_id: int) -> TransferResult:
        fixture = await self._fixtures.get_fixture(db, fixture_id)
        if fixture is None:
            await db.rollback()
            raise FixtureNotFoundError(fixture_id)
        if fixture.status == FixtureStatus.APPLIED.value:
            await db.rollback()
            logger.warning("Fixture %s already applied, skipping", fixture_id)
            return TransferResult(fixture_id=fixture_id, result=fixture.result, already_applied=True)

        async def _apply() -> TransferResult:
            locked = await self._fixtures.get_fixture(db, fixture_id, for_update=True)
            if locked is None:
                raise FixtureNotFoundError(fixture_id)
            if locked.status == FixtureStatus.APPLIED.value:
                return TransferResult(
                    fixture_id=fixture_id, result=locked.result, already_applied=True
                )
            if not locked.has_final_result:
                raise FixtureResultPendingError(fixture_id)
            if locked.status != FixtureStatus.CLOSED.value:
                raise InvalidFixtureTransitionError(
                    fixture_id, locked.status, FixtureStatus.APPLIED.value
                )

            first_id, second_id = locked.team_ids
            teams = {
                first_id: await self._lock_team(db, first_id),
                second_id: await self._lock_team(db, second_id),
            }
            if locked.result == FixtureResult.DRAW.value:
                result = await self._apply_draw(db, locked, teams)
            else:
                result = await self._apply_transfer(db, locked, teams)

            fixture_state.mark_applied(locked)
            await self._fixtures.save_fixture(db, locked)
            return result

        result = await self._run_in_transaction(db, fixture.team_ids, _apply)
        if result.already_applied:
            logger.warning("Fixture %s applied concurrently, skipping", fixture_id)
        else:
            logger.info(
                "Match applied: fixture=%s result=%s winner=%s loser=%s "
                "nominal=%d transfer=%d shortfall=%d",
                fixture_id, result.result, result.winner_team_id, result.loser_team_id,
                result.nominal_transfer, result.transfer_amount, result.floor_shortfall,
            )
        return result

    async def _apply_draw(
        self, db: AsyncSession, fixture: Fixture, teams: dict[int, Team]
    ) -> TransferResult:
        home = teams[fixture.home_team_id]
        away = teams[fixture.away_team_id]
        entry_ids: list[int | None] = []
        for team, opponent in ((home, away), (away, home)):
            entry = await self._ledger.append(
                db,
                TeamLedgerEntry(
                    team_id=team.id,
                    ledger_type=LedgerType.MATCH_DRAW.value,
                    market_cap_before=team.market_cap,
                    market_cap_after=team.market_cap,
                    share_price_before=team.share_price,
                    share_price_after=team.share_price,
                    shares_outstanding_before=team.available_shares,
                    shares_outstanding_after=team.available_shares,
                    trigger_event_type=TriggerEventType.FIXTURE.value,
                    trigger_event_id=str(fixture.id),
                    opponent_team_id=opponent.id,
                    match_score=fixture.score_label,
                    event_description=f"Draw vs {opponent.name}",
                ),
            )
            entry_ids.append(entry.id)
        pair_total = home.market_cap + away.market_cap
        return TransferResult(
            fixture_id=fixture.id,
            result=fixture.result,
            pair_total_before=pair_total,
            pair_total_after=pair_total,
            ledger_entry_ids=tuple(entry_ids),
        )

    async def _apply_transfer(
        self, db: AsyncSession, fixture: Fixture, teams: dict[int, Team]
    ) -> TransferResult:
        winner = teams[fixture.winner_team_id]  # type: ignore[index]
        loser = teams[fixture.loser_team_id]  # type: ignore[index]
        winner_price_before = winner.share_price
        loser_price_before = loser.share_price
        pair_total_before = winner.market_cap + loser.market_cap

        nominal = match_transfer_amount(loser.market_cap, settings.MATCH_TRANSFER_PERCENT)
        transfer = apply_match_transfer(winner, loser, nominal, settings.MIN_MARKET_CAP_CENTS)
        # A team already under the floor is only held to its pre-match cap.
        floors = (
            (winner, min(settings.MIN_MARKET_CAP_CENTS, transfer.winner_cap_before)),
            (loser, min(settings.MIN_MARKET_CAP_CENTS, transfer.loser_cap_before)),
        )
        for team, floor in floors:
            violations = verify_team_invariants(team, floor)
            if violations:
                for v in violations:
                    logger.error("Invariant violated: %s", v)
                raise InternalError("; ".join(violations))

        win_entry = await self._ledger.append(
            db,
            TeamLedgerEntry(
                team_id=winner.id,
                ledger_type=LedgerType.MATCH_WIN.value,
                market_cap_before=transfer.winner_cap_before,
                market_cap_after=transfer.winner_cap_after,
                share_price_before=winner_price_before,
                share_price_after=winner.share_price,
                shares_outstanding_before=winner.available_shares,
                shares_outstanding_after=winner.available_shares,
                amount=transfer.amount,
                price_impact=winner.share_price - winner_price_before,
                trigger_event_type=TriggerEventType.FIXTURE.value,
                trigger_event_id=str(fixture.id),
                opponent_team_id=loser.id,
                match_score=fixture.score_label,
                event_description=f"Win vs {loser.name}",
            ),
        )
        loss_entry = await self._ledger.append(
            db,
            TeamLedgerEntry(
                team_id=loser.id,
                ledger_type=LedgerType.MATCH_LOSS.value,
                market_cap_before=transfer.loser_cap_before,
                market_cap_after=transfer.loser_cap_after,
                share_price_before=loser_price_before,
                share_price_after=loser.share_price,
                shares_outstanding_before=loser.available_shares,
                shares_outstanding_after=loser.available_shares,
                amount=transfer.amount,
                price_impact=loser.share_price - loser_price_before,
                trigger_event_type=TriggerEventType.FIXTURE.value,
                trigger_event_id=str(fixture.id),
                opponent_team_id=winner.id,
                match_score=fixture.score_label,
                event_description=f"Loss vs {winner.name}",
            ),
        )
        await self._ledger.record_transfer(
            db,
            MatchTransferRecord(
                fixture_id=fixture.id,
                winner_team_id=winner.id,
                loser_team_id=loser.id,
                nominal_amount=transfer.nominal_amount,
                transfer_amount=transfer.amount,
                floor_shortfall=transfer.floor_shortfall,
            ),
        )
        await self._teams.save_state(db, winner)
        await self._teams.save_state(db, loser)
        return TransferResult(
            fixture_id=fixture.id,
            result=fixture.result,
            winner_team_id=winner.id,
            loser_team_id=loser.id,
            nominal_transfer=transfer.nominal_amount,
            transfer_amount=transfer.amount,
            floor_shortfall=transfer.floor_shortfall,
            pair_total_before=pair_total_before,
            pair_total_after=winner.market_cap + loser.market_cap,
            ledger_entry_ids=(win_entry.id, loss_entry.id),
        )

    # ------------------------------------------------------------------
    # Manual adjustment (admin)
    # ------------------------------------------------------------------

    async def adjust_market_cap(
        self,
        db: AsyncSession,
        team_id: int,
        new_market_cap: int,
        reason: str,
        admin_id: str,
    ) -> TeamLedgerEntry:
        if new_market_cap < settings.MIN_MARKET_CAP_CENTS:
            raise MarketCapBelowFloorError(new_market_cap, settings.MIN_MARKET_CAP_CENTS)

        async def _adjust() -> TeamLedgerEntry:
            team = await self._lock_team(db, team_id)
            cap_before = team.market_cap
            price_before = team.share_price
            team.market_cap = new_market_cap
            entry = await self._ledger.append(
                db,
                TeamLedgerEntry(
                    team_id=team.id,
                    ledger_type=LedgerType.MANUAL_ADJUSTMENT.value,
                    market_cap_before=cap_before,
                    market_cap_after=new_market_cap,
                    share_price_before=price_before,
                    share_price_after=team.share_price,
                    shares_outstanding_before=team.available_shares,
                    shares_outstanding_after=team.available_shares,
                    amount=new_market_cap - cap_before,
                    price_impact=team.share_price - price_before,
                    trigger_event_type=TriggerEventType.ADMIN.value,
                    event_description=reason,
                    created_by=admin_id,
                ),
            )
            await self._teams.save_state(db, team)
            return entry

        entry = await self._run_in_transaction(db, [team_id], _adjust)
        logger.info(
            "Market cap adjusted: team=%s %d -> %d by %s (%s)",
            team_id, entry.market_cap_before, entry.market_cap_after, admin_id, reason,
        )
        return entry

    # ------------------------------------------------------------------
    # Shared write helpers
    # ------------------------------------------------------------------

    async def _write_order(
        self,
        db: AsyncSession,
        order_id: str,
        user_id: str,
        team: Team,
        order_type: OrderType,
        quantity: int,
        price: int,
        total: int,
        cost_basis: int,
        available_before: int,
    ) -> Order:
        return await self._orders.insert_order(
            db,
            Order(
                id=order_id,
                user_id=user_id,
                team_id=team.id,
                order_type=order_type.value,
                quantity=quantity,
                price_per_share=price,
                total_amount=total,
                cost_basis=cost_basis,
                market_cap_before=team.market_cap,
                market_cap_after=team.market_cap,
                shares_outstanding_before=available_before,
                shares_outstanding_after=team.available_shares,
                status=OrderStatus.FILLED.value,
                executed_at=utc_now(),
            ),
        )

    async def _append_trade_entry(
        self,
        db: AsyncSession,
        team: Team,
        ledger_type: LedgerType,
        order: Order,
        available_before: int,
        description: str,
    ) -> TeamLedgerEntry:
        price = share_price(team.market_cap, team.total_shares)
        return await self._ledger.append(
            db,
            TeamLedgerEntry(
                team_id=team.id,
                ledger_type=ledger_type.value,
                market_cap_before=team.market_cap,
                market_cap_after=team.market_cap,
                share_price_before=price,
                share_price_after=price,
                shares_outstanding_before=available_before,
                shares_outstanding_after=team.available_shares,
                amount=order.total_amount,
                trigger_event_type=TriggerEventType.ORDER.value,
                trigger_event_id=order.id,
                created_by=order.user_id,
                event_description=description,
            ),
        )
