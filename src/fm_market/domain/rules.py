"""Market state rules applied to a locked in-memory Team.

Trades never change market_cap (fixed-shares model): they only move shares
between the pool and users. Only match results move valuation.
"""

import logging

from src.fm_common.errors import InsufficientSharesError, InternalError, InvalidQuantityError
from src.fm_market.domain.models import MatchTransfer, Team

logger = logging.getLogger(__name__)


def reserve_shares_for_buy(team: Team, quantity: int) -> None:
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    if team.available_shares < quantity:
        raise InsufficientSharesError(quantity, team.available_shares)
    team.available_shares -= quantity


def release_shares_for_sell(team: Team, quantity: int) -> None:
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    released = team.available_shares + quantity
    if released > team.total_shares:
        # Users cannot hold more than was taken from the pool.
        raise InternalError(
            f"Share pool overflow for team {team.id}: "
            f"{released} available > {team.total_shares} total"
        )
    team.available_shares = released


def apply_match_transfer(
    winner: Team,
    loser: Team,
    transfer_amount: int,
    min_market_cap: int,
) -> MatchTransfer:
    """Move up to `transfer_amount` cents from loser to winner.

    The loser never drops below `min_market_cap`; a loser already at or
    below the floor transfers nothing. The winner receives exactly what the
    loser gives up, so the pair total is conserved.
    """
    if transfer_amount < 0:
        raise InternalError(f"Negative transfer amount: {transfer_amount}")

    headroom = max(loser.market_cap - min_market_cap, 0)
    amount = min(transfer_amount, headroom)

    transfer = MatchTransfer(
        nominal_amount=transfer_amount,
        amount=amount,
        winner_cap_before=winner.market_cap,
        winner_cap_after=winner.market_cap + amount,
        loser_cap_before=loser.market_cap,
        loser_cap_after=loser.market_cap - amount,
    )
    if transfer.clamped:
        logger.warning(
            "Match transfer clamped at floor: loser=%s nominal=%d actual=%d",
            loser.id,
            transfer_amount,
            amount,
        )

    winner.market_cap = transfer.winner_cap_after
    loser.market_cap = transfer.loser_cap_after
    return transfer


def verify_team_invariants(team: Team, min_market_cap: int) -> list[str]:
    """Return violation strings for capacity and floor invariants."""
    violations: list[str] = []
    if not (0 <= team.available_shares <= team.total_shares):
        violations.append(
            f"team {team.id}: available_shares={team.available_shares} "
            f"outside [0, {team.total_shares}]"
        )
    if team.market_cap < min_market_cap:
        violations.append(
            f"team {team.id}: market_cap={team.market_cap} below floor {min_market_cap}"
        )
    return violations
