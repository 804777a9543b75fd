"""Position Book: keeps (user, team) holdings consistent with the order history.

Runs inside the caller's settlement transaction; the position row is read
FOR UPDATE before it is mutated. All money is integer cents and the
proportional cost removed on a sale is floored (see fm_common.cents).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.cents import proportional_cost
from src.fm_common.errors import InsufficientSharesError, InvalidQuantityError
from src.fm_position.domain.models import Position, SellOutcome
from src.fm_position.domain.repository import PositionRepositoryProtocol

logger = logging.getLogger(__name__)


class PositionBook:
    def __init__(self, repo: PositionRepositoryProtocol) -> None:
        self._repo = repo

    async def apply_buy(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        quantity: int,
        total_cost: int,
    ) -> Position:
        """Create the position on first buy, otherwise add to quantity and cost."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        existing = await self._repo.get_position(db, user_id, team_id, for_update=True)
        if existing is None:
            return await self._repo.insert_position(db, user_id, team_id, quantity, total_cost)
        return await self._repo.update_position(
            db,
            existing.id,  # type: ignore[arg-type]
            existing.quantity + quantity,
            existing.total_invested + total_cost,
        )

    async def apply_sell(
        self,
        db: AsyncSession,
        user_id: str,
        team_id: int,
        quantity: int,
        proceeds: int,
    ) -> SellOutcome:
        """Reduce the position; delete the row when the last share is sold."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity)
        existing = await self._repo.get_position(db, user_id, team_id, for_update=True)
        held = existing.quantity if existing else 0
        if existing is None or held < quantity:
            raise InsufficientSharesError(quantity, held)

        removed_cost = proportional_cost(existing.total_invested, quantity, held)
        remaining = held - quantity
        if remaining == 0:
            await self._repo.delete_position(db, existing.id)  # type: ignore[arg-type]
            position = None
            logger.debug("Position closed: user=%s team=%s", user_id, team_id)
        else:
            position = await self._repo.update_position(
                db,
                existing.id,  # type: ignore[arg-type]
                remaining,
                existing.total_invested - removed_cost,
            )
        return SellOutcome(
            position=position,
            quantity_before=held,
            removed_cost=removed_cost,
            proceeds=proceeds,
        )

    async def get_position(
        self, db: AsyncSession, user_id: str, team_id: int
    ) -> Position | None:
        return await self._repo.get_position(db, user_id, team_id)

    async def list_positions(self, db: AsyncSession, user_id: str) -> list[Position]:
        return await self._repo.list_by_user(db, user_id)
