"""LedgerRepository: INSERT-only access to team_ledger and match_transfers.

Called from SettlementService within its transaction. Per-team ordering is
by id: inserts for one team are serialised by the team row lock, so id
order equals commit order for that team.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from dataclasses import replace
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import InternalError
from src.fm_ledger.domain.models import MatchTransferRecord, TeamLedgerEntry

_LEDGER_COLUMNS = """
    id, team_id, ledger_type,
    market_cap_before, market_cap_after,
    share_price_before, share_price_after,
    shares_outstanding_before, shares_outstanding_after,
    amount, price_impact,
    trigger_event_type, trigger_event_id,
    opponent_team_id, match_score, event_description,
    created_by, created_at
"""

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO team_ledger
        (team_id, ledger_type,
         market_cap_before, market_cap_after,
         share_price_before, share_price_after,
         shares_outstanding_before, shares_outstanding_after,
         amount, price_impact,
         trigger_event_type, trigger_event_id,
         opponent_team_id, match_score, event_description, created_by)
    VALUES
        (:team_id, :ledger_type,
         :market_cap_before, :market_cap_after,
         :share_price_before, :share_price_after,
         :shares_outstanding_before, :shares_outstanding_after,
         :amount, :price_impact,
         :trigger_event_type, :trigger_event_id,
         :opponent_team_id, :match_score, :event_description, :created_by)
    RETURNING {_LEDGER_COLUMNS}
""")

_QUERY_BY_TEAM_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM team_ledger
    WHERE team_id = :team_id
      AND (CAST(:since AS TIMESTAMPTZ) IS NULL OR created_at >= CAST(:since AS TIMESTAMPTZ))
      AND (CAST(:until AS TIMESTAMPTZ) IS NULL OR created_at < CAST(:until AS TIMESTAMPTZ))
    ORDER BY id ASC
    LIMIT :limit
""")

_INSERT_TRANSFER_SQL = text("""
    INSERT INTO match_transfers
        (fixture_id, winner_team_id, loser_team_id,
         nominal_amount, transfer_amount, floor_shortfall)
    VALUES
        (:fixture_id, :winner_team_id, :loser_team_id,
         :nominal_amount, :transfer_amount, :floor_shortfall)
    RETURNING id, created_at
""")


def _row_to_entry(row: object) -> TeamLedgerEntry:
    return TeamLedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        team_id=row.team_id,  # type: ignore[attr-defined]
        ledger_type=row.ledger_type,  # type: ignore[attr-defined]
        market_cap_before=row.market_cap_before,  # type: ignore[attr-defined]
        market_cap_after=row.market_cap_after,  # type: ignore[attr-defined]
        share_price_before=row.share_price_before,  # type: ignore[attr-defined]
        share_price_after=row.share_price_after,  # type: ignore[attr-defined]
        shares_outstanding_before=row.shares_outstanding_before,  # type: ignore[attr-defined]
        shares_outstanding_after=row.shares_outstanding_after,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        price_impact=row.price_impact,  # type: ignore[attr-defined]
        trigger_event_type=row.trigger_event_type,  # type: ignore[attr-defined]
        trigger_event_id=row.trigger_event_id,  # type: ignore[attr-defined]
        opponent_team_id=row.opponent_team_id,  # type: ignore[attr-defined]
        match_score=row.match_score,  # type: ignore[attr-defined]
        event_description=row.event_description,  # type: ignore[attr-defined]
        created_by=row.created_by,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    async def append(
        self, db: AsyncSession, entry: TeamLedgerEntry
    ) -> TeamLedgerEntry:
        """Insert one row within the caller's transaction; failures propagate."""
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "team_id": entry.team_id,
                "ledger_type": entry.ledger_type,
                "market_cap_before": entry.market_cap_before,
                "market_cap_after": entry.market_cap_after,
                "share_price_before": entry.share_price_before,
                "share_price_after": entry.share_price_after,
                "shares_outstanding_before": entry.shares_outstanding_before,
                "shares_outstanding_after": entry.shares_outstanding_after,
                "amount": entry.amount,
                "price_impact": entry.price_impact,
                "trigger_event_type": entry.trigger_event_type,
                "trigger_event_id": entry.trigger_event_id,
                "opponent_team_id": entry.opponent_team_id,
                "match_score": entry.match_score,
                "event_description": entry.event_description,
                "created_by": entry.created_by,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_entry(row)

    async def query_by_team(
        self,
        db: AsyncSession,
        team_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[TeamLedgerEntry]:
        result = await db.execute(
            _QUERY_BY_TEAM_SQL,
            {"team_id": team_id, "since": since, "until": until, "limit": limit},
        )
        return [_row_to_entry(row) for row in result.fetchall()]

    async def record_transfer(
        self, db: AsyncSession, record: MatchTransferRecord
    ) -> MatchTransferRecord:
        result = await db.execute(
            _INSERT_TRANSFER_SQL,
            {
                "fixture_id": record.fixture_id,
                "winner_team_id": record.winner_team_id,
                "loser_team_id": record.loser_team_id,
                "nominal_amount": record.nominal_amount,
                "transfer_amount": record.transfer_amount,
                "floor_shortfall": record.floor_shortfall,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Match transfer insert returned no rows")
        return replace(record, id=row.id, created_at=row.created_at)
