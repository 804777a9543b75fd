"""Repository Protocol for the append-only ledger store.

No update or delete methods: the store only grows.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_ledger.domain.models import MatchTransferRecord, TeamLedgerEntry


class LedgerRepositoryProtocol(Protocol):
    async def append(
        self, db: AsyncSession, entry: TeamLedgerEntry
    ) -> TeamLedgerEntry: ...

    async def query_by_team(
        self,
        db: AsyncSession,
        team_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[TeamLedgerEntry]: ...

    async def record_transfer(
        self, db: AsyncSession, record: MatchTransferRecord
    ) -> MatchTransferRecord: ...
