"""Domain models for fm_fixture: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fm_common.enums import FixtureResult, FixtureStatus


@dataclass
class Fixture:
    id: int
    home_team_id: int
    away_team_id: int
    kickoff_at: datetime
    buy_close_at: datetime
    status: str = FixtureStatus.SCHEDULED.value
    result: str = FixtureResult.PENDING.value
    home_score: int | None = None
    away_score: int | None = None
    snapshot_home_cap: int | None = None   # cents at close, informational only
    snapshot_away_cap: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_final_result(self) -> bool:
        return self.result != FixtureResult.PENDING.value

    @property
    def team_ids(self) -> tuple[int, int]:
        """Both team ids in ascending order (the lock order)."""
        return tuple(sorted((self.home_team_id, self.away_team_id)))  # type: ignore[return-value]

    @property
    def winner_team_id(self) -> int | None:
        if self.result == FixtureResult.HOME_WIN.value:
            return self.home_team_id
        if self.result == FixtureResult.AWAY_WIN.value:
            return self.away_team_id
        return None

    @property
    def loser_team_id(self) -> int | None:
        if self.result == FixtureResult.HOME_WIN.value:
            return self.away_team_id
        if self.result == FixtureResult.AWAY_WIN.value:
            return self.home_team_id
        return None

    @property
    def score_label(self) -> str | None:
        if self.home_score is None or self.away_score is None:
            return None
        return f"{self.home_score}-{self.away_score}"
