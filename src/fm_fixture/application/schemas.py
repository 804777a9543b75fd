"""Pydantic schemas for fm_fixture API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.fm_fixture.domain.models import Fixture


class CreateFixtureRequest(BaseModel):
    home_team_id: int = Field(..., gt=0)
    away_team_id: int = Field(..., gt=0)
    kickoff_at: datetime


class RecordResultRequest(BaseModel):
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)


class RescheduleFixtureRequest(BaseModel):
    kickoff_at: datetime


class FixtureItem(BaseModel):
    id: int
    home_team_id: int
    away_team_id: int
    kickoff_at: str  # ISO8601 string
    buy_close_at: str
    status: str
    result: str
    home_score: int | None
    away_score: int | None
    snapshot_home_cap_cents: int | None
    snapshot_away_cap_cents: int | None

    @classmethod
    def from_domain(cls, fixture: Fixture) -> "FixtureItem":
        return cls(
            id=fixture.id,
            home_team_id=fixture.home_team_id,
            away_team_id=fixture.away_team_id,
            kickoff_at=fixture.kickoff_at.isoformat(),
            buy_close_at=fixture.buy_close_at.isoformat(),
            status=fixture.status,
            result=fixture.result,
            home_score=fixture.home_score,
            away_score=fixture.away_score,
            snapshot_home_cap_cents=fixture.snapshot_home_cap,
            snapshot_away_cap_cents=fixture.snapshot_away_cap,
        )


class FixtureListResponse(BaseModel):
    items: list[FixtureItem]


class BuyWindowResponse(BaseModel):
    team_id: int
    is_open: bool
    next_fixture_id: int | None = None
    kickoff_at: str | None = None
    buy_close_at: str | None = None
