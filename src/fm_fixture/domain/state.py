"""Fixture lifecycle.

    scheduled ──close──▶ closed ──apply──▶ applied (terminal)
        │  ▲
    postpone reschedule
        ▼  │
      postponed

A result may be recorded while scheduled or closed; recording it closes
the fixture.
"""

from datetime import datetime, timedelta

from src.fm_common.enums import FixtureResult, FixtureStatus
from src.fm_common.errors import InvalidFixtureTransitionError
from src.fm_fixture.domain.models import Fixture

_TRANSITIONS: dict[str, frozenset[str]] = {
    FixtureStatus.SCHEDULED.value: frozenset({FixtureStatus.CLOSED.value, FixtureStatus.POSTPONED.value}),
    FixtureStatus.CLOSED.value: frozenset({FixtureStatus.APPLIED.value}),
    FixtureStatus.POSTPONED.value: frozenset({FixtureStatus.SCHEDULED.value}),
    FixtureStatus.APPLIED.value: frozenset(),
}

_RESULT_RECORDABLE = frozenset({FixtureStatus.SCHEDULED.value, FixtureStatus.CLOSED.value})


def can_transition(current: str, target: str) -> bool:
    return target in _TRANSITIONS.get(current, frozenset())


def transition(fixture: Fixture, target: FixtureStatus) -> None:
    if not can_transition(fixture.status, target.value):
        raise InvalidFixtureTransitionError(fixture.id, fixture.status, target.value)
    fixture.status = target.value


def derive_result(home_score: int, away_score: int) -> FixtureResult:
    if home_score < 0 or away_score < 0:
        raise ValueError(f"Scores must be non-negative, got {home_score}-{away_score}")
    if home_score > away_score:
        return FixtureResult.HOME_WIN
    if away_score > home_score:
        return FixtureResult.AWAY_WIN
    return FixtureResult.DRAW


def record_result(fixture: Fixture, home_score: int, away_score: int) -> None:
    """Store the final score; a scheduled fixture is closed as a side effect."""
    if fixture.status not in _RESULT_RECORDABLE:
        raise InvalidFixtureTransitionError(
            fixture.id, fixture.status, FixtureStatus.CLOSED.value
        )
    fixture.result = derive_result(home_score, away_score).value
    fixture.home_score = home_score
    fixture.away_score = away_score
    fixture.status = FixtureStatus.CLOSED.value


def reschedule(fixture: Fixture, kickoff_at: datetime, buy_close_offset: timedelta) -> None:
    transition(fixture, FixtureStatus.SCHEDULED)
    fixture.kickoff_at = kickoff_at
    fixture.buy_close_at = kickoff_at - buy_close_offset


def mark_applied(fixture: Fixture) -> None:
    transition(fixture, FixtureStatus.APPLIED)


def buy_window_open(next_fixture: Fixture | None, now: datetime) -> bool:
    """Trading is open unless the team's next upcoming fixture has closed its buy window."""
    if next_fixture is None:
        return True
    return now <= next_fixture.buy_close_at
