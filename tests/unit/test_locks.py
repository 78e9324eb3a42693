"""Unit tests for season locks and the mutations they guard."""

from decimal import Decimal

import pytest

from courtrank.errors import (
    PendingMatchesError,
    SeasonAlreadyLockedError,
    SeasonLockedError,
    SeasonNotFoundError,
    SeasonNotLockedError,
)
from courtrank.rating.locks import SeasonLockService
from courtrank.rating.replay import SeasonReplayCoordinator
from courtrank.rating.service import RatingService
from courtrank.statuses import MATCH_CANCELLED, MATCH_SCHEDULED, MATCH_VOID, SINGLES


@pytest.fixture
def locks(db_session):
    return SeasonLockService(db_session)


def test_lock_and_unlock(locks, league):
    season = league.season()

    lock = locks.lock_season(season.id, admin_id=9, notes="Season final")

    assert lock.is_locked
    assert lock.locked_by == 9
    assert locks.is_locked(season.id)

    status = locks.lock_status(season.id)
    assert status["is_locked"] is True
    assert status["notes"] == "Season final"

    locks.unlock_season(season.id, admin_id=4)
    assert not locks.is_locked(season.id)
    notes = locks.lock_status(season.id)["notes"]
    assert notes.startswith("Season final\n[Unlocked by admin 4 at ")


def test_status_of_never_locked_season(locks, league):
    season = league.season()
    assert locks.lock_status(season.id) == {
        "season_id": season.id,
        "is_locked": False,
        "locked_at": None,
        "locked_by": None,
        "notes": None,
    }


def test_lock_unknown_season(locks):
    with pytest.raises(SeasonNotFoundError):
        locks.lock_season(999)


def test_double_lock_fails(locks, league):
    season = league.season()
    locks.lock_season(season.id, admin_id=1)

    with pytest.raises(SeasonAlreadyLockedError):
        locks.lock_season(season.id, admin_id=2)
    assert locks.lock_status(season.id)["locked_by"] == 1


def test_unlock_requires_lock(locks, league):
    season = league.season()
    with pytest.raises(SeasonNotLockedError):
        locks.unlock_season(season.id)


def test_pending_matches_block_lock(locks, league):
    season = league.season()
    alice, bob, carol = league.users(3)
    league.match(season, [alice], [bob])
    league.match(season, [alice], [carol], status=MATCH_CANCELLED)
    league.match(season, [bob], [carol], status=MATCH_VOID)
    league.match(season, [bob], [alice], status=MATCH_SCHEDULED)

    with pytest.raises(PendingMatchesError) as excinfo:
        locks.lock_season(season.id)

    assert excinfo.value.pending == 1
    assert excinfo.value.status_code == 400
    assert not locks.is_locked(season.id)


def test_locked_season_is_read_only(db_session, locks, league):
    """Every rating mutation fails on a locked season and changes nothing."""
    season = league.season()
    alice, bob = league.users(2)
    service = RatingService(db_session)
    service.create_initial_rating(alice.id, season.id, SINGLES)
    service.create_initial_rating(bob.id, season.id, SINGLES)
    match = league.match(season, [alice], [bob])
    service.record_match(match.id)
    db_session.commit()

    def snapshot():
        rows = []
        for user in (alice, bob):
            rating = service.get_rating(user.id, season.id, SINGLES)
            rows.append((
                rating.current_rating,
                rating.rating_deviation,
                rating.matches_played,
                len(service.get_history(user.id, season.id, SINGLES, limit=None)),
            ))
        return rows

    before = snapshot()
    locks.lock_season(season.id, admin_id=1)

    with pytest.raises(SeasonLockedError):
        service.adjust_rating(alice.id, season.id, SINGLES, Decimal("1700"), "typo")
    with pytest.raises(SeasonLockedError):
        service.record_match(match.id)
    with pytest.raises(SeasonLockedError):
        service.reverse_match(match.id)
    with pytest.raises(SeasonLockedError):
        service.create_initial_rating(league.users(1)[0].id, season.id, SINGLES)
    with pytest.raises(SeasonLockedError):
        SeasonReplayCoordinator(db_session).recalculate_season(season.id)

    assert snapshot() == before
