"""
Unit tests for season replay.

Tests the reset + chronological replay to ensure:
- Replaying a season reproduces the live ratings
- Matches replay in completed_at order, not insertion order
- A bad match is recorded and skipped, not fatal
- Narrow scopes only touch their own ratings
- Preview never writes
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from courtrank.db.models import RatingHistory
from courtrank.errors import SeasonNotFoundError
from courtrank.rating.params import RatingConfig
from courtrank.rating.replay import ReplayResult, SeasonReplayCoordinator
from courtrank.rating.service import RatingService
from courtrank.statuses import (
    MATCH_VOID,
    REASON_ADMIN_RESET,
    REASON_MATCH_WIN,
    REASON_RECALCULATION,
    SINGLES,
)


@pytest.fixture
def service(db_session):
    return RatingService(db_session)


@pytest.fixture
def coordinator(db_session):
    return SeasonReplayCoordinator(db_session)


@pytest.fixture
def played(db_session, league, service):
    """
    Three players and three live-recorded matches:
    alice beats bob, bob beats carol, alice beats carol.
    """
    season = league.season()
    division = league.division(season)
    alice, bob, carol = league.users(3)
    matches = [
        league.match(season, [alice], [bob], division=division),
        league.match(season, [bob], [carol], division=division),
        league.match(season, [alice], [carol], division=division),
    ]
    for user in (alice, bob, carol):
        service.create_initial_rating(user.id, season.id, SINGLES, division_id=division.id)
    for match in matches:
        service.record_match(match.id)
    db_session.commit()
    return season, division, (alice, bob, carol), matches


def ratings_of(service, season, users):
    return [service.get_rating(u.id, season.id, SINGLES).current_rating for u in users]


def history_sum(service, season, user):
    rows = service.get_history(user.id, season.id, SINGLES, limit=None)
    return sum((row.delta for row in rows), Decimal("0"))


def history_count(db_session):
    return db_session.query(RatingHistory).count()


class TestSeasonReplay:
    def test_reproduces_live_ratings(self, coordinator, service, played):
        season, _, users, _ = played
        live = ratings_of(service, season, users)

        result = coordinator.recalculate_season(season.id, admin_id=1)

        assert result.status == "success"
        assert result.ratings_reset == 3
        assert result.matches_processed == 3
        assert result.ratings_updated == 6
        assert ratings_of(service, season, users) == live

    def test_reset_is_audited(self, coordinator, service, played):
        season, _, (alice, _, _), _ = played
        before = service.get_rating(alice.id, season.id, SINGLES).current_rating

        coordinator.recalculate_season(season.id, admin_id=7)

        rows = service.get_history(alice.id, season.id, SINGLES, limit=None)
        resets = [r for r in rows if r.reason == REASON_ADMIN_RESET]
        assert len(resets) == 1
        assert resets[0].rating_before == before
        assert resets[0].rating_after == Decimal("1500.00")
        assert "admin 7" in resets[0].notes

    def test_history_still_explains_ratings(self, coordinator, service, played):
        season, _, users, _ = played

        coordinator.recalculate_season(season.id)
        coordinator.recalculate_season(season.id)

        for user in users:
            rating = service.get_rating(user.id, season.id, SINGLES)
            assert history_sum(service, season, user) == rating.current_rating - Decimal("1500")
            assert rating.matches_played == 2

    def test_uses_new_parameters(self, db_session, coordinator, service, played):
        season, _, (alice, _, _), _ = played
        update = RatingConfig(db_session).set_parameters(season.id, {"k_factor_new": 20})
        db_session.commit()
        assert update.warning is not None

        coordinator.recalculate_season(season.id)

        rows = service.get_history(alice.id, season.id, SINGLES, limit=None)
        reset_at = next(i for i, h in enumerate(rows) if h.reason == REASON_ADMIN_RESET)
        replayed_wins = [h for h in rows[:reset_at] if h.reason == REASON_MATCH_WIN]
        # First win of the replay, at even odds with K 20
        assert replayed_wins[-1].delta == Decimal("10.00")

    def test_reset_and_replay_share_parameters(self, db_session, coordinator, service, played):
        """A change made after the season was played applies to every replayed match."""
        season, _, (alice, bob, _), _ = played
        RatingConfig(db_session).set_parameters(
            season.id, {"initial_rating": 1200, "k_factor_new": 20}
        )
        db_session.commit()

        coordinator.recalculate_season(season.id)

        rows = service.get_history(alice.id, season.id, SINGLES, limit=None)
        reset_at = next(i for i, h in enumerate(rows) if h.reason == REASON_ADMIN_RESET)
        assert rows[reset_at].rating_after == Decimal("1200.00")
        first_win = rows[:reset_at][-1]
        assert first_win.rating_before == Decimal("1200.00")
        assert first_win.rating_after == Decimal("1210.00")
        assert service.get_rating(bob.id, season.id, SINGLES).matches_played == 2

    def test_replays_in_completed_at_order(self, db_session, league, service, coordinator):
        season = league.season()
        alice, bob = league.users(2)
        for user in (alice, bob):
            service.create_initial_rating(user.id, season.id, SINGLES)
        base = datetime(2026, 3, 1, 18, 0, 0)
        later = league.match(season, [bob], [alice], completed_at=base + timedelta(days=2))
        earlier = league.match(season, [alice], [bob], completed_at=base)
        db_session.commit()

        coordinator.recalculate_season(season.id)

        rows = service.get_history(alice.id, season.id, SINGLES, limit=None)
        replayed = [r.match_id for r in reversed(rows) if r.match_id is not None]
        assert replayed == [earlier.id, later.id]
        # alice won first, at even odds
        assert rows[-3].delta == Decimal("20.00")

    def test_order_changes_results(self, db_session, league, service, coordinator):
        """K-factor depends on matches played so far, so order matters."""
        season = league.season()
        alice, bob, carol = league.users(3)
        for user in (alice, bob, carol):
            service.create_initial_rating(user.id, season.id, SINGLES)
        RatingConfig(db_session).set_parameters(season.id, {"k_factor_threshold": 1})
        base = datetime(2026, 3, 1, 18, 0, 0)
        first = league.match(season, [alice], [bob], completed_at=base)
        second = league.match(season, [carol], [alice], completed_at=base + timedelta(hours=1))
        db_session.commit()

        coordinator.recalculate_season(season.id)
        in_order = ratings_of(service, season, (alice, bob, carol))

        first.completed_at, second.completed_at = second.completed_at, first.completed_at
        db_session.commit()
        coordinator.recalculate_season(season.id)
        swapped = ratings_of(service, season, (alice, bob, carol))

        assert in_order != swapped

    def test_bad_match_is_skipped(self, db_session, league, service, coordinator, played):
        season, _, (alice, bob, _), _ = played
        broken = league.match(season, [bob], [alice])
        broken.outcome = None
        db_session.commit()

        result = coordinator.recalculate_season(season.id)

        assert result.status == "partial"
        assert result.matches_processed == 3
        assert result.matches_failed == 1
        assert result.failures[0][0] == broken.id
        assert "no valid winner" in result.failures[0][1]
        assert service.get_rating(alice.id, season.id, SINGLES).matches_played == 2

    def test_all_matches_failing(self, db_session, league, service, coordinator):
        season = league.season()
        alice, bob = league.users(2)
        service.create_initial_rating(alice.id, season.id, SINGLES)
        # bob never got a rating in this season
        league.match(season, [alice], [bob])
        db_session.commit()

        result = coordinator.recalculate_season(season.id)

        assert result.status == "failed"
        assert result.matches_processed == 0

    def test_unknown_season(self, coordinator):
        with pytest.raises(SeasonNotFoundError):
            coordinator.recalculate_season(404)


class TestNarrowScopes:
    def test_player_scope(self, coordinator, service, played):
        season, _, (alice, bob, carol), _ = played
        service.adjust_rating(carol.id, season.id, SINGLES, 1234, "Manual fix")
        service.session.commit()
        live_alice = service.get_rating(alice.id, season.id, SINGLES).current_rating
        others = ratings_of(service, season, (bob, carol))

        result = coordinator.recalculate_player(alice.id, season.id, admin_id=1)

        assert result.ratings_reset == 1
        assert result.matches_processed == 2
        assert result.ratings_updated == 2
        assert service.get_rating(alice.id, season.id, SINGLES).current_rating == live_alice
        assert ratings_of(service, season, (bob, carol)) == others

        reasons = [h.reason for h in service.get_history(alice.id, season.id, SINGLES, limit=None)]
        assert REASON_RECALCULATION in reasons

    def test_out_of_scope_opponent_read_before_match(self, coordinator, service, played):
        season, _, (_, _, carol), matches = played
        record = coordinator.match_source.get_match(matches[2].id)
        params = coordinator.config.get_active_parameters(season.id)

        before = coordinator._historical_snapshot(carol.id, record, params)

        last_loss = service.get_history(carol.id, season.id, SINGLES, limit=1)[0]
        assert last_loss.match_id == matches[2].id
        assert before.rating == last_loss.rating_before
        assert before.rd == last_loss.rd_before
        # One match played before this one, two by now
        assert before.matches_played == 1
        assert before.is_provisional is True
        assert service.get_rating(carol.id, season.id, SINGLES).matches_played == 2

    def test_player_scope_needs_season(self, coordinator, played):
        _, _, (alice, _, _), _ = played
        with pytest.raises(ValueError):
            coordinator.recalculate("player", alice.id)

    def test_match_scope(self, coordinator, service, played):
        season, _, (alice, bob, carol), matches = played
        live = ratings_of(service, season, (alice, bob, carol))

        result = coordinator.recalculate_match(matches[0].id)

        assert result.ratings_reset == 2
        assert result.matches_processed == 3
        assert result.ratings_updated == 4
        assert ratings_of(service, season, (alice, bob, carol)) == live

    def test_voided_match_drops_out(self, db_session, coordinator, service, played):
        season, _, (alice, bob, carol), matches = played
        carol_before = service.get_rating(carol.id, season.id, SINGLES).current_rating
        matches[0].status = MATCH_VOID
        db_session.commit()

        coordinator.recalculate_match(matches[0].id)

        assert service.get_rating(alice.id, season.id, SINGLES).matches_played == 1
        assert service.get_rating(bob.id, season.id, SINGLES).matches_played == 1
        assert service.get_rating(carol.id, season.id, SINGLES).current_rating == carol_before

    def test_division_scope(self, coordinator, service, played):
        season, division, users, _ = played
        live = ratings_of(service, season, users)

        result = coordinator.recalculate_division(division.id)

        assert result.scope == "division"
        assert result.season_id == season.id
        assert result.matches_processed == 3
        assert ratings_of(service, season, users) == live


class TestPreview:
    def test_preview_writes_nothing(self, db_session, coordinator, service, played):
        season, _, (alice, _, _), _ = played
        live = service.get_rating(alice.id, season.id, SINGLES).current_rating
        service.adjust_rating(alice.id, season.id, SINGLES, 2000, "Too generous")
        db_session.commit()
        rows_before = history_count(db_session)

        preview = coordinator.preview_recalculation("season", season.id)

        assert history_count(db_session) == rows_before
        assert service.get_rating(alice.id, season.id, SINGLES).current_rating == Decimal("2000.00")

        assert preview["projected"] is True
        assert preview["affected_players"] == 3
        assert preview["affected_matches"] == 3
        projection = next(p for p in preview["players"] if p["user_id"] == alice.id)
        assert projection["current_rating"] == Decimal("2000.00")
        assert projection["projected_rating"] == live
        assert projection["delta"] == live - Decimal("2000.00")

    def test_preview_unknown_scope(self, coordinator, played):
        season, _, _, _ = played
        with pytest.raises(ValueError):
            coordinator.preview_recalculation("league", season.id)


def test_replay_result_payload():
    started = datetime(2026, 3, 14, 10, 0, 0)
    result = ReplayResult(
        scope="season",
        target_id=3,
        season_id=3,
        started_at=started,
        ended_at=started + timedelta(seconds=4.5),
        ratings_reset=10,
        matches_processed=20,
        ratings_updated=40,
        failures=[(17, "Match 17 has no valid winner (outcome=None)")],
    )

    assert result.status == "partial"
    payload = result.to_dict()
    assert payload["duration_s"] == 4.5
    assert payload["matches_failed"] == 1
    assert payload["failures"] == [{"match_id": 17, "error": "Match 17 has no valid winner (outcome=None)"}]
