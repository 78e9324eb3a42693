"""Unit tests for RatingService: placement, live matches and admin corrections."""

from decimal import Decimal

import pytest

from courtrank.errors import (
    InvalidOutcomeError,
    MatchNotCompletedError,
    MatchNotFoundError,
    RatingNotFoundError,
)
from courtrank.rating.params import RatingConfig
from courtrank.rating.service import RatingService
from courtrank.statuses import (
    DOUBLES,
    MATCH_SCHEDULED,
    REASON_INITIAL_PLACEMENT,
    REASON_MANUAL_ADJUSTMENT,
    REASON_MATCH_LOSS,
    REASON_MATCH_WIN,
    SINGLES,
    TEAM2,
)


@pytest.fixture
def service(db_session, sink):
    return RatingService(db_session, notifier=sink)


def history_sum(service, user_id, season_id, game_type=SINGLES):
    rows = service.get_history(user_id, season_id, game_type, limit=None)
    return sum((row.delta for row in rows), Decimal("0"))


class TestInitialRating:
    def test_default_placement(self, service, league):
        season = league.season()
        (alice,) = league.users(1)

        rating = service.create_initial_rating(alice.id, season.id, "singles")

        assert rating.game_type == SINGLES
        assert rating.current_rating == Decimal("1500.00")
        assert rating.rating_deviation == Decimal("350.00")
        assert rating.is_provisional is True

        (entry,) = service.get_history(alice.id, season.id, SINGLES)
        assert entry.reason == REASON_INITIAL_PLACEMENT
        assert entry.delta == Decimal("0.00")

    def test_questionnaire_placement_is_reanchored(self, db_session, service, league):
        season = league.season()
        (alice,) = league.users(1)
        RatingConfig(db_session).set_parameters(season.id, {"initial_rating": 1200})

        rating = service.create_initial_rating(alice.id, season.id, SINGLES, estimate=1650)

        assert rating.current_rating == Decimal("1350.00")
        (entry,) = service.get_history(alice.id, season.id, SINGLES)
        assert entry.rating_before == Decimal("1200.00")
        assert entry.delta == Decimal("150.00")

    def test_idempotent(self, service, league):
        season = league.season()
        (alice,) = league.users(1)

        first = service.create_initial_rating(alice.id, season.id, SINGLES, estimate=1700)
        again = service.create_initial_rating(alice.id, season.id, SINGLES, estimate=1200)

        assert again.id == first.id
        assert again.current_rating == Decimal("1700.00")
        assert len(service.get_history(alice.id, season.id, SINGLES)) == 1

    def test_one_rating_per_game_type(self, service, league):
        season = league.season()
        (alice,) = league.users(1)

        singles = service.create_initial_rating(alice.id, season.id, SINGLES)
        doubles = service.create_initial_rating(alice.id, season.id, DOUBLES)

        assert singles.id != doubles.id

    def test_unknown_game_type(self, service, league):
        season = league.season()
        (alice,) = league.users(1)
        with pytest.raises(ValueError):
            service.create_initial_rating(alice.id, season.id, "squash")


class TestQuestionnairePlacement:
    DUPR_ANSWERS = {"has_dupr": True, "dupr_singles": "4.0", "dupr_doubles": "3.5"}

    def test_pickleball_doubles_uses_doubles_estimate(self, service, league):
        season = league.season()
        (alice,) = league.users(1)

        singles = service.create_rating_from_questionnaire(
            alice.id, season.id, SINGLES, "pickleball", self.DUPR_ANSWERS
        )
        doubles = service.create_rating_from_questionnaire(
            alice.id, season.id, "doubles", "pickleball", self.DUPR_ANSWERS
        )

        assert singles.current_rating == Decimal("2900.00")
        assert doubles.current_rating == Decimal("2400.00")
        assert doubles.rating_deviation == Decimal("110.00")
        (entry,) = service.get_history(alice.id, season.id, DOUBLES)
        assert entry.notes == "DUPR placement"

    def test_tennis_questionnaire(self, service, league):
        season = league.season()
        (alice,) = league.users(1)

        rating = service.create_rating_from_questionnaire(
            alice.id, season.id, DOUBLES, "Tennis", {"experience": "More than 5 years"}
        )

        assert rating.current_rating == Decimal("1900.00")
        assert rating.rating_deviation == Decimal("150.00")
        (entry,) = service.get_history(alice.id, season.id, DOUBLES)
        assert entry.notes == "Questionnaire placement"

    def test_unknown_sport_creates_nothing(self, service, league):
        season = league.season()
        (alice,) = league.users(1)

        with pytest.raises(ValueError):
            service.create_rating_from_questionnaire(alice.id, season.id, SINGLES, "squash", {})

        assert service.store.get_rating(alice.id, season.id, SINGLES) is None


class TestRecordMatch:
    def test_creates_missing_ratings_and_writes_history(self, service, league):
        season = league.season()
        alice, bob = league.users(2)
        match = league.match(season, [alice], [bob])

        update = service.record_match(match.id)

        assert update.for_user(alice.id).delta == Decimal("20.00")
        winner = service.get_rating(alice.id, season.id, SINGLES)
        loser = service.get_rating(bob.id, season.id, SINGLES)
        assert winner.current_rating == Decimal("1520.00")
        assert winner.matches_played == 1
        assert winner.last_match_id == match.id
        assert loser.current_rating == Decimal("1480.00")
        assert loser.lowest_rating == Decimal("1480.00")

        latest = service.get_history(bob.id, season.id, SINGLES, limit=1)[0]
        assert latest.reason == REASON_MATCH_LOSS
        assert latest.match_id == match.id
        assert latest.rating_after - latest.rating_before == latest.delta

    def test_doubles_updates_four_ratings(self, service, league):
        season = league.season()
        a, b, c, d = league.users(4)
        match = league.match(season, [a, b], [c, d], winner=TEAM2, game_type=DOUBLES)

        service.record_match(match.id)

        for user in (a, b):
            assert service.get_rating(user.id, season.id, DOUBLES).current_rating == Decimal("1480.00")
        for user in (c, d):
            assert service.get_rating(user.id, season.id, DOUBLES).current_rating == Decimal("1520.00")

    def test_history_explains_rating(self, service, league):
        season = league.season()
        alice, bob, carol = league.users(3)
        for team1, team2 in ([alice], [bob]), ([carol], [alice]), ([bob], [carol]), ([alice], [carol]):
            service.record_match(league.match(season, team1, team2).id)

        for user in (alice, bob, carol):
            rating = service.get_rating(user.id, season.id, SINGLES)
            assert history_sum(service, user.id, season.id) == rating.current_rating - Decimal("1500")

    def test_unknown_match(self, service):
        with pytest.raises(MatchNotFoundError):
            service.record_match(404)

    def test_match_not_completed(self, service, league):
        season = league.season()
        alice, bob = league.users(2)
        match = league.match(season, [alice], [bob], status=MATCH_SCHEDULED)
        with pytest.raises(MatchNotCompletedError):
            service.record_match(match.id)

    def test_completed_match_without_winner(self, service, league, db_session):
        season = league.season()
        alice, bob = league.users(2)
        match = league.match(season, [alice], [bob])
        match.outcome = None
        db_session.flush()

        with pytest.raises(InvalidOutcomeError):
            service.record_match(match.id)


class TestAdminCorrections:
    def test_adjust_rating(self, service, sink, league):
        season = league.season()
        (alice,) = league.users(1)
        service.create_initial_rating(alice.id, season.id, SINGLES)

        rating = service.adjust_rating(alice.id, season.id, SINGLES, 1612.5, "Data entry fix", admin_id=3)

        assert rating.current_rating == Decimal("1612.50")
        assert rating.peak_rating == Decimal("1612.50")
        entry = service.get_history(alice.id, season.id, SINGLES, limit=1)[0]
        assert entry.reason == REASON_MANUAL_ADJUSTMENT
        assert entry.delta == Decimal("112.50")
        assert "admin 3" in entry.notes

        recipients, title, _ = sink.sent[-1]
        assert recipients == (alice.id,)
        assert title == "Rating adjusted"

    def test_adjust_survives_failing_notifier(self, db_session, league):
        class BrokenSink:
            def notify(self, user_ids, title, message):
                raise RuntimeError("push gateway down")

        season = league.season()
        (alice,) = league.users(1)
        service = RatingService(db_session, notifier=BrokenSink())
        service.create_initial_rating(alice.id, season.id, SINGLES)

        rating = service.adjust_rating(alice.id, season.id, SINGLES, 1450, "Sandbagging")

        assert rating.current_rating == Decimal("1450.00")
        assert rating.lowest_rating == Decimal("1450.00")

    def test_adjust_missing_rating(self, service, league):
        season = league.season()
        (alice,) = league.users(1)
        with pytest.raises(RatingNotFoundError):
            service.adjust_rating(alice.id, season.id, SINGLES, 1600, "none yet")

    def test_reverse_match(self, service, league):
        season = league.season()
        alice, bob = league.users(2)
        match = league.match(season, [alice], [bob])
        service.record_match(match.id)

        reversals = service.reverse_match(match.id, admin_id=1, reason="Wrong winner entered")

        assert len(reversals) == 2
        for user in (alice, bob):
            rating = service.get_rating(user.id, season.id, SINGLES)
            assert rating.current_rating == Decimal("1500.00")
            assert rating.rating_deviation == Decimal("350.00")
            assert rating.matches_played == 0
            assert history_sum(service, user.id, season.id) == Decimal("0")

        # Original match rows are kept, not edited
        reasons = [h.reason for h in service.get_history(alice.id, season.id, SINGLES, limit=None)]
        assert reasons == [REASON_MANUAL_ADJUSTMENT, REASON_MATCH_WIN, REASON_INITIAL_PLACEMENT]

    def test_reverse_twice_is_noop(self, service, league):
        season = league.season()
        alice, bob = league.users(2)
        match = league.match(season, [alice], [bob])
        service.record_match(match.id)
        service.reverse_match(match.id)

        assert service.reverse_match(match.id) == []
        assert service.get_rating(alice.id, season.id, SINGLES).current_rating == Decimal("1500.00")


class TestReadModels:
    def test_division_ratings_and_summary(self, service, league):
        season = league.season()
        division = league.division(season)
        alice, bob, carol = league.users(3)
        for user, estimate in ((alice, 1600), (bob, 1400), (carol, 1800)):
            service.create_initial_rating(
                user.id, season.id, SINGLES, estimate=estimate, division_id=division.id
            )

        ordered = service.division_player_ratings(division.id)
        assert [r.user_id for r in ordered] == [carol.id, alice.id, bob.id]

        summary = service.division_summary(division.id)
        assert summary["total_players"] == 3
        assert summary["average_rating"] == Decimal("1600.00")
        assert summary["highest_rating"] == Decimal("1800.00")
        assert summary["lowest_rating"] == Decimal("1400.00")
        assert summary["provisional_players"] == 3

    def test_empty_division_summary(self, service, league):
        division = league.division(league.season())
        summary = service.division_summary(division.id)
        assert summary["total_players"] == 0
        assert summary["average_rating"] is None
