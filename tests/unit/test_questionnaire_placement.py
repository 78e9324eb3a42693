"""Unit tests for questionnaire scoring and initial placement."""

from decimal import Decimal

import pytest

from courtrank.rating.calculator import RatingEngine
from courtrank.rating.params import RatingParams
from courtrank.rating.placement import initial_placement
from courtrank.rating.questionnaire import (
    SOURCE_DUPR,
    SOURCE_QUESTIONNAIRE,
    QuestionnaireEstimate,
    dupr_to_rating,
    score_padel,
    score_pickleball,
    score_questionnaire,
    score_tennis,
)
from courtrank.statuses import DOUBLES, SINGLES


STRONG_ANSWERS = {
    "experience": "More than 5 years",
    "frequency": "Daily/Intensive (5+ times per week)",
    "competitive_level": "National tournaments",
    "coaching_background": "Professional/academy training background",
    "tournament": "National tournaments",
    "self_rating": "5.0-6.0 (Professional)",
    "skills": {
        "serving": "Advanced (consistent first serve, varied placement)",
        "forehand": "Advanced (heavy topspin, full control)",
    },
}


class TestScoreTennis:
    def test_empty_questionnaire_is_neutral(self):
        estimate = score_tennis({})

        assert estimate.rating == 1500
        assert estimate.rd == 350
        assert estimate.confidence == "low"
        assert estimate.confidence_ratio == 0.0

    def test_single_answer(self):
        estimate = score_tennis({"experience": "More than 5 years"})

        assert estimate.rating == 1900
        assert estimate.detail == {"experience": 1.0}
        assert estimate.confidence == "high"
        assert estimate.rd == 150

    def test_mixed_answers_lower_confidence(self):
        estimate = score_tennis({
            "experience": "1-2 years",
            "frequency": "Monthly (1-2 times per month)",
            "self_rating": "3.0-4.0 (Intermediate)",
        })

        # -0.1 * 400 - 0.2 * 200 + 0
        assert estimate.rating == 1420
        assert estimate.confidence == "low"

    def test_strong_player(self):
        estimate = score_tennis(STRONG_ANSWERS)

        # 400 + 200 + 250 + 300 + 200 + 210 + 0.8 * 350
        assert estimate.rating == 3340
        assert estimate.confidence == "high"
        assert estimate.rd == 150

    def test_beginner_below_base(self):
        estimate = score_tennis({
            "experience": "Less than 6 months",
            "frequency": "Rarely (less than once a month)",
            "skills": {"serving": "Beginner (learning the motion)"},
        })
        assert estimate.rating < 1500

    def test_unknown_answers_count_as_neutral(self):
        estimate = score_tennis({
            "experience": "Since the dawn of time",
            "skills": {"serving": "Legendary"},
        })
        assert estimate.rating == 1500
        assert estimate.detail == {"experience": 0.0, "skills": 0.0}

    def test_doubles_matches_singles(self):
        estimate = score_tennis(STRONG_ANSWERS)
        assert estimate.doubles_rating is None
        assert estimate.for_game_type(DOUBLES) is estimate


class TestScorePickleball:
    def test_below_average_gets_doubles_bump(self):
        estimate = score_pickleball({"experience": "Less than 1 month"})

        # -0.7 * 300
        assert estimate.rating == 1290
        assert estimate.doubles_rating == 1340
        assert estimate.source == SOURCE_QUESTIONNAIRE

    def test_above_average_has_no_bump(self):
        estimate = score_pickleball({"experience": "More than 2 years"})

        assert estimate.rating == 1800
        assert estimate.doubles_rating == 1800

    def test_floor_is_1000(self):
        estimate = score_pickleball({
            "experience": "Less than 1 month",
            "sports_background": "No experience with racquet sports",
            "frequency": "Less than once a week",
            "competitive_level": "Recreational only",
            "self_rating": "Beginner: Just starting, learning the basic rules and strokes.",
            "tournament": "Never",
            "skills": {"serving": "Beginner (learning basic serves)", "dinking": "Beginner (learning to dink)"},
        })

        assert estimate.rating == 1000
        assert estimate.doubles_rating == 1050

    def test_for_game_type_picks_doubles(self):
        estimate = score_pickleball({"experience": "Less than 1 month"})

        assert estimate.for_game_type("doubles").rating == 1340
        assert estimate.for_game_type(SINGLES).rating == 1290


class TestDuprConversion:
    def test_piecewise_scale(self):
        assert dupr_to_rating(2.0) == 1000
        assert dupr_to_rating(3.0) == 1900
        assert dupr_to_rating(3.5) == 2400
        assert dupr_to_rating(4.0) == 2900
        assert dupr_to_rating(5.0) == 3900
        assert dupr_to_rating(6.0) == 4700
        assert dupr_to_rating(8.0) == 6000

    def test_both_ratings(self):
        estimate = score_pickleball({"has_dupr": True, "dupr_singles": "4.0", "dupr_doubles": 3.5})

        assert estimate.source == SOURCE_DUPR
        assert estimate.rating == 2900
        assert estimate.doubles_rating == 2400
        assert estimate.confidence == "high"
        assert estimate.rd == 110
        assert estimate.detail["estimation_used"] is False

    def test_doubles_estimated_from_singles(self):
        estimate = score_pickleball({"has_dupr": True, "dupr_singles": "4.0"})

        # 4.0 - 0.2
        assert estimate.doubles_rating == 2700
        assert estimate.confidence == "medium"
        assert estimate.rd == 130

    def test_singles_estimated_from_doubles(self):
        estimate = score_pickleball({"has_dupr": True, "dupr_doubles": "3.0"})

        # 3.0 + 0.15
        assert estimate.rating == 2050
        assert estimate.doubles_rating == 1900
        assert estimate.confidence == "medium-high"
        assert estimate.rd == 110

    def test_reliability_scales_rd(self):
        answers = {"has_dupr": True, "dupr_singles": "4.0", "dupr_doubles": "3.5"}

        assert score_pickleball({**answers, "dupr_doubles_reliability": "90"}).rd == 66
        assert score_pickleball({**answers, "dupr_doubles_reliability": 60}).rd == 110
        assert score_pickleball({**answers, "dupr_doubles_reliability": 20}).rd == 198

    def test_out_of_range_falls_back_to_questionnaire(self):
        estimate = score_pickleball({
            "has_dupr": True,
            "dupr_singles": "9.5",
            "experience": "More than 2 years",
        })

        assert estimate.source == SOURCE_QUESTIONNAIRE
        assert estimate.rating == 1800

    def test_ignored_without_has_dupr(self):
        estimate = score_pickleball({"has_dupr": False, "dupr_singles": "5.0"})
        assert estimate.source == SOURCE_QUESTIONNAIRE
        assert estimate.rating == 1500


class TestScorePadel:
    def test_padel_skills_weigh_more(self):
        estimate = score_padel({
            "experience": "More than 2 years",
            "skills": {
                "serving": "Advanced (excellent placement, spin, and tactical serving)",
                "wall_play": "Advanced (excellent wall play and court geometry understanding)",
            },
        })

        # 350 + (0.8 + 0.8 * 1.2) / 2 * 400
        assert estimate.rating == 2202
        assert estimate.detail["skills"] == pytest.approx(0.88)
        assert estimate.for_game_type(DOUBLES).rating == 2202

    def test_beginner(self):
        estimate = score_padel({
            "experience": "Less than 3 months",
            "coaching_background": "No coaching",
        })

        # -0.8 * 350 - 0.4 * 280
        assert estimate.rating == 1108


class TestScoreQuestionnaire:
    def test_dispatches_by_sport(self):
        assert score_questionnaire("Tennis", STRONG_ANSWERS) == score_tennis(STRONG_ANSWERS)
        assert score_questionnaire(" pickleball ", {}).doubles_rating == 1500
        assert score_questionnaire("padel", {"experience": "1-2 years"}).rating == 1675

    def test_unknown_sport(self):
        with pytest.raises(ValueError):
            score_questionnaire("squash", {})


class TestInitialPlacement:
    def test_no_estimate_uses_season_start(self):
        params = RatingParams(initial_rating=1200, initial_rd=300)
        placement = initial_placement(None, params)

        assert placement.rating == Decimal("1200.00")
        assert placement.rd == Decimal("300.00")

    def test_estimate_is_reanchored(self):
        params = RatingParams(initial_rating=1000)
        estimate = QuestionnaireEstimate(rating=1660, rd=250, confidence="medium", confidence_ratio=0.5)

        placement = initial_placement(estimate, params)

        assert placement.rating == Decimal("1160.00")
        assert placement.rd == Decimal("250.00")

    def test_rd_capped_at_season_start(self):
        params = RatingParams(initial_rd=200)
        estimate = QuestionnaireEstimate(rating=1500, rd=350, confidence="low", confidence_ratio=0.1)
        assert initial_placement(estimate, params).rd == Decimal("200.00")

    def test_clamped_to_bounds(self):
        params = RatingParams()
        assert initial_placement(100, params).rating == Decimal("800.00")
        assert initial_placement(12000, params).rating == Decimal("8000.00")

    def test_engine_delegates(self):
        params = RatingParams()
        assert RatingEngine().initial_placement(1620, params) == initial_placement(1620, params)
