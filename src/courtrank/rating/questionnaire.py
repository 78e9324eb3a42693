"""
Onboarding questionnaire scoring for tennis, pickleball and padel.

Each answer maps to a weight in [-1, 1]; weights are scaled by a
per-category range and summed onto QUESTIONNAIRE_BASE_RATING. The skill
block is averaged across the strokes the player answered.

Confidence reflects how strongly the answers pull away from "average":
weak, neutral answers give a low-confidence estimate with a wide RD.

Pickleball players who already hold a DUPR rating skip the questionnaire:
their DUPR values are converted straight onto the rating scale.

Usage:
    estimate = score_questionnaire("tennis", {
        "experience": "2-5 years",
        "frequency": "Weekly (1-2 times per week)",
        "skills": {"serving": "Intermediate (good first serve placement, reliable second serve)"},
    })
    print(estimate.rating, estimate.rd, estimate.confidence)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping, Optional

from courtrank.rating.constants import MAX_RATING, MIN_RATING, QUESTIONNAIRE_BASE_RATING
from courtrank.statuses import DOUBLES, normalize_game_type

logger = logging.getLogger(__name__)

SOURCE_QUESTIONNAIRE = "questionnaire"
SOURCE_DUPR = "dupr_conversion"

# (upper bound of confidence ratio, label, RD)
CONFIDENCE_TIERS = (
    (0.4, "low", 350),
    (0.7, "medium", 250),
    (float("inf"), "high", 150),
)

# Answers shared by the pickleball and padel questionnaires
_PADDLE_FREQUENCY = {
    "Less than once a week": -0.6,
    "1-2 times per week": -0.2,
    "3-4 times per week": 0.3,
    "5+ times per week": 0.8,
}
_PADDLE_COMPETITIVE_LEVEL = {
    "Recreational only": -0.6,
    "Social/Club matches": -0.2,
    "Local competitive events": 0.3,
    "Regional/National competitive events": 0.8,
}
_PADDLE_TOURNAMENT = {
    "Never": -0.6,
    "Local tournaments": -0.1,
    "Regional tournaments": 0.4,
    "National/international tournaments": 0.9,
}
_PADDLE_SELF_RATING = {
    "Beginner: Just starting, learning the basic rules and strokes.": -0.8,
    "Improver: Can sustain short rallies but lacks consistency and tactical knowledge.": -0.4,
    "Intermediate: Can play consistently, understands basic tactics, and uses a variety of shots.": 0.0,
    "Advanced: Has a strong command of all major shots and a deep understanding of strategy.": 0.6,
    "Expert/Competitive: Plays at a high level in competitive tournaments.": 1.0,
}


@dataclass(frozen=True)
class SportProfile:
    """Answer tables and scaling for one sport's questionnaire."""

    sport: str
    # Rating points each category can move the estimate at full weight
    category_ranges: Mapping[str, float]
    skill_range: float
    confidence_weights: Mapping[str, float]
    answer_weights: Mapping[str, Mapping[str, float]]
    skill_categories: tuple[str, ...]
    # Skill answers are graded by their level prefix
    skill_levels: Mapping[str, float]
    skill_multipliers: Mapping[str, float] = field(default_factory=dict)
    min_rating: int = MIN_RATING


TENNIS = SportProfile(
    sport="tennis",
    category_ranges={
        "experience": 400,
        "coaching_background": 300,
        "frequency": 200,
        "competitive_level": 250,
        "tournament": 200,
        # Self-assessment is discounted against the skill range
        "self_rating": 350 * 0.6,
    },
    skill_range=350,
    confidence_weights={
        "experience": 1.8,
        "skills": 2.0,
        "self_rating": 1.5,
        "competitive_level": 1.4,
        "coaching_background": 1.3,
        "frequency": 1.1,
        "tournament": 1.2,
    },
    answer_weights={
        "experience": {
            "Less than 6 months": -0.8,
            "6 months - 1 year": -0.5,
            "1-2 years": -0.1,
            "2-5 years": 0.4,
            "More than 5 years": 1.0,
        },
        "frequency": {
            "Rarely (less than once a month)": -0.6,
            "Monthly (1-2 times per month)": -0.2,
            "Weekly (1-2 times per week)": 0.3,
            "Regular (3-4 times per week)": 0.7,
            "Daily/Intensive (5+ times per week)": 1.0,
        },
        "competitive_level": {
            "Recreational/social tennis with friends": -0.5,
            "Social/friendly matches": -0.1,
            "Local/small tournaments": 0.4,
            "Regional/state tournaments": 0.8,
            "National tournaments": 1.0,
        },
        "coaching_background": {
            "Self-taught/no formal instruction": -0.7,
            "Some coaching experience (group or private)": -0.3,
            "Regular coaching in the past or ongoing group lessons": 0.2,
            "Extensive private coaching experience": 0.6,
            "Professional/academy training background": 1.0,
        },
        "tournament": {
            "Never played tournaments": -0.6,
            "Club level tournaments": -0.1,
            "Regional tournaments": 0.3,
            "State level tournaments": 0.7,
            "National tournaments": 1.0,
        },
        "self_rating": {
            "1.0-2.0 (Beginner)": -0.8,
            "2.0-3.0 (Improver)": -0.4,
            "3.0-4.0 (Intermediate)": 0.0,
            "4.0-5.0 (Advanced)": 0.6,
            "5.0-6.0 (Professional)": 1.0,
        },
    },
    skill_categories=("serving", "forehand", "backhand", "net_play", "movement", "mental_game"),
    skill_levels={"Beginner": -0.8, "Developing": -0.3, "Intermediate": 0.3, "Advanced": 0.8},
)

PICKLEBALL = SportProfile(
    sport="pickleball",
    category_ranges={
        "experience": 300,
        "sports_background": 280,
        "frequency": 150,
        "competitive_level": 200,
        "self_rating": 320 * 0.7,
        "tournament": 320 * 0.5,
    },
    skill_range=320,
    confidence_weights={
        "experience": 2.0,
        "skills": 1.8,
        "self_rating": 1.5,
        "competitive_level": 1.3,
        "sports_background": 1.2,
        "frequency": 1.0,
        "tournament": 1.0,
    },
    answer_weights={
        "experience": {
            "Less than 1 month": -0.7,
            "1-3 months": -0.4,
            "3-6 months": -0.1,
            "6-12 months": 0.2,
            "1-2 years": 0.5,
            "More than 2 years": 1.0,
        },
        "sports_background": {
            "No experience with racquet sports": -0.8,
            "Casual/recreational player of other racquet sports": -0.3,
            "Intermediate level in tennis, badminton, or table tennis": 0.4,
            "Advanced/competitive player in other racquet sports": 0.9,
            "Professional athlete in racquet sports": 1.0,
        },
        "frequency": _PADDLE_FREQUENCY,
        "competitive_level": _PADDLE_COMPETITIVE_LEVEL,
        "self_rating": _PADDLE_SELF_RATING,
        "tournament": _PADDLE_TOURNAMENT,
    },
    skill_categories=("serving", "dinking", "volleys", "positioning"),
    skill_levels={"Beginner": -0.7, "Developing": -0.2, "Intermediate": 0.3, "Advanced": 0.8},
    min_rating=1000,
)

PADEL = SportProfile(
    sport="padel",
    category_ranges={
        "experience": 350,
        "coaching_background": 280,
        "frequency": 180,
        "competitive_level": 220,
        "tournament": 180,
        "sports_background": 300,
        "self_rating": 400 * 0.6,
    },
    skill_range=400,
    confidence_weights={
        "experience": 1.9,
        "skills": 2.2,
        "self_rating": 1.6,
        "competitive_level": 1.4,
        "coaching_background": 1.3,
        "frequency": 1.1,
        "tournament": 1.2,
        "sports_background": 1.0,
    },
    answer_weights={
        "experience": {
            "Less than 3 months": -0.8,
            "3-6 months": -0.4,
            "6 months - 1 year": 0.0,
            "1-2 years": 0.5,
            "More than 2 years": 1.0,
        },
        "sports_background": {
            "No prior racket/paddle sports": -0.4,
            "Some casual play (e.g., badminton, tennis, table tennis)": 0.0,
            "Regular player in another racket/paddle sport": 0.4,
            "Competitive background in another racket/paddle sport": 0.8,
        },
        "coaching_background": {
            "No coaching": -0.4,
            "Few lessons": -0.1,
            "Regular coaching": 0.3,
            "High-performance/academy coaching": 0.8,
        },
        "frequency": _PADDLE_FREQUENCY,
        "competitive_level": _PADDLE_COMPETITIVE_LEVEL,
        "tournament": _PADDLE_TOURNAMENT,
        "self_rating": _PADDLE_SELF_RATING,
    },
    skill_categories=("serving", "wall_play", "net_play", "lob_smash", "glass_play", "positioning"),
    skill_levels={"Beginner": -0.8, "Developing": -0.3, "Intermediate": 0.3, "Advanced": 0.8},
    # Wall, glass and positioning play count for more in padel
    skill_multipliers={"wall_play": 1.2, "glass_play": 1.2, "positioning": 1.2},
)

# DUPR values outside this range are ignored
DUPR_MIN = 2.0
DUPR_MAX = 8.0
DUPR_RD = 110
DUPR_ESTIMATED_DOUBLES_RD = 130

# (minimum doubles reliability, RD multiplier)
DUPR_RELIABILITY_SCALES = (
    (85, 0.6),
    (70, 0.8),
    (50, 1.0),
    (30, 1.4),
)
DUPR_LOW_RELIABILITY_SCALE = 1.8


@dataclass(frozen=True)
class QuestionnaireEstimate:
    """
    Skill estimate on the questionnaire scale (anchored at 1500).

    ``rating`` is the singles estimate. ``doubles_rating`` is set when the
    sport estimates doubles separately; otherwise doubles uses ``rating``.
    """

    rating: int
    rd: int
    confidence: str
    confidence_ratio: float
    total_adjustment: float = 0.0
    detail: dict[str, Any] = field(default_factory=dict)
    doubles_rating: Optional[int] = None
    source: str = SOURCE_QUESTIONNAIRE

    def for_game_type(self, game_type: str) -> QuestionnaireEstimate:
        """The estimate to place a rating of ``game_type`` from."""
        if normalize_game_type(game_type) == DOUBLES and self.doubles_rating is not None:
            return replace(self, rating=self.doubles_rating)
        return self


def _round(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def answer_weight(category: str, answer: Any, profile: SportProfile = TENNIS) -> float:
    """Weight of one answer; unknown answers count as neutral."""
    return profile.answer_weights.get(category, {}).get(answer, 0.0)


def skill_weight(answer: Any, profile: SportProfile = TENNIS) -> float:
    if not isinstance(answer, str):
        return 0.0
    level = answer.split(" (", 1)[0].strip()
    return profile.skill_levels.get(level, 0.0)


def _confidence_tier(ratio: float) -> tuple[str, int]:
    for upper, label, rd in CONFIDENCE_TIERS:
        if ratio < upper:
            return label, rd
    return CONFIDENCE_TIERS[-1][1], CONFIDENCE_TIERS[-1][2]


def _score(answers: Mapping[str, Any], profile: SportProfile) -> QuestionnaireEstimate:
    adjustment = 0.0
    weighted_confidence = 0.0
    max_confidence = 0.0
    detail: dict[str, Any] = {}

    for category, scale in profile.category_ranges.items():
        answer = answers.get(category)
        if not answer:
            continue
        weight = answer_weight(category, answer, profile)
        adjustment += weight * scale
        detail[category] = weight
        weighted_confidence += abs(weight) * profile.confidence_weights[category]
        max_confidence += profile.confidence_weights[category]

    skills = answers.get("skills")
    if isinstance(skills, Mapping):
        weights = [
            skill_weight(skills[s], profile) * profile.skill_multipliers.get(s, 1.0)
            for s in profile.skill_categories
            if skills.get(s)
        ]
        if weights:
            avg = sum(weights) / len(weights)
            adjustment += avg * profile.skill_range
            detail["skills"] = avg
            weighted_confidence += abs(avg) * profile.confidence_weights["skills"]
            max_confidence += profile.confidence_weights["skills"]

    ratio = min(weighted_confidence / max_confidence, 1.0) if max_confidence > 0 else 0.0
    confidence, rd = _confidence_tier(ratio)
    rating = max(profile.min_rating, min(MAX_RATING, _round(QUESTIONNAIRE_BASE_RATING + adjustment)))

    return QuestionnaireEstimate(
        rating=rating,
        rd=rd,
        confidence=confidence,
        confidence_ratio=ratio,
        total_adjustment=adjustment,
        detail=detail,
    )


def score_tennis(answers: Mapping[str, Any]) -> QuestionnaireEstimate:
    """Score a tennis questionnaire into a rating estimate."""
    return _score(answers, TENNIS)


def score_padel(answers: Mapping[str, Any]) -> QuestionnaireEstimate:
    """Score a padel questionnaire. Padel is played as doubles, so both ratings match."""
    return _score(answers, PADEL)


def score_pickleball(answers: Mapping[str, Any]) -> QuestionnaireEstimate:
    """
    Score a pickleball questionnaire into singles and doubles estimates.

    A player with a valid DUPR rating (``has_dupr`` plus ``dupr_singles``
    and/or ``dupr_doubles``) is placed from DUPR instead. Otherwise a
    player who scores below average gets a 50 point doubles bump, since
    partners cover for weaker players in doubles.
    """
    if answers.get("has_dupr"):
        singles = _dupr_value(answers.get("dupr_singles"))
        doubles = _dupr_value(answers.get("dupr_doubles"))
        if singles is not None or doubles is not None:
            return _convert_dupr(singles, doubles, answers.get("dupr_doubles_reliability"))

    estimate = _score(answers, PICKLEBALL)
    bump = 50 if estimate.total_adjustment < 0 else 0
    doubles_rating = max(PICKLEBALL.min_rating, min(MAX_RATING, estimate.rating + bump))
    return replace(estimate, doubles_rating=doubles_rating)


def _dupr_value(raw: Any) -> Optional[float]:
    if raw in (None, ""):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring unreadable DUPR value %r", raw)
        return None
    if not DUPR_MIN <= value <= DUPR_MAX:
        logger.warning("Ignoring DUPR value %s outside %s-%s", value, DUPR_MIN, DUPR_MAX)
        return None
    return value


def dupr_to_rating(dupr: float) -> int:
    """Map a DUPR value (2.0-8.0) onto the rating scale, piecewise linear."""
    if dupr <= 3.0:
        return _round(1000 + (dupr - 2.0) * 900)
    if dupr <= 4.0:
        return _round(1900 + (dupr - 3.0) * 1000)
    if dupr <= 5.0:
        return _round(2900 + (dupr - 4.0) * 1000)
    if dupr <= 6.0:
        return _round(3900 + (dupr - 5.0) * 800)
    return _round(4700 + (dupr - 6.0) * 650)


def _convert_dupr(
    singles: Optional[float],
    doubles: Optional[float],
    reliability: Any,
) -> QuestionnaireEstimate:
    confidence = "high"
    rd: float = DUPR_RD

    if doubles is None:
        # Doubles DUPR usually sits a little below singles
        offset = 0.1 if singles <= 3.5 else 0.2 if singles <= 4.5 else 0.15
        doubles = max(DUPR_MIN, singles - offset)
        confidence = "medium"
        rd = DUPR_ESTIMATED_DOUBLES_RD
        estimated = True
    elif singles is None:
        offset = 0.15 if doubles <= 3.5 else 0.25 if doubles <= 4.5 else 0.15
        singles = min(DUPR_MAX, doubles + offset)
        confidence = "medium-high"
        estimated = True
    else:
        estimated = False

    reliability_pct = _reliability(reliability)
    if reliability_pct is not None:
        scale = DUPR_LOW_RELIABILITY_SCALE
        for floor, factor in DUPR_RELIABILITY_SCALES:
            if reliability_pct >= floor:
                scale = factor
                break
        rd = _round(rd * scale)

    return QuestionnaireEstimate(
        rating=dupr_to_rating(singles),
        rd=min(350, int(rd)),
        confidence=confidence,
        confidence_ratio=1.0,
        detail={
            "dupr_singles": singles,
            "dupr_doubles": doubles,
            "doubles_reliability": reliability_pct,
            "estimation_used": estimated,
        },
        doubles_rating=dupr_to_rating(doubles),
        source=SOURCE_DUPR,
    )


def _reliability(raw: Any) -> Optional[int]:
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


SCORERS: dict[str, Callable[[Mapping[str, Any]], QuestionnaireEstimate]] = {
    "tennis": score_tennis,
    "pickleball": score_pickleball,
    "padel": score_padel,
}


def score_questionnaire(sport: str, answers: Mapping[str, Any]) -> QuestionnaireEstimate:
    """
    Score ``answers`` with the questionnaire for ``sport``.

    Raises:
        ValueError: If the sport has no questionnaire.
    """
    key = (sport or "").strip().lower()
    scorer = SCORERS.get(key)
    if scorer is None:
        raise ValueError(f"No questionnaire for sport '{sport}'")
    return scorer(answers)
