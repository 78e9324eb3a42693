"""
Initial placement: where a player's rating starts.

A questionnaire estimate is expressed on a scale anchored at
QUESTIONNAIRE_BASE_RATING. Placement re-anchors it at the season's
initial_rating, so a season that starts everyone at 1200 still places a
strong player above a beginner by the same margin.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from courtrank.rating.calculator import to_decimal
from courtrank.rating.constants import MAX_RATING, MIN_RATING, QUESTIONNAIRE_BASE_RATING
from courtrank.rating.params import RatingParams
from courtrank.rating.questionnaire import QuestionnaireEstimate

Estimate = Union[QuestionnaireEstimate, int, float, Decimal, None]


@dataclass(frozen=True)
class Placement:
    rating: Decimal
    rd: Decimal


def initial_placement(estimate: Estimate, params: RatingParams) -> Placement:
    """
    Starting rating and RD for a player.

    ``estimate`` may be a QuestionnaireEstimate, a bare rating on the
    questionnaire scale, or None (no questionnaire: start at the
    season's initial rating and RD).
    """
    if estimate is None:
        return Placement(rating=to_decimal(params.initial_rating), rd=to_decimal(params.initial_rd))

    estimate_rd: Optional[float] = None
    if isinstance(estimate, QuestionnaireEstimate):
        raw = float(estimate.rating)
        estimate_rd = float(estimate.rd)
    else:
        raw = float(estimate)

    rating = params.initial_rating + (raw - QUESTIONNAIRE_BASE_RATING)
    rating = max(MIN_RATING, min(MAX_RATING, rating))

    rd = params.initial_rd if estimate_rd is None else min(estimate_rd, params.initial_rd)
    return Placement(rating=to_decimal(rating), rd=to_decimal(rd))
