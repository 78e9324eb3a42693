"""
Rating system module.

Implements league ratings with:
- Versioned per-season parameters (RatingConfig)
- Elo updates with a Glicko-1 expected score and per-player K-factors
- Questionnaire-based initial placement (tennis, pickleball, padel)
- Season locks guarding every mutation
- Scoped reset + chronological replay (SeasonReplayCoordinator)
- CSV / JSON season exports
"""

from courtrank.rating.calculator import (
    MatchOutcome,
    MatchUpdate,
    PlayerUpdate,
    RatingEngine,
    RatingSnapshot,
    compute_match_update,
)
from courtrank.rating.export import SeasonExport, SeasonExporter, generate_season_export
from courtrank.rating.locks import SeasonLockService
from courtrank.rating.params import ParameterUpdate, RatingConfig, RatingParams
from courtrank.rating.placement import Placement, initial_placement
from courtrank.rating.questionnaire import (
    QuestionnaireEstimate,
    score_padel,
    score_pickleball,
    score_questionnaire,
    score_tennis,
)
from courtrank.rating.replay import ReplayResult, SeasonReplayCoordinator
from courtrank.rating.service import RatingService

__all__ = [
    "MatchOutcome",
    "MatchUpdate",
    "PlayerUpdate",
    "RatingEngine",
    "RatingSnapshot",
    "compute_match_update",
    "SeasonExport",
    "SeasonExporter",
    "generate_season_export",
    "SeasonLockService",
    "ParameterUpdate",
    "RatingConfig",
    "RatingParams",
    "Placement",
    "initial_placement",
    "QuestionnaireEstimate",
    "score_tennis",
    "score_pickleball",
    "score_padel",
    "score_questionnaire",
    "ReplayResult",
    "SeasonReplayCoordinator",
    "RatingService",
]
