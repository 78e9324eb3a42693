"""
Season-scoped, versioned rating parameters (RatingConfig).

Each season carries an append-only list of parameter versions. Changing
parameters never edits a row: the current version is deactivated and
version + 1 is inserted, so a replay can always look up what was in force
when a match was played.

Usage:
    config = RatingConfig(session)
    params = config.get_active_parameters(season_id=3)

    update = config.set_parameters(3, {"k_factor_new": 48}, admin_id=1)
    if update.warning:
        logger.warning(update.warning)
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from courtrank.collaborators.match_source import MatchSource, SqlMatchSource
from courtrank.config import settings
from courtrank.db.models import RatingParameters
from courtrank.db.store import RatingStore
from courtrank.errors import SeasonLockedError
from courtrank.rating import constants as C
from courtrank.statuses import MATCH_COMPLETED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingParams:
    """Parameters used by the rating calculator."""

    initial_rating: float = C.DEFAULT_INITIAL_RATING
    initial_rd: float = C.DEFAULT_INITIAL_RD
    k_factor_new: float = C.DEFAULT_K_FACTOR_NEW
    k_factor_established: float = C.DEFAULT_K_FACTOR_ESTABLISHED
    k_factor_threshold: int = C.DEFAULT_K_FACTOR_THRESHOLD
    singles_weight: float = C.DEFAULT_SINGLES_WEIGHT
    doubles_weight: float = C.DEFAULT_DOUBLES_WEIGHT
    one_set_match_weight: float = C.DEFAULT_ONE_SET_MATCH_WEIGHT
    walkover_win_impact: float = C.DEFAULT_WALKOVER_WIN_IMPACT
    walkover_loss_impact: float = C.DEFAULT_WALKOVER_LOSS_IMPACT
    provisional_threshold: int = C.DEFAULT_PROVISIONAL_THRESHOLD

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))

    @classmethod
    def defaults(cls) -> "RatingParams":
        """Built-in defaults with the process-wide settings overrides applied."""
        overrides: dict[str, Any] = {}
        if settings.rating_initial_rating is not None:
            overrides["initial_rating"] = settings.rating_initial_rating
        if settings.rating_initial_rd is not None:
            overrides["initial_rd"] = settings.rating_initial_rd
        return cls(**overrides)

    @classmethod
    def from_record(cls, record: RatingParameters) -> "RatingParams":
        return cls(**{name: getattr(record, name) for name in cls.field_names()})

    def replace(self, **partial: Any) -> "RatingParams":
        """Copy with some fields changed. Unknown names raise ValueError."""
        unknown = sorted(set(partial) - set(self.field_names()))
        if unknown:
            raise ValueError(f"Unknown rating parameter(s): {', '.join(unknown)}")
        updated = dataclasses.replace(self, **partial)
        updated.validate()
        return updated

    def validate(self) -> None:
        if self.initial_rd <= 0:
            raise ValueError("initial_rd must be positive")
        if self.k_factor_new < 0 or self.k_factor_established < 0:
            raise ValueError("K-factors must not be negative")
        if self.k_factor_threshold < 0 or self.provisional_threshold < 0:
            raise ValueError("thresholds must not be negative")
        for name in ("singles_weight", "doubles_weight", "one_set_match_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ParameterUpdate:
    """Result of set_parameters: the new version plus an optional warning."""

    params: RatingParams
    version: int
    warning: Optional[str] = None


class RatingConfig:
    """Reads and versions a season's rating parameters."""

    def __init__(
        self,
        session: Session,
        store: Optional[RatingStore] = None,
        match_source: Optional[MatchSource] = None,
    ):
        self.session = session
        self.store = store or RatingStore(session)
        self.match_source = match_source or SqlMatchSource(session)

    def get_active_parameters(self, season_id: int) -> RatingParams:
        """Active version for the season, or the defaults if none exists."""
        record = self.store.active_parameters(season_id)
        if record is None:
            return RatingParams.defaults()
        return RatingParams.from_record(record)

    def get_parameters_at(self, season_id: int, when: Optional[datetime]) -> RatingParams:
        """
        Parameters that were in force at ``when``.

        Falls back to the active version when ``when`` is None, and to the
        defaults when the season had no version yet at that time.
        """
        if when is None:
            return self.get_active_parameters(season_id)
        record = self.store.parameters_at(season_id, when)
        if record is None:
            return RatingParams.defaults()
        return RatingParams.from_record(record)

    def get_active_version(self, season_id: int) -> int:
        """Active version number, 0 when the season runs on defaults."""
        record = self.store.active_parameters(season_id)
        return record.version if record is not None else 0

    def list_versions(self, season_id: int) -> list[RatingParameters]:
        return self.store.parameter_versions(season_id)

    def set_parameters(
        self,
        season_id: int,
        partial: dict[str, Any],
        admin_id: Optional[int] = None,
    ) -> ParameterUpdate:
        """
        Create a new parameter version from the active one plus ``partial``.

        Raises:
            SeasonLockedError: the season is locked
            ValueError: unknown parameter names or invalid values
        """
        lock = self.store.get_lock(season_id, for_update=True)
        if lock is not None and lock.is_locked:
            raise SeasonLockedError(season_id, "update rating parameters")

        current = self.get_active_parameters(season_id)
        updated = current.replace(**partial)
        versions = self.store.parameter_versions(season_id)
        version = versions[-1].version + 1 if versions else 1

        self.store.add_parameters(
            RatingParameters(
                season_id=season_id,
                version=version,
                created_by=admin_id,
                **updated.to_dict(),
            )
        )
        logger.info(
            "Rating parameters v%d created for season %s (changed: %s)",
            version,
            season_id,
            ", ".join(sorted(partial)) or "none",
        )

        warning = None
        completed = self.match_source.count_matches(season_id, statuses=(MATCH_COMPLETED,))
        if completed:
            warning = (
                f"Season {season_id} already has {completed} completed matches. "
                "Changing parameters now may make historical and future ratings "
                "inconsistent; consider recalculating the season."
            )
            logger.warning(warning)

        return ParameterUpdate(params=updated, version=version, warning=warning)
