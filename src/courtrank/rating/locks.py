"""
Season locks - the finalization gate for a season's ratings.

While a season is locked no rating, history row or parameter version of
that season may change. Locking requires every match of the season to be
finished (COMPLETED, CANCELLED or VOID).

The lock row is always read with SELECT ... FOR UPDATE before a check,
so two admins locking at once serialize on the row: the second one sees
the first one's lock and fails with SeasonAlreadyLockedError.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from courtrank.collaborators.match_source import MatchSource, SqlMatchSource
from courtrank.db.models import utcnow
from courtrank.db.store import RatingStore
from courtrank.errors import (
    PendingMatchesError,
    SeasonAlreadyLockedError,
    SeasonLockedError,
    SeasonNotFoundError,
    SeasonNotLockedError,
)
from courtrank.statuses import LOCKABLE_MATCH_STATUSES

logger = logging.getLogger(__name__)


class SeasonLockService:
    """Lock, unlock and guard seasons."""

    def __init__(
        self,
        session: Session,
        store: Optional[RatingStore] = None,
        match_source: Optional[MatchSource] = None,
    ):
        self.session = session
        self.store = store or RatingStore(session)
        self.match_source = match_source or SqlMatchSource(session)

    def is_locked(self, season_id: int) -> bool:
        lock = self.store.get_lock(season_id)
        return bool(lock and lock.is_locked)

    def ensure_unlocked(self, season_id: int, action: str = "modify ratings") -> None:
        """
        Raise SeasonLockedError if the season is locked.

        Reads the lock row FOR UPDATE, so the caller's mutation in the same
        transaction cannot race a concurrent lock.
        """
        lock = self.store.get_lock(season_id, for_update=True)
        if lock is not None and lock.is_locked:
            raise SeasonLockedError(season_id, action)

    def lock_season(
        self,
        season_id: int,
        admin_id: Optional[int] = None,
        notes: Optional[str] = None,
    ):
        """
        Lock a season.

        Raises:
            SeasonNotFoundError: unknown season
            SeasonAlreadyLockedError: already locked
            PendingMatchesError: some matches are not finished yet
        """
        if self.store.get_season(season_id) is None:
            raise SeasonNotFoundError(season_id)

        lock = self.store.get_or_create_lock(season_id)
        if lock.is_locked:
            raise SeasonAlreadyLockedError(season_id)

        pending = self.match_source.count_matches(season_id, exclude=LOCKABLE_MATCH_STATUSES)
        if pending:
            raise PendingMatchesError(season_id, pending)

        lock.is_locked = True
        lock.locked_at = utcnow()
        lock.locked_by = admin_id
        lock.notes = notes
        self.session.flush()

        logger.info("Season %s locked by admin %s", season_id, admin_id)
        return lock

    def unlock_season(
        self,
        season_id: int,
        admin_id: Optional[int] = None,
        notes: Optional[str] = None,
    ):
        """
        Unlock a season, appending an unlock note to the lock's notes.

        Raises:
            SeasonNotLockedError: the season is not locked
        """
        lock = self.store.get_lock(season_id, for_update=True)
        if lock is None or not lock.is_locked:
            raise SeasonNotLockedError(season_id)

        stamp = f"[Unlocked by admin {admin_id} at {utcnow().isoformat()}]"
        if notes:
            stamp = f"{stamp} {notes}"
        lock.is_locked = False
        lock.notes = f"{lock.notes}\n{stamp}" if lock.notes else stamp
        self.session.flush()

        logger.info("Season %s unlocked by admin %s", season_id, admin_id)
        return lock

    def lock_status(self, season_id: int) -> dict[str, Any]:
        lock = self.store.get_lock(season_id)
        if lock is None:
            return {
                "season_id": season_id,
                "is_locked": False,
                "locked_at": None,
                "locked_by": None,
                "notes": None,
            }
        return {
            "season_id": season_id,
            "is_locked": lock.is_locked,
            "locked_at": lock.locked_at.isoformat() if lock.locked_at else None,
            "locked_by": lock.locked_by,
            "notes": lock.notes,
        }
