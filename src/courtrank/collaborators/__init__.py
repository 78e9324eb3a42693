"""Narrow interfaces to the systems the engine reads from and notifies."""

from courtrank.collaborators.match_source import MatchRecord, MatchSource, SqlMatchSource
from courtrank.collaborators.notifications import (
    LoggingNotificationSink,
    NotificationSink,
    notify_safely,
)

__all__ = [
    "MatchRecord",
    "MatchSource",
    "SqlMatchSource",
    "NotificationSink",
    "LoggingNotificationSink",
    "notify_safely",
]
