"""
Fire-and-forget notifications.

Delivery (push, email, in-app) lives outside this package. Callers use
notify_safely() so a failing sink is logged and never rolls back the
mutation that triggered it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, user_ids: Iterable[int], title: str, message: str) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: writes notifications to the log and keeps nothing."""

    def notify(self, user_ids: Iterable[int], title: str, message: str) -> None:
        recipients = sorted(set(user_ids))
        logger.info("Notify %d user(s): %s - %s", len(recipients), title, message)


def notify_safely(
    sink: Optional[NotificationSink],
    user_ids: Iterable[int],
    title: str,
    message: str,
) -> bool:
    """Send through ``sink``; return False (and log) instead of raising."""
    if sink is None:
        return False
    recipients = sorted(set(user_ids))
    if not recipients:
        return False
    try:
        sink.notify(recipients, title, message)
    except Exception:
        logger.exception("Notification '%s' to %d user(s) failed", title, len(recipients))
        return False
    return True
