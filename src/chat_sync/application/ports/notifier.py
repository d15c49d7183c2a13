from __future__ import annotations

import logging
from typing import Protocol

from chat_sync.application.dto.notification import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Default notifier for headless use: every notice becomes a warning log line."""

    def notify(self, notification: Notification) -> None:
        logger.warning(
            "%s: %s (conversation=%s)",
            notification.kind,
            notification.detail or "-",
            notification.conversation_key or "-",
        )
