from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.value_objects.enums import NotificationKind
from chat_sync.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class Notification:
    """One-shot, user-visible notice (toast) raised by the engine."""

    kind: NotificationKind
    detail: str = ""
    conversation_key: ConversationKey | None = None
    client_temp_id: str | None = None
