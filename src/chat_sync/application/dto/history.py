from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class HistoryRequest:
    key: ConversationKey
    epoch: int
    limit: int = 50
    cursor: str | None = None


@dataclass(frozen=True, slots=True)
class HistoryPage:
    key: ConversationKey
    epoch: int
    messages: list[Message]
    next_cursor: str | None = None
