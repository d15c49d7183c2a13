from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class ConversationTimeline:
    """Read-only snapshot of one conversation as the rendering layer sees it."""

    key: ConversationKey
    messages: tuple[Message, ...] = ()
    unread_count: int = 0
    last_message_preview: str = ""
    display_name: str | None = None

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def find_by_temp_id(self, client_temp_id: str) -> Message | None:
        for message in self.messages:
            if message.client_temp_id == client_temp_id:
                return message
        return None

    def find_by_id(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None
