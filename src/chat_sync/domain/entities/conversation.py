from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.value_objects.enums import ConversationKind
from chat_sync.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class Conversation:
    key: ConversationKey
    display_name: str
    member_count: int | None = None

    @property
    def kind(self) -> ConversationKind:
        return self.key.kind
