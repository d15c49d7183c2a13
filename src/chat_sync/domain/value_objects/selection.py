from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class ActiveSelection:
    """Currently open conversation plus the epoch that invalidates older fetches."""

    key: ConversationKey | None = None
    epoch: int = 0

    def switch_to(self, key: ConversationKey | None) -> ActiveSelection:
        return ActiveSelection(key=key, epoch=self.epoch + 1)
