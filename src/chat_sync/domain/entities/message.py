from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from chat_sync.domain.value_objects.enums import ContentKind, DeliveryState
from chat_sync.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class Message:
    conversation_key: ConversationKey
    sender_id: int
    content: str
    created_at: datetime
    content_kind: ContentKind = ContentKind.TEXT
    delivery_state: DeliveryState = DeliveryState.CONFIRMED
    id: str | None = None
    sender_name: str | None = None
    sender_avatar_ref: str | None = None
    file_name: str | None = None
    client_temp_id: str | None = None

    @property
    def sort_key(self) -> tuple[datetime, int, int, str]:
        """Timeline order: ``(created_at, id)`` with numeric ids compared as numbers.

        Entries without a server id sort after confirmed ones sharing a timestamp.
        """
        if self.id is None:
            return (self.created_at, 2, 0, "")
        if self.id.isdigit():
            return (self.created_at, 0, int(self.id), "")
        return (self.created_at, 1, 0, self.id)

    @property
    def is_pending(self) -> bool:
        return self.delivery_state == DeliveryState.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.delivery_state == DeliveryState.CONFIRMED

    def is_from(self, user_id: int) -> bool:
        return self.sender_id == user_id

    def with_state(self, state: DeliveryState) -> Message:
        return replace(self, delivery_state=state)

    def confirmed_as(self, confirmed: Message) -> Message:
        """Collapse this optimistic entry into its server-confirmed copy."""
        return replace(
            confirmed,
            delivery_state=DeliveryState.CONFIRMED,
            client_temp_id=self.client_temp_id or confirmed.client_temp_id,
            file_name=confirmed.file_name or self.file_name,
            sender_name=confirmed.sender_name or self.sender_name,
            sender_avatar_ref=confirmed.sender_avatar_ref or self.sender_avatar_ref,
        )
