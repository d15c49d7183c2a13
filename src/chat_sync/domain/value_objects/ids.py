from __future__ import annotations

from dataclasses import dataclass
from typing import NewType

from chat_sync.domain.value_objects.enums import ConversationKind

UserId = NewType("UserId", int)
MessageId = NewType("MessageId", str)
ClientTempId = NewType("ClientTempId", str)


@dataclass(frozen=True, slots=True)
class ConversationKey:
    """Composite identity of a conversation.

    Direct-contact ids and group ids live in separate id spaces, so a bare
    integer is never enough to find a conversation.
    """

    kind: ConversationKind
    id: int

    @classmethod
    def direct(cls, user_id: int) -> ConversationKey:
        return cls(ConversationKind.DIRECT, user_id)

    @classmethod
    def group(cls, channel_id: int) -> ConversationKey:
        return cls(ConversationKind.GROUP, channel_id)

    @classmethod
    def parse(cls, raw: str) -> ConversationKey:
        """Parse ``"direct:7"`` / ``"group:3"``."""
        kind_raw, sep, id_raw = raw.partition(":")
        if not sep:
            raise ValueError(f"Invalid conversation key: {raw!r}")
        return cls(ConversationKind(kind_raw.strip().lower()), int(id_raw))

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"
