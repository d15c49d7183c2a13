from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.value_objects.enums import ContentKind
from chat_sync.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class OutgoingFile:
    file_name: str
    mime_type: str
    data: bytes

    @property
    def content_kind(self) -> ContentKind:
        if self.mime_type.lower().startswith("image/"):
            return ContentKind.IMAGE
        return ContentKind.FILE


@dataclass(frozen=True, slots=True)
class UploadedFile:
    url: str
    content_kind: ContentKind
    file_name: str


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    conversation_key: ConversationKey
    client_temp_id: str
    content: str
    content_kind: ContentKind = ContentKind.TEXT
    file_name: str | None = None
