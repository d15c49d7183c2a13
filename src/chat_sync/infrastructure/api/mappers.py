from __future__ import annotations

from datetime import timezone
from urllib.parse import urljoin

from chat_sync.application.exceptions import ValidationError
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import ContentKind, DeliveryState
from chat_sync.domain.value_objects.ids import ConversationKey
from chat_sync.infrastructure.api.schemas import MessageRecord


def conversation_key_for(record: MessageRecord, current_user_id: int) -> ConversationKey:
    """Route a live record: channel messages by channel, direct ones by the other party."""
    if record.channel_id is not None:
        return ConversationKey.group(record.channel_id)
    if record.sender_id == current_user_id:
        if record.recipient_id is None:
            raise ValidationError(f"Direct message {record.id} sent by us has no recipient")
        return ConversationKey.direct(record.recipient_id)
    return ConversationKey.direct(record.sender_id)


def resolve_avatar(avatar: str | None, base_url: str | None) -> str | None:
    if not avatar or not base_url or "://" in avatar:
        return avatar
    return urljoin(base_url.rstrip("/") + "/", avatar.lstrip("/"))


def content_kind_of(raw: str) -> ContentKind:
    try:
        return ContentKind(raw.lower())
    except ValueError:
        return ContentKind.TEXT


def record_to_entity(
    record: MessageRecord,
    key: ConversationKey,
    *,
    base_url: str | None = None,
) -> Message:
    created_at = record.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Message(
        id=str(record.id),
        conversation_key=key,
        sender_id=record.sender_id,
        sender_name=record.username,
        sender_avatar_ref=resolve_avatar(record.avatar, base_url),
        content=record.content,
        content_kind=content_kind_of(record.type),
        file_name=record.file_name,
        created_at=created_at,
        delivery_state=DeliveryState.CONFIRMED,
        client_temp_id=record.client_temp_id,
    )
