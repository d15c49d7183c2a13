"""Live-channel frames: JSON envelopes ``{"type": ..., "data": {...}}``."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from chat_sync.application.dto.events import LiveEvent, MessageEvent, PresenceEvent
from chat_sync.application.exceptions import ValidationError
from chat_sync.domain.value_objects.enums import PresenceStatus
from chat_sync.infrastructure.api.mappers import conversation_key_for, record_to_entity
from chat_sync.infrastructure.api.schemas import MessageRecord

logger = logging.getLogger(__name__)

MESSAGE_TYPES = frozenset({"message", "message.created", "direct_message", "channel_message"})
PRESENCE_TYPES = frozenset({"user_status_change", "presence.update"})


class WsEnvelope(BaseModel):
    """Server → client."""

    type: str
    data: dict[str, Any] = {}


class AuthenticateFrame(BaseModel):
    """Client → server handshake, the only frame the client ever sends."""

    type: str = "authenticate"
    data: dict[str, Any]

    @classmethod
    def for_user(cls, user_id: int) -> AuthenticateFrame:
        return cls(data={"user_id": user_id})


class PresencePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: int = Field(validation_alias=AliasChoices("user_id", "userId"))
    status: str


class FrameDecoder:
    """Turns raw frames into domain events for one session."""

    def __init__(self, current_user_id: int, *, base_url: str | None = None) -> None:
        self._current_user_id = current_user_id
        self._base_url = base_url

    def decode(self, raw: str | bytes) -> LiveEvent | None:
        try:
            envelope = WsEnvelope.model_validate_json(raw)
        except SchemaError:
            logger.warning("Dropping malformed live frame")
            return None

        try:
            if envelope.type in MESSAGE_TYPES:
                return self._message_event(envelope.data)
            if envelope.type in PRESENCE_TYPES:
                return self._presence_event(envelope.data)
        except (SchemaError, ValidationError, ValueError):
            logger.warning("Dropping invalid %s frame", envelope.type, exc_info=True)
            return None

        logger.debug("Ignoring live frame type=%s", envelope.type)
        return None

    def _message_event(self, data: dict[str, Any]) -> MessageEvent:
        payload = data.get("message", data)
        record = MessageRecord.model_validate(payload)
        key = conversation_key_for(record, self._current_user_id)
        return MessageEvent(record_to_entity(record, key, base_url=self._base_url))

    @staticmethod
    def _presence_event(data: dict[str, Any]) -> PresenceEvent:
        payload = PresencePayload.model_validate(data)
        status = PresenceStatus(payload.status.lower())
        return PresenceEvent(user_id=payload.user_id, status=status)
