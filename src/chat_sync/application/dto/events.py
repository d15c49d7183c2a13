from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import EventCategory, PresenceStatus


@dataclass(frozen=True, slots=True)
class MessageEvent:
    category: ClassVar[EventCategory] = EventCategory.MESSAGE

    message: Message


@dataclass(frozen=True, slots=True)
class PresenceEvent:
    category: ClassVar[EventCategory] = EventCategory.PRESENCE

    user_id: int
    status: PresenceStatus


@dataclass(frozen=True, slots=True)
class ConnectionLostEvent:
    category: ClassVar[EventCategory] = EventCategory.CONNECTION_LOST

    attempts: int
    detail: str = ""


LiveEvent = Union[MessageEvent, PresenceEvent, ConnectionLostEvent]
