from __future__ import annotations

from enum import StrEnum


class ConversationKind(StrEnum):
    DIRECT = "direct"
    GROUP = "group"


class ContentKind(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class DeliveryState(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PresenceStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class SyncState(StrEnum):
    IDLE = "idle"
    HYDRATING = "hydrating"
    LIVE = "live"


class MergeResult(StrEnum):
    INSERTED = "inserted"
    CONFIRMED = "confirmed"
    DUPLICATE = "duplicate"


class HydrationOutcome(StrEnum):
    APPLIED = "applied"
    STALE = "stale"
    FAILED = "failed"


class EventCategory(StrEnum):
    MESSAGE = "message"
    PRESENCE = "presence"
    CONNECTION_LOST = "connection_lost"


class NotificationKind(StrEnum):
    HYDRATION_FAILED = "hydration_failed"
    SEND_FAILED = "send_failed"
    UPLOAD_FAILED = "upload_failed"
    CONNECTION_LOST = "connection_lost"
