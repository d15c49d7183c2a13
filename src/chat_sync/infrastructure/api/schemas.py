"""Wire records exchanged with the chat server."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MessageRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int | str
    content: str = ""
    sender_id: int = Field(validation_alias=AliasChoices("sender_id", "senderId"))
    username: str | None = Field(default=None, validation_alias=AliasChoices("username", "sender_name"))
    avatar: str | None = None
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt", "timestamp"))
    type: str = "text"
    file_name: str | None = Field(default=None, validation_alias=AliasChoices("file_name", "fileName"))
    channel_id: int | None = Field(default=None, validation_alias=AliasChoices("channel_id", "channelId"))
    recipient_id: int | None = Field(default=None, validation_alias=AliasChoices("recipient_id", "recipientId"))
    client_temp_id: str | None = Field(
        default=None, validation_alias=AliasChoices("client_temp_id", "clientTempId"),
    )


class HistoryEnvelope(BaseModel):
    """Paginated history response; bare lists are wrapped into this shape."""

    items: list[MessageRecord]
    next_cursor: str | None = Field(default=None, validation_alias=AliasChoices("next_cursor", "nextCursor"))


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    type: str = "text"
    file_name: str | None = Field(default=None, serialization_alias="fileName")
    recipient_id: int | None = Field(default=None, serialization_alias="recipientId")
    channel_id: int | None = Field(default=None, serialization_alias="channelId")
    client_temp_id: str = Field(serialization_alias="clientTempId")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class UploadResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_url: str = Field(validation_alias=AliasChoices("fileUrl", "file_url", "url"))


class OnlineUserRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
