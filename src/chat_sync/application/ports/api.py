from __future__ import annotations

from typing import Protocol

from chat_sync.application.dto.history import HistoryPage, HistoryRequest
from chat_sync.application.dto.message import OutgoingFile, SendMessageDTO, UploadedFile
from chat_sync.domain.entities.message import Message


class ChatApi(Protocol):
    """Pull-based server API. Every failure surfaces as ``RequestFailed``."""

    async def fetch_history(self, request: HistoryRequest) -> HistoryPage:
        """Return one page of history; the page carries ``request.epoch`` back."""
        ...

    async def send_message(self, dto: SendMessageDTO) -> Message:
        """Persist a message and return the server-confirmed record."""
        ...

    async def upload_file(self, file: OutgoingFile) -> UploadedFile:
        """Upload a binary payload. Raises ``UploadFailed``."""
        ...

    async def fetch_online_users(self) -> set[int]: ...

    async def aclose(self) -> None: ...
