"""httpx implementation of the ChatApi port."""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError as SchemaError

from chat_sync.application.dto.history import HistoryPage, HistoryRequest
from chat_sync.application.dto.message import OutgoingFile, SendMessageDTO, UploadedFile
from chat_sync.application.exceptions import RequestFailed, UploadFailed
from chat_sync.domain.entities.message import Message
from chat_sync.domain.entities.session import Session
from chat_sync.domain.value_objects.enums import ConversationKind
from chat_sync.domain.value_objects.ids import ConversationKey
from chat_sync.infrastructure.api.mappers import record_to_entity
from chat_sync.infrastructure.api.schemas import (
    HistoryEnvelope,
    MessageRecord,
    OnlineUserRecord,
    SendMessageRequest,
    UploadResponse,
)

logger = logging.getLogger(__name__)

_HISTORY_PATHS = {
    ConversationKind.DIRECT: "/api/messages/direct/{id}",
    ConversationKind.GROUP: "/api/messages/channel/{id}",
}
_SEND_PATHS = {
    ConversationKind.DIRECT: "/api/messages/direct",
    ConversationKind.GROUP: "/api/messages/channel",
}


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        detail = data.get("msg") or data.get("message") or data.get("detail")
        if detail:
            return str(detail)
    return f"API Error: {response.status_code}"


class HttpChatApi:
    """Pull API client bound to one session's token."""

    def __init__(
        self,
        base_url: str,
        session: Session,
        *,
        auth_header: str = "x-auth-token",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={auth_header: session.auth_token},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_history(self, request: HistoryRequest) -> HistoryPage:
        params: dict[str, Any] = {"limit": request.limit}
        if request.cursor is not None:
            params["before"] = request.cursor
        path = _HISTORY_PATHS[request.key.kind].format(id=request.key.id)
        data = await self._request("GET", path, params=params)

        try:
            if isinstance(data, list):
                envelope = HistoryEnvelope(items=[MessageRecord.model_validate(r) for r in data])
                if len(envelope.items) >= request.limit:
                    oldest = min(envelope.items, key=lambda r: r.created_at)
                    envelope.next_cursor = str(oldest.id)
            else:
                envelope = HistoryEnvelope.model_validate(data)
        except SchemaError as exc:
            raise RequestFailed(f"Malformed history for {request.key}: {exc}") from exc

        messages = [self._to_entity(r, request.key) for r in envelope.items]
        return HistoryPage(
            key=request.key,
            epoch=request.epoch,
            messages=messages,
            next_cursor=envelope.next_cursor,
        )

    async def send_message(self, dto: SendMessageDTO) -> Message:
        key = dto.conversation_key
        body = SendMessageRequest(
            content=dto.content,
            type=dto.content_kind.value,
            file_name=dto.file_name,
            recipient_id=key.id if key.kind == ConversationKind.DIRECT else None,
            channel_id=key.id if key.kind == ConversationKind.GROUP else None,
            client_temp_id=dto.client_temp_id,
        )
        data = await self._request("POST", _SEND_PATHS[key.kind], json=body.to_body())
        try:
            record = MessageRecord.model_validate(data)
        except SchemaError as exc:
            raise RequestFailed(f"Malformed send response: {exc}") from exc
        return self._to_entity(record, key)

    async def upload_file(self, file: OutgoingFile) -> UploadedFile:
        kind = file.content_kind
        try:
            data = await self._request(
                "POST",
                "/api/upload",
                files={"file": (file.file_name, file.data, file.mime_type)},
                data={"type": kind.value},
            )
            uploaded = UploadResponse.model_validate(data)
        except RequestFailed as exc:
            raise UploadFailed(exc.detail, exc.status_code) from exc
        except SchemaError as exc:
            raise UploadFailed("Failed to upload file") from exc
        return UploadedFile(url=uploaded.file_url, content_kind=kind, file_name=file.file_name)

    async def fetch_online_users(self) -> set[int]:
        data = await self._request("GET", "/api/users/online")
        try:
            return {OnlineUserRecord.model_validate(u).id for u in data}
        except (SchemaError, TypeError) as exc:
            raise RequestFailed(f"Malformed online users: {exc}") from exc

    def _to_entity(self, record: MessageRecord, key: ConversationKey) -> Message:
        return record_to_entity(record, key, base_url=self._base_url)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed", method, path, exc_info=True)
            raise RequestFailed(f"Network error: {exc}") from exc

        if response.is_error:
            raise RequestFailed(_error_detail(response), response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise RequestFailed(f"Invalid JSON from {path}") from exc
