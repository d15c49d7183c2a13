"""Outgoing messages: validation, optimistic echo, upload sub-flow, explicit retry."""
from __future__ import annotations

import logging
import uuid

from chat_sync.application.dto.message import OutgoingFile, SendMessageDTO
from chat_sync.application.dto.notification import Notification
from chat_sync.application.exceptions import RequestFailed, UploadFailed, ValidationError
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.application.ports.notifier import LoggingNotifier, Notifier
from chat_sync.domain.entities.message import Message
from chat_sync.domain.entities.session import Session
from chat_sync.domain.value_objects.enums import ContentKind, DeliveryState, NotificationKind
from chat_sync.domain.value_objects.ids import ConversationKey
from chat_sync.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)


def new_client_temp_id() -> str:
    return f"tmp-{uuid.uuid4().hex}"


class MessageComposer:
    def __init__(
        self,
        api: ChatApi,
        store: ConversationStore,
        session: Session,
        *,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._api = api
        self._store = store
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()

    async def send_text(self, key: ConversationKey, text: str) -> Message:
        """Echo a ``Pending`` entry immediately, then persist it.

        Returns the confirmed message, or the entry marked ``Failed`` when the
        server rejects it. Raises ``ValidationError`` for blank text.
        """
        if not text or not text.strip():
            raise ValidationError("Message text is empty")
        return await self._submit(key, text, ContentKind.TEXT, None)

    async def send_attachment(self, key: ConversationKey, file: OutgoingFile | None) -> Message:
        """Upload ``file`` first, then send its reference like a text message.

        An upload failure raises ``UploadFailed`` and leaves the timeline
        untouched; a failure after the upload behaves like ``send_text``.
        """
        if file is None:
            raise ValidationError("No file selected")
        if not file.data:
            raise ValidationError(f"File {file.file_name!r} is empty")

        try:
            uploaded = await self._api.upload_file(file)
        except RequestFailed as exc:
            logger.warning("Upload of %s failed: %s", file.file_name, exc.detail)
            self._notifier.notify(
                Notification(NotificationKind.UPLOAD_FAILED, exc.detail, conversation_key=key)
            )
            if isinstance(exc, UploadFailed):
                raise
            raise UploadFailed(exc.detail, exc.status_code) from exc

        return await self._submit(key, uploaded.url, uploaded.content_kind, uploaded.file_name)

    async def retry(self, key: ConversationKey, client_temp_id: str) -> Message:
        """Resubmit a ``Failed`` entry under its original temp id."""
        pending = self._store.mark_pending(key, client_temp_id)
        if pending is None:
            raise ValidationError(f"No failed message {client_temp_id} in {key}")
        logger.info("Retrying message %s in %s", client_temp_id, key)
        return await self._persist(pending)

    def discard(self, key: ConversationKey, client_temp_id: str) -> bool:
        return self._store.discard(key, client_temp_id)

    async def _submit(
        self,
        key: ConversationKey,
        content: str,
        content_kind: ContentKind,
        file_name: str | None,
    ) -> Message:
        pending = Message(
            conversation_key=key,
            sender_id=self._session.current_user_id,
            sender_name=self._session.username,
            sender_avatar_ref=self._session.avatar_ref,
            content=content,
            content_kind=content_kind,
            file_name=file_name,
            created_at=self._clock.now(),
            delivery_state=DeliveryState.PENDING,
            client_temp_id=new_client_temp_id(),
        )
        self._store.append_or_merge(pending)
        return await self._persist(pending)

    async def _persist(self, pending: Message) -> Message:
        key = pending.conversation_key
        temp_id = pending.client_temp_id
        assert temp_id is not None
        dto = SendMessageDTO(
            conversation_key=key,
            client_temp_id=temp_id,
            content=pending.content,
            content_kind=pending.content_kind,
            file_name=pending.file_name,
        )
        try:
            confirmed = await self._api.send_message(dto)
        except RequestFailed as exc:
            current = self._current(key, temp_id)
            if current is not None and current.is_confirmed:
                logger.info("Send %s to %s failed after the server copy arrived: %s", temp_id, key, exc.detail)
                return current
            logger.warning("Send %s to %s failed: %s", temp_id, key, exc.detail)
            failed = self._store.mark_failed(key, temp_id)
            self._notifier.notify(
                Notification(
                    NotificationKind.SEND_FAILED, exc.detail,
                    conversation_key=key, client_temp_id=temp_id,
                )
            )
            return failed or current or pending.with_state(DeliveryState.FAILED)

        self._store.append_or_merge(pending.confirmed_as(confirmed))
        return self._current(key, temp_id) or confirmed

    def _current(self, key: ConversationKey, temp_id: str) -> Message | None:
        return self._store.get_timeline(key).find_by_temp_id(temp_id)
