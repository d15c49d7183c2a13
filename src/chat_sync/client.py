"""Composition root and the surface exposed to the rendering layer."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Iterable

from chat_sync.application.dto.events import ConnectionLostEvent
from chat_sync.application.dto.message import OutgoingFile
from chat_sync.application.dto.notification import Notification
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.application.ports.live import LiveTransport
from chat_sync.application.ports.notifier import LoggingNotifier, Notifier
from chat_sync.config import Settings, settings as default_settings
from chat_sync.domain.entities.conversation import Conversation
from chat_sync.domain.entities.message import Message
from chat_sync.domain.entities.session import Session
from chat_sync.domain.entities.timeline import ConversationTimeline
from chat_sync.domain.value_objects.enums import (
    ConnectionStatus,
    EventCategory,
    HydrationOutcome,
    NotificationKind,
)
from chat_sync.domain.value_objects.ids import ConversationKey
from chat_sync.domain.value_objects.selection import ActiveSelection
from chat_sync.infrastructure.api.client import HttpChatApi
from chat_sync.infrastructure.ws.transport import WebSocketTransport
from chat_sync.services.connection_manager import ConnectionManager, Unsubscribe
from chat_sync.services.conversation_store import ConversationStore
from chat_sync.services.message_composer import MessageComposer
from chat_sync.services.presence_tracker import PresencePoller, PresenceTracker
from chat_sync.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

ApiFactory = Callable[[Session], ChatApi]


class ChatClient:
    """One signed-in chat client.

    The ConnectionManager is built once and handed in; everything that depends
    on the session (pull API, composer, engine, poller) lives between
    ``start`` and ``stop``.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        api_factory: ApiFactory,
        *,
        page_size: int = 50,
        presence_interval: float = 30.0,
        match_window_seconds: float = 30.0,
        preview_max_length: int = 40,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._connection = connection
        self._api_factory = api_factory
        self._page_size = page_size
        self._presence_interval = presence_interval
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock or SystemClock()
        self._store = ConversationStore(
            match_window_seconds=match_window_seconds,
            preview_max_length=preview_max_length,
        )
        self._presence = PresenceTracker()

        self._session: Session | None = None
        self._api: ChatApi | None = None
        self._engine: SyncEngine | None = None
        self._composer: MessageComposer | None = None
        self._poller: PresencePoller | None = None
        self._unsubscribe_lost: Unsubscribe | None = None

    # -- lifecycle -----------------------------------------------------------

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection.status

    async def start(self, session: Session) -> None:
        if self._session == session:
            return
        if self._session is not None:
            await self.stop()

        self._store.bind_user(session.current_user_id)
        api = self._api_factory(session)
        engine = SyncEngine(
            api, self._store, self._presence, self._connection,
            page_size=self._page_size, notifier=self._notifier,
        )
        engine.attach()
        self._unsubscribe_lost = self._connection.on_event(
            EventCategory.CONNECTION_LOST, self._on_connection_lost,
        )
        self._session = session
        self._api = api
        self._engine = engine
        self._composer = MessageComposer(
            api, self._store, session, clock=self._clock, notifier=self._notifier,
        )
        self._poller = PresencePoller(
            api, self._presence, interval=self._presence_interval, clock=self._clock,
        )

        await self._connection.connect(session)
        await self._poller.start()
        logger.info("Chat client started for user %s", session.current_user_id)

    async def stop(self) -> None:
        if self._session is None:
            return
        user_id = self._session.current_user_id
        if self._poller is not None:
            await self._poller.stop()
        if self._engine is not None:
            self._engine.reset()
        if self._unsubscribe_lost is not None:
            self._unsubscribe_lost()
        await self._connection.disconnect()
        if self._api is not None:
            await self._api.aclose()

        self._store.clear()
        self._presence.clear()
        self._session = None
        self._api = None
        self._engine = None
        self._composer = None
        self._poller = None
        self._unsubscribe_lost = None
        logger.info("Chat client stopped for user %s", user_id)

    async def reconnect(self) -> None:
        """Re-open the live channel after it gave up retrying."""
        if self._session is None:
            raise RuntimeError("Chat client is not started")
        await self._connection.connect(self._session)

    @asynccontextmanager
    async def running(self, session: Session) -> AsyncIterator[ChatClient]:
        await self.start(session)
        try:
            yield self
        finally:
            await self.stop()

    # -- reads ---------------------------------------------------------------

    @property
    def selection(self) -> ActiveSelection:
        return self._require_engine().selection

    def timeline(self, key: ConversationKey) -> ConversationTimeline:
        return self._store.get_timeline(key)

    def conversations(self) -> dict[ConversationKey, ConversationTimeline]:
        return self._store.summaries()

    def online_users(self) -> frozenset[int]:
        return self._presence.current_online_set()

    def is_online(self, user_id: int) -> bool:
        return self._presence.is_online(user_id)

    def register_conversations(self, conversations: Iterable[Conversation]) -> None:
        for conversation in conversations:
            self._store.register(conversation)

    # -- entry points --------------------------------------------------------

    async def select_conversation(self, key: ConversationKey) -> HydrationOutcome:
        return await self._require_engine().select_conversation(key)

    async def retry_hydration(self) -> HydrationOutcome:
        return await self._require_engine().retry_hydration()

    async def load_older(self, key: ConversationKey) -> int:
        return await self._require_engine().load_older(key)

    async def send_text(self, key: ConversationKey, text: str) -> Message:
        return await self._require_composer().send_text(key, text)

    async def send_attachment(self, key: ConversationKey, file: OutgoingFile | None) -> Message:
        return await self._require_composer().send_attachment(key, file)

    async def retry_message(self, key: ConversationKey, client_temp_id: str) -> Message:
        return await self._require_composer().retry(key, client_temp_id)

    def discard_message(self, key: ConversationKey, client_temp_id: str) -> bool:
        return self._require_composer().discard(key, client_temp_id)

    # -- internals -----------------------------------------------------------

    async def _on_connection_lost(self, event: ConnectionLostEvent) -> None:
        self._notifier.notify(
            Notification(
                NotificationKind.CONNECTION_LOST,
                f"gave up after {event.attempts} reconnect attempts: {event.detail}",
            )
        )

    def _require_engine(self) -> SyncEngine:
        if self._engine is None:
            raise RuntimeError("Chat client is not started")
        return self._engine

    def _require_composer(self) -> MessageComposer:
        if self._composer is None:
            raise RuntimeError("Chat client is not started")
        return self._composer


def create_client(
    config: Settings | None = None,
    *,
    transport: LiveTransport | None = None,
    api_factory: ApiFactory | None = None,
    notifier: Notifier | None = None,
    clock: Clock | None = None,
) -> ChatClient:
    cfg = config or default_settings

    if transport is None:
        transport = WebSocketTransport(
            cfg.ws_url, base_url=cfg.API_URL, open_timeout=cfg.HTTP_TIMEOUT_SECONDS,
        )

    if api_factory is None:
        def api_factory(session: Session) -> ChatApi:
            return HttpChatApi(
                cfg.API_URL,
                session,
                auth_header=cfg.AUTH_HEADER,
                timeout=cfg.HTTP_TIMEOUT_SECONDS,
            )

    connection = ConnectionManager(
        transport,
        max_attempts=cfg.RECONNECT_MAX_ATTEMPTS,
        base_delay=cfg.RECONNECT_BASE_DELAY,
        max_delay=cfg.RECONNECT_MAX_DELAY,
        clock=clock,
    )
    return ChatClient(
        connection,
        api_factory,
        page_size=cfg.HISTORY_PAGE_SIZE,
        presence_interval=cfg.PRESENCE_POLL_INTERVAL,
        match_window_seconds=cfg.OPTIMISTIC_MATCH_WINDOW_SECONDS,
        preview_max_length=cfg.PREVIEW_MAX_LENGTH,
        notifier=notifier,
        clock=clock,
    )
