"""Reconciles history hydration, live events and conversation switches.

Per conversation key the engine moves ``Idle -> Hydrating -> Live``. Every
selection bumps the selection epoch; a history page is applied only if the
epoch it carries is still current, so a slow fetch for a conversation the user
already left can never overwrite the one now on screen. Live messages are
applied in every state; the store buffers them while a hydration is in flight.
"""
from __future__ import annotations

import logging

from chat_sync.application.dto.events import MessageEvent, PresenceEvent
from chat_sync.application.dto.history import HistoryPage, HistoryRequest
from chat_sync.application.dto.notification import Notification
from chat_sync.application.exceptions import RequestFailed, StaleResult, ValidationError
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.notifier import LoggingNotifier, Notifier
from chat_sync.domain.value_objects.enums import (
    EventCategory,
    HydrationOutcome,
    MergeResult,
    NotificationKind,
    SyncState,
)
from chat_sync.domain.value_objects.ids import ConversationKey
from chat_sync.domain.value_objects.selection import ActiveSelection
from chat_sync.services.connection_manager import ConnectionManager, Unsubscribe
from chat_sync.services.conversation_store import ConversationStore
from chat_sync.services.presence_tracker import PresenceTracker

logger = logging.getLogger(__name__)


class SyncEngine:
    def __init__(
        self,
        api: ChatApi,
        store: ConversationStore,
        presence: PresenceTracker,
        connection: ConnectionManager,
        *,
        page_size: int = 50,
        notifier: Notifier | None = None,
    ) -> None:
        self._api = api
        self._store = store
        self._presence = presence
        self._connection = connection
        self._page_size = page_size
        self._notifier = notifier or LoggingNotifier()
        self._selection = ActiveSelection()
        self._states: dict[ConversationKey, SyncState] = {}
        self._in_flight: dict[ConversationKey, int] = {}
        self._cursors: dict[ConversationKey, str | None] = {}
        self._loading_older: set[ConversationKey] = set()
        self._unsubscribers: list[Unsubscribe] = []

    @property
    def selection(self) -> ActiveSelection:
        return self._selection

    def state(self, key: ConversationKey) -> SyncState:
        return self._states.get(key, SyncState.IDLE)

    def has_older(self, key: ConversationKey) -> bool:
        return self._cursors.get(key) is not None

    # -- live channel --------------------------------------------------------

    def attach(self) -> None:
        """Subscribe to the live channel. Idempotent."""
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self._connection.on_event(EventCategory.MESSAGE, self._on_message_event),
            self._connection.on_event(EventCategory.PRESENCE, self._on_presence_event),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def _on_message_event(self, event: MessageEvent) -> None:
        message = event.message
        result = self._store.append_or_merge(message)
        if result != MergeResult.DUPLICATE:
            logger.debug(
                "Live message id=%s applied to %s (%s, state=%s)",
                message.id, message.conversation_key, result, self.state(message.conversation_key),
            )

    async def _on_presence_event(self, event: PresenceEvent) -> None:
        self._presence.apply_push_event(event.user_id, event.status)

    # -- selection / hydration -----------------------------------------------

    async def select_conversation(self, key: ConversationKey) -> HydrationOutcome:
        self._abandon_hydration(except_key=key)
        self._selection = self._selection.switch_to(key)
        epoch = self._selection.epoch
        self._store.set_active(key)
        self._store.mark_read(key)

        self._states[key] = SyncState.HYDRATING
        self._in_flight[key] = epoch
        self._store.begin_hydration(key)
        logger.debug("Hydrating %s (epoch=%d)", key, epoch)

        request = HistoryRequest(key=key, epoch=epoch, limit=self._page_size)
        try:
            page = await self._api.fetch_history(request)
        except RequestFailed as exc:
            self._release(key, epoch)
            if epoch != self._selection.epoch:
                logger.debug("Ignoring failed hydration of %s: %s", key, StaleResult(epoch, self._selection.epoch))
                return HydrationOutcome.STALE
            logger.warning("Hydration of %s failed: %s", key, exc.detail)
            self._notifier.notify(
                Notification(NotificationKind.HYDRATION_FAILED, exc.detail, conversation_key=key)
            )
            return HydrationOutcome.FAILED

        if page.epoch != self._selection.epoch:
            self._release(key, epoch)
            logger.debug(
                "Discarded history for %s: %s", key, StaleResult(page.epoch, self._selection.epoch),
            )
            return HydrationOutcome.STALE

        self._apply(key, page)
        return HydrationOutcome.APPLIED

    async def retry_hydration(self) -> HydrationOutcome:
        key = self._selection.key
        if key is None:
            raise ValidationError("No conversation selected")
        return await self.select_conversation(key)

    def clear_selection(self) -> None:
        self._abandon_hydration()
        self._selection = self._selection.switch_to(None)
        self._store.set_active(None)

    async def load_older(self, key: ConversationKey) -> int:
        """Fetch the page before the oldest loaded message; return how many were new."""
        if self._selection.key != key or self.state(key) != SyncState.LIVE:
            return 0
        cursor = self._cursors.get(key)
        if cursor is None or key in self._loading_older:
            return 0

        self._loading_older.add(key)
        try:
            return await self._fetch_older(key, cursor)
        finally:
            self._loading_older.discard(key)

    async def _fetch_older(self, key: ConversationKey, cursor: str) -> int:
        epoch = self._selection.epoch
        request = HistoryRequest(key=key, epoch=epoch, limit=self._page_size, cursor=cursor)
        try:
            page = await self._api.fetch_history(request)
        except RequestFailed as exc:
            logger.warning("Loading older messages for %s failed: %s", key, exc.detail)
            self._notifier.notify(
                Notification(NotificationKind.HYDRATION_FAILED, exc.detail, conversation_key=key)
            )
            return 0

        if page.epoch != self._selection.epoch:
            logger.debug("Discarded older page for %s: %s", key, StaleResult(page.epoch, self._selection.epoch))
            return 0

        self._cursors[key] = page.next_cursor
        return self._store.merge_page(key, page.messages)

    def reset(self) -> None:
        self.detach()
        self.clear_selection()
        self._states.clear()
        self._in_flight.clear()
        self._cursors.clear()
        self._loading_older.clear()

    def _apply(self, key: ConversationKey, page: HistoryPage) -> None:
        self._in_flight.pop(key, None)
        self._store.replace_history(key, page.messages)
        self._cursors[key] = page.next_cursor
        self._states[key] = SyncState.LIVE
        self._store.mark_read(key)
        logger.info("Hydrated %s with %d messages (epoch=%d)", key, len(page.messages), page.epoch)

    def _abandon_hydration(self, except_key: ConversationKey | None = None) -> None:
        """Stop buffering live messages for the selection being left."""
        previous = self._selection.key
        if previous is None or previous == except_key or previous not in self._in_flight:
            return
        logger.debug("Abandoning hydration of %s", previous)
        self._release(previous, self._in_flight[previous])

    def _release(self, key: ConversationKey, epoch: int) -> None:
        """Undo a hydration that will not be applied, unless a newer one owns the key."""
        if self._in_flight.get(key) != epoch:
            return
        del self._in_flight[key]
        self._store.abort_hydration(key)
        self._states[key] = SyncState.LIVE if key in self._cursors else SyncState.IDLE
