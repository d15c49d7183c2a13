"""Per-conversation timelines: ordering, de-duplication, optimistic merge, unread counters."""
from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from typing import Iterable

from chat_sync.application.policies.matching import is_optimistic_match
from chat_sync.domain.entities.conversation import Conversation
from chat_sync.domain.entities.message import Message
from chat_sync.domain.entities.timeline import ConversationTimeline
from chat_sync.domain.value_objects.enums import ContentKind, DeliveryState, MergeResult
from chat_sync.domain.value_objects.ids import ConversationKey

logger = logging.getLogger(__name__)


@dataclass
class _TimelineState:
    messages: list[Message] = field(default_factory=list)
    unread_count: int = 0
    # Live arrivals recorded while a hydration for this key is in flight.
    hydration_buffer: list[Message] | None = None


def _sort_key(message: Message) -> tuple:
    return message.sort_key


class ConversationStore:
    """Single source of truth for every timeline.

    All writes go through the methods below; readers get immutable
    ``ConversationTimeline`` snapshots.
    """

    def __init__(
        self,
        *,
        match_window_seconds: float = 30.0,
        preview_max_length: int = 40,
    ) -> None:
        self._match_window = match_window_seconds
        self._preview_max_length = preview_max_length
        self._timelines: dict[ConversationKey, _TimelineState] = {}
        self._conversations: dict[ConversationKey, Conversation] = {}
        self._active: ConversationKey | None = None
        self._current_user_id: int | None = None

    # -- reads ---------------------------------------------------------------

    @property
    def active_key(self) -> ConversationKey | None:
        return self._active

    def get_timeline(self, key: ConversationKey) -> ConversationTimeline:
        state = self._timelines.get(key)
        conversation = self._conversations.get(key)
        display_name = conversation.display_name if conversation else None
        if state is None:
            return ConversationTimeline(key=key, display_name=display_name)
        return ConversationTimeline(
            key=key,
            messages=tuple(state.messages),
            unread_count=state.unread_count,
            last_message_preview=self._preview(state.messages),
            display_name=display_name,
        )

    def summaries(self) -> dict[ConversationKey, ConversationTimeline]:
        keys = list(self._conversations) + [k for k in self._timelines if k not in self._conversations]
        return {key: self.get_timeline(key) for key in keys}

    def is_hydrating(self, key: ConversationKey) -> bool:
        state = self._timelines.get(key)
        return state is not None and state.hydration_buffer is not None

    # -- writes --------------------------------------------------------------

    def register(self, conversation: Conversation) -> None:
        self._conversations[conversation.key] = conversation

    def bind_user(self, user_id: int | None) -> None:
        """Messages from this user never count as unread."""
        self._current_user_id = user_id

    def set_active(self, key: ConversationKey | None) -> None:
        self._active = key

    def append_or_merge(self, message: Message) -> MergeResult:
        state = self._state(message.conversation_key)
        result, stored = self._merge(state.messages, message)

        if result == MergeResult.DUPLICATE:
            logger.debug(
                "Dropped duplicate message id=%s temp=%s in %s",
                message.id, message.client_temp_id, message.conversation_key,
            )
            return result

        if state.hydration_buffer is not None:
            state.hydration_buffer.append(stored)

        if (
            result == MergeResult.INSERTED
            and not stored.is_pending
            and message.conversation_key != self._active
            and stored.sender_id != self._current_user_id
        ):
            state.unread_count += 1
        return result

    def mark_read(self, key: ConversationKey) -> None:
        state = self._timelines.get(key)
        if state is not None:
            state.unread_count = 0

    def begin_hydration(self, key: ConversationKey) -> None:
        state = self._state(key)
        # A re-selection while a fetch is in flight keeps what was already buffered.
        if state.hydration_buffer is None:
            state.hydration_buffer = []

    def abort_hydration(self, key: ConversationKey) -> None:
        state = self._timelines.get(key)
        if state is not None:
            state.hydration_buffer = None

    def replace_history(self, key: ConversationKey, messages: Iterable[Message]) -> None:
        """Replace the timeline with a hydrated page.

        Live messages that arrived while the hydration was in flight, and
        local entries the server has not confirmed yet, are merged back in.
        """
        state = self._state(key)
        rebuilt: list[Message] = []
        for message in messages:
            if message.conversation_key != key:
                logger.warning("History for %s contained a message for %s", key, message.conversation_key)
                continue
            self._merge(rebuilt, message)

        known_ids = {m.id for m in state.messages if m.is_confirmed}
        carried = [m for m in state.messages if not m.is_confirmed]
        carried.extend(state.hydration_buffer or ())
        for message in carried:
            if not message.is_confirmed and self._collapse_into_history(rebuilt, message, known_ids):
                continue
            self._merge(rebuilt, message)

        logger.debug(
            "Replaced history for %s: %d messages (%d carried over)",
            key, len(rebuilt), len(carried),
        )
        state.messages = rebuilt
        state.hydration_buffer = None

    def merge_page(self, key: ConversationKey, messages: Iterable[Message]) -> int:
        """Merge an older history page without touching unread counters."""
        state = self._state(key)
        inserted = 0
        for message in messages:
            if message.conversation_key != key:
                continue
            result, _ = self._merge(state.messages, message)
            if result == MergeResult.INSERTED:
                inserted += 1
        return inserted

    def mark_failed(self, key: ConversationKey, client_temp_id: str) -> Message | None:
        return self._transition(key, client_temp_id, DeliveryState.PENDING, DeliveryState.FAILED)

    def mark_pending(self, key: ConversationKey, client_temp_id: str) -> Message | None:
        return self._transition(key, client_temp_id, DeliveryState.FAILED, DeliveryState.PENDING)

    def discard(self, key: ConversationKey, client_temp_id: str) -> bool:
        """Remove a ``Failed`` entry. Confirmed history is never removed."""
        state = self._timelines.get(key)
        if state is None:
            return False
        idx = self._index_by_temp_id(state.messages, client_temp_id)
        if idx is None or state.messages[idx].delivery_state != DeliveryState.FAILED:
            return False
        del state.messages[idx]
        if state.hydration_buffer:
            state.hydration_buffer = [
                m for m in state.hydration_buffer if m.client_temp_id != client_temp_id
            ]
        return True

    def clear(self) -> None:
        self._timelines.clear()
        self._conversations.clear()
        self._active = None
        self._current_user_id = None

    # -- internals -----------------------------------------------------------

    def _state(self, key: ConversationKey) -> _TimelineState:
        state = self._timelines.get(key)
        if state is None:
            state = self._timelines[key] = _TimelineState()
        return state

    def _merge(self, messages: list[Message], message: Message) -> tuple[MergeResult, Message]:
        if message.client_temp_id is not None:
            idx = self._index_by_temp_id(messages, message.client_temp_id)
            if idx is not None:
                existing = messages[idx]
                if existing.is_confirmed or not message.is_confirmed:
                    return MergeResult.DUPLICATE, existing
                return MergeResult.CONFIRMED, self._confirm(messages, idx, message)

        if message.id is not None:
            for existing in messages:
                if existing.id == message.id:
                    return MergeResult.DUPLICATE, existing

        if message.is_confirmed and message.client_temp_id is None:
            idx = self._index_by_heuristic(messages, message)
            if idx is not None:
                return MergeResult.CONFIRMED, self._confirm(messages, idx, message)

        bisect.insort(messages, message, key=_sort_key)
        return MergeResult.INSERTED, message

    def _confirm(self, messages: list[Message], idx: int, confirmed: Message) -> Message:
        merged = messages.pop(idx).confirmed_as(confirmed)
        if merged.id is not None:
            messages[:] = [m for m in messages if m.id != merged.id]
        bisect.insort(messages, merged, key=_sort_key)
        return merged

    def _collapse_into_history(
        self, rebuilt: list[Message], local: Message, known_ids: set[str | None]
    ) -> bool:
        # History copies without a temp id echo are claimed by at most one local entry.
        if local.client_temp_id is not None and self._index_by_temp_id(rebuilt, local.client_temp_id) is not None:
            return False
        for idx, existing in enumerate(rebuilt):
            if not existing.is_confirmed or existing.client_temp_id is not None or existing.id in known_ids:
                continue
            if is_optimistic_match(local, existing, window_seconds=self._match_window):
                rebuilt[idx] = local.confirmed_as(existing)
                return True
        return False

    @staticmethod
    def _index_by_temp_id(messages: list[Message], client_temp_id: str) -> int | None:
        for idx, existing in enumerate(messages):
            if existing.client_temp_id == client_temp_id:
                return idx
        return None

    def _index_by_heuristic(self, messages: list[Message], confirmed: Message) -> int | None:
        # Oldest matching optimistic entry wins, so repeated identical sends confirm in order.
        for idx, existing in enumerate(messages):
            if existing.is_confirmed:
                continue
            if is_optimistic_match(existing, confirmed, window_seconds=self._match_window):
                return idx
        return None

    def _transition(
        self,
        key: ConversationKey,
        client_temp_id: str,
        from_state: DeliveryState,
        to_state: DeliveryState,
    ) -> Message | None:
        state = self._timelines.get(key)
        if state is None:
            return None
        idx = self._index_by_temp_id(state.messages, client_temp_id)
        if idx is None or state.messages[idx].delivery_state != from_state:
            return None
        updated = state.messages[idx].with_state(to_state)
        state.messages[idx] = updated
        return updated

    def _preview(self, messages: list[Message]) -> str:
        if not messages:
            return ""
        last = messages[-1]
        if last.content_kind == ContentKind.IMAGE:
            return "[image]"
        if last.content_kind == ContentKind.FILE:
            return last.file_name or "[file]"
        preview = " ".join(last.content.split())
        if len(preview) > self._preview_max_length:
            preview = preview[: self._preview_max_length] + "…"
        return preview
