"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable

import pytest

from chat_sync.application.dto.events import LiveEvent
from chat_sync.application.dto.history import HistoryPage, HistoryRequest
from chat_sync.application.dto.message import OutgoingFile, SendMessageDTO, UploadedFile
from chat_sync.application.dto.notification import Notification
from chat_sync.application.exceptions import RequestFailed, TransportError, UploadFailed
from chat_sync.domain.entities.message import Message
from chat_sync.domain.entities.session import Session
from chat_sync.domain.value_objects.enums import ContentKind, DeliveryState, NotificationKind
from chat_sync.domain.value_objects.ids import ConversationKey

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ME = 1
ALICE = 7
BOB = 8

DIRECT_ALICE = ConversationKey.direct(ALICE)
DIRECT_BOB = ConversationKey.direct(BOB)
GROUP_GENERAL = ConversationKey.group(3)


@pytest.fixture
def session() -> Session:
    return Session(current_user_id=ME, auth_token="token-me", username="me")


@pytest.fixture
def other_session() -> Session:
    return Session(current_user_id=2, auth_token="token-other", username="other")


def make_message(
    *,
    key: ConversationKey = DIRECT_ALICE,
    id: str | None = "1",
    sender_id: int = ALICE,
    content: str = "hello",
    at: float = 0.0,
    state: DeliveryState = DeliveryState.CONFIRMED,
    client_temp_id: str | None = None,
    content_kind: ContentKind = ContentKind.TEXT,
    file_name: str | None = None,
) -> Message:
    return Message(
        id=id,
        conversation_key=key,
        sender_id=sender_id,
        content=content,
        created_at=BASE_TIME + timedelta(seconds=at),
        content_kind=content_kind,
        delivery_state=state,
        client_temp_id=client_temp_id,
        file_name=file_name,
    )


async def settle(rounds: int = 20) -> None:
    """Let pending tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def eventually(predicate: Callable[[], bool], *, attempts: int = 500) -> None:
    """Yield to the loop until ``predicate`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not met")


@dataclass
class FakeClock:
    """Deterministic clock; sleeps up to ``instant_limit`` return immediately, longer ones block."""

    current: datetime = BASE_TIME
    instant_limit: float = 60.0
    sleeps: list[float] = field(default_factory=list)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > self.instant_limit:
            await asyncio.Event().wait()
        await asyncio.sleep(0)


@dataclass
class RecordingNotifier:
    notifications: list[Notification] = field(default_factory=list)

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def kinds(self) -> list[NotificationKind]:
        return [n.kind for n in self.notifications]


@dataclass
class FakeChatApi:
    """In-memory pull API with optional gates to hold calls in flight."""

    histories: dict[ConversationKey, list[Message]] = field(default_factory=dict)
    pages: dict[tuple[ConversationKey, str | None], tuple[list[Message], str | None]] = field(default_factory=dict)
    online: set[int] = field(default_factory=set)
    history_gates: dict[ConversationKey, asyncio.Event] = field(default_factory=dict)
    history_errors: set[ConversationKey] = field(default_factory=set)
    send_gate: asyncio.Event | None = None
    fail_send: bool = False
    fail_upload: bool = False
    fail_online: bool = False
    echo_temp_id: bool = True
    history_requests: list[HistoryRequest] = field(default_factory=list)
    sent: list[SendMessageDTO] = field(default_factory=list)
    uploads: list[OutgoingFile] = field(default_factory=list)
    online_polls: int = 0
    closed: bool = False
    _ids: itertools.count = field(default_factory=lambda: itertools.count(100))

    async def fetch_history(self, request: HistoryRequest) -> HistoryPage:
        self.history_requests.append(request)
        gate = self.history_gates.get(request.key)
        if gate is not None:
            await gate.wait()
        if request.key in self.history_errors:
            raise RequestFailed("history unavailable", 503)
        scripted = self.pages.get((request.key, request.cursor))
        if scripted is not None:
            messages, next_cursor = scripted
        else:
            messages, next_cursor = list(self.histories.get(request.key, [])), None
        return HistoryPage(
            key=request.key, epoch=request.epoch, messages=messages, next_cursor=next_cursor,
        )

    async def send_message(self, dto: SendMessageDTO) -> Message:
        self.sent.append(dto)
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.fail_send:
            raise RequestFailed("server said no", 500)
        return Message(
            id=str(next(self._ids)),
            conversation_key=dto.conversation_key,
            sender_id=ME,
            content=dto.content,
            content_kind=dto.content_kind,
            file_name=dto.file_name,
            created_at=BASE_TIME + timedelta(seconds=1),
            client_temp_id=dto.client_temp_id if self.echo_temp_id else None,
        )

    async def upload_file(self, file: OutgoingFile) -> UploadedFile:
        self.uploads.append(file)
        if self.fail_upload:
            raise UploadFailed("storage full", 507)
        return UploadedFile(
            url=f"/uploads/{file.file_name}", content_kind=file.content_kind, file_name=file.file_name,
        )

    async def fetch_online_users(self) -> set[int]:
        self.online_polls += 1
        if self.fail_online:
            raise RequestFailed("presence unavailable", 503)
        return set(self.online)

    async def aclose(self) -> None:
        self.closed = True


_END = object()


class FakeLiveStream:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self.closed = False

    def push(self, event: LiveEvent) -> None:
        self._queue.put_nowait(event)

    def end(self) -> None:
        """Server closed the channel cleanly."""
        self._queue.put_nowait(_END)

    def fail(self, detail: str = "reset by peer") -> None:
        self._queue.put_nowait(TransportError(detail))

    async def events(self) -> AsyncIterator[LiveEvent]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, TransportError):
                raise item
            yield item  # type: ignore[misc]

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeLiveTransport:
    """Each ``open`` consumes the next scripted outcome; an empty script connects."""

    script: list[TransportError | FakeLiveStream] = field(default_factory=list)
    opened: list[Session] = field(default_factory=list)
    streams: list[FakeLiveStream] = field(default_factory=list)

    async def open(self, session: Session) -> FakeLiveStream:
        self.opened.append(session)
        outcome = self.script.pop(0) if self.script else FakeLiveStream()
        if isinstance(outcome, TransportError):
            raise outcome
        self.streams.append(outcome)
        return outcome

    @property
    def current(self) -> FakeLiveStream:
        return self.streams[-1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def api() -> FakeChatApi:
    return FakeChatApi()


@pytest.fixture
def transport() -> FakeLiveTransport:
    return FakeLiveTransport()
