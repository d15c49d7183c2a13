"""Live-channel lifecycle: handshake, bounded reconnect, ordered event dispatch."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from chat_sync.application.dto.events import ConnectionLostEvent, LiveEvent
from chat_sync.application.exceptions import TransportError
from chat_sync.application.policies.backoff import calc_backoff
from chat_sync.application.ports.clock import Clock, SystemClock
from chat_sync.application.ports.live import LiveStream, LiveTransport
from chat_sync.domain.entities.session import Session
from chat_sync.domain.value_objects.enums import ConnectionStatus, EventCategory

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]
Unsubscribe = Callable[[], None]


class ConnectionManager:
    """Owns the single live channel of the current session.

    Events are handed to subscribers one at a time, in the order the
    transport delivered them. Delivery is at-most-once: frames lost while
    the channel is down are not replayed.
    """

    def __init__(
        self,
        transport: LiveTransport,
        *,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        clock: Clock | None = None,
    ) -> None:
        self._transport = transport
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._clock = clock or SystemClock()
        self._handlers: dict[EventCategory, list[EventHandler]] = {}
        self._status = ConnectionStatus.DISCONNECTED
        self._session: Session | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def session(self) -> Session | None:
        return self._session

    def on_event(self, category: EventCategory | str, handler: EventHandler) -> Unsubscribe:
        handlers = self._handlers.setdefault(EventCategory(category), [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def connect(self, session: Session) -> None:
        if self._session == session and self._status in (
            ConnectionStatus.CONNECTED,
            ConnectionStatus.CONNECTING,
        ):
            return
        if self._task is not None or self._session is not None:
            await self.disconnect()

        self._session = session
        self._set_status(ConnectionStatus.CONNECTING)
        self._task = asyncio.create_task(
            self._run(session), name=f"live-channel-{session.current_user_id}",
        )

    async def disconnect(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            if task is not asyncio.current_task():
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._session = None
        if self._status != ConnectionStatus.DISCONNECTED:
            self._set_status(ConnectionStatus.DISCONNECTED)
            logger.info("Live channel disconnected")

    async def _run(self, session: Session) -> None:
        attempt = 0
        while True:
            failure = await self._serve_once(session)
            if self._status == ConnectionStatus.CONNECTED:
                attempt = 0
            attempt += 1
            if attempt > self._max_attempts:
                await self._give_up(attempt - 1, failure)
                return

            delay = calc_backoff(attempt, base_delay=self._base_delay, max_delay=self._max_delay)
            self._set_status(ConnectionStatus.RECONNECTING)
            logger.warning(
                "Live channel lost (%s), reconnect %d/%d in %.1fs",
                failure, attempt, self._max_attempts, delay,
            )
            await self._clock.sleep(delay)

    async def _serve_once(self, session: Session) -> str:
        """Open one connection and pump it until it ends; return why it ended."""
        try:
            stream = await self._transport.open(session)
        except TransportError as exc:
            return exc.detail or "connect failed"

        self._set_status(ConnectionStatus.CONNECTED)
        logger.info("Live channel connected (user=%s)", session.current_user_id)
        try:
            async for event in stream.events():
                await self._dispatch(event)
        except TransportError as exc:
            return exc.detail or "connection lost"
        finally:
            await self._close_stream(stream)
        return "closed by server"

    async def _give_up(self, attempts: int, failure: str) -> None:
        self._task = None
        self._session = None
        self._set_status(ConnectionStatus.DISCONNECTED)
        logger.warning("Live channel gave up after %d reconnect attempts: %s", attempts, failure)
        await self._dispatch(ConnectionLostEvent(attempts=attempts, detail=failure))

    async def _dispatch(self, event: LiveEvent) -> None:
        for handler in list(self._handlers.get(event.category, ())):
            try:
                await handler(event)
            except Exception:
                logger.exception("Error handling %s event", event.category)

    @staticmethod
    async def _close_stream(stream: LiveStream) -> None:
        try:
            await stream.close()
        except TransportError:
            logger.debug("Error closing live stream", exc_info=True)

    def _set_status(self, status: ConnectionStatus) -> None:
        if status != self._status:
            logger.debug("Live channel status %s -> %s", self._status, status)
            self._status = status
