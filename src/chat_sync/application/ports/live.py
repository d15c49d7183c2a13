from __future__ import annotations

from typing import AsyncIterator, Protocol

from chat_sync.application.dto.events import LiveEvent
from chat_sync.domain.entities.session import Session


class LiveStream(Protocol):
    """One open live-channel connection.

    ``events()`` yields decoded events in transport order. It returns when the
    server closes the channel and raises ``TransportError`` on abnormal loss.
    """

    def events(self) -> AsyncIterator[LiveEvent]: ...

    async def close(self) -> None: ...


class LiveTransport(Protocol):
    async def open(self, session: Session) -> LiveStream:
        """Connect and complete the authentication handshake. Raises ``TransportError``."""
        ...
