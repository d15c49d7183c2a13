"""websockets implementation of the LiveTransport port."""
from __future__ import annotations

import logging
from typing import AsyncIterator
from urllib.parse import urlencode

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from chat_sync.application.dto.events import LiveEvent
from chat_sync.application.exceptions import TransportError
from chat_sync.domain.entities.session import Session
from chat_sync.infrastructure.ws.protocol import AuthenticateFrame, FrameDecoder

logger = logging.getLogger(__name__)


class WebSocketStream:
    def __init__(self, ws: ClientConnection, decoder: FrameDecoder) -> None:
        self._ws = ws
        self._decoder = decoder

    async def events(self) -> AsyncIterator[LiveEvent]:
        try:
            async for raw in self._ws:
                event = self._decoder.decode(raw)
                if event is not None:
                    yield event
        except ConnectionClosedOK:
            return
        except ConnectionClosed as exc:
            raise TransportError(f"Connection closed: {exc}") from exc

    async def close(self) -> None:
        try:
            await self._ws.close()
        except WebSocketException as exc:
            raise TransportError(str(exc)) from exc


class WebSocketTransport:
    def __init__(
        self,
        url: str,
        *,
        base_url: str | None = None,
        open_timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._base_url = base_url
        self._open_timeout = open_timeout

    async def open(self, session: Session) -> WebSocketStream:
        separator = "&" if "?" in self._url else "?"
        uri = f"{self._url}{separator}{urlencode({'token': session.auth_token})}"
        try:
            ws = await connect(
                uri,
                additional_headers={"Authorization": f"Bearer {session.auth_token}"},
                open_timeout=self._open_timeout,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportError(f"Cannot connect to {self._url}: {exc}") from exc

        try:
            await ws.send(AuthenticateFrame.for_user(session.current_user_id).model_dump_json())
        except ConnectionClosed as exc:
            raise TransportError(f"Handshake rejected: {exc}") from exc

        logger.debug("Live channel handshake sent for user %s", session.current_user_id)
        decoder = FrameDecoder(session.current_user_id, base_url=self._base_url)
        return WebSocketStream(ws, decoder)
