"""Entrypoint: python -m chat_sync

Headless client: signs in with AUTH_TOKEN, optionally opens SELECT_CONVERSATION
and logs what the rendering layer would see until interrupted.
"""
from __future__ import annotations

import asyncio
import logging

from chat_sync.client import create_client
from chat_sync.config import settings
from chat_sync.domain.entities.session import Session
from chat_sync.domain.value_objects.ids import ConversationKey

logger = logging.getLogger("chat_sync")


async def run(report_interval: float = 5.0) -> None:
    if not settings.AUTH_TOKEN:
        raise SystemExit("AUTH_TOKEN is not set")

    session = Session.from_token(settings.AUTH_TOKEN)
    client = create_client(settings)

    async with client.running(session):
        key = ConversationKey.parse(settings.SELECT_CONVERSATION) if settings.SELECT_CONVERSATION else None
        if key is not None:
            outcome = await client.select_conversation(key)
            logger.info("Opened %s: %s", key, outcome)

        seen: set[tuple[str | None, str | None, str]] = set()
        while True:
            await asyncio.sleep(report_interval)
            logger.info(
                "status=%s online=%d conversations=%d",
                client.connection_status, len(client.online_users()), len(client.conversations()),
            )
            if key is None:
                continue
            for message in client.timeline(key).messages:
                marker = (message.id, message.client_temp_id, message.delivery_state.value)
                if marker in seen:
                    continue
                seen.add(marker)
                logger.info(
                    "[%s] %s: %s (%s)",
                    message.created_at.isoformat(timespec="seconds"),
                    message.sender_name or message.sender_id,
                    message.content,
                    message.delivery_state,
                )


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
