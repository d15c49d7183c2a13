from __future__ import annotations

from chat_sync.domain.entities.message import Message


def is_optimistic_match(pending: Message, confirmed: Message, *, window_seconds: float) -> bool:
    """Best-effort match of a server record to an optimistic entry.

    Used only when the server does not echo the client temp id: same
    conversation, same sender, same content and kind, timestamps within the window.
    """
    if pending.conversation_key != confirmed.conversation_key:
        return False
    if pending.sender_id != confirmed.sender_id:
        return False
    if pending.content_kind != confirmed.content_kind or pending.content != confirmed.content:
        return False
    delta = abs((confirmed.created_at - pending.created_at).total_seconds())
    return delta <= window_seconds
