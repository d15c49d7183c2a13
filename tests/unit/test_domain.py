from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from chat_sync.application.dto.message import OutgoingFile
from chat_sync.application.policies.backoff import calc_backoff
from chat_sync.application.policies.matching import is_optimistic_match
from chat_sync.domain.entities.session import Session
from chat_sync.domain.value_objects.enums import ContentKind, ConversationKind, DeliveryState
from chat_sync.domain.value_objects.ids import ConversationKey
from chat_sync.domain.value_objects.selection import ActiveSelection
from tests.conftest import DIRECT_ALICE, GROUP_GENERAL, ME, make_message


def test_conversation_key_kinds_are_distinct():
    assert ConversationKey.direct(3) != ConversationKey.group(3)
    assert ConversationKey.direct(3).kind == ConversationKind.DIRECT
    assert {ConversationKey.group(3), ConversationKey.group(3)} == {GROUP_GENERAL}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("direct:7", ConversationKey.direct(7)),
        ("group:3", ConversationKey.group(3)),
        (" GROUP :3", ConversationKey.group(3)),
    ],
)
def test_conversation_key_parse(raw, expected):
    assert ConversationKey.parse(raw) == expected


@pytest.mark.parametrize("raw", ["7", "channel:1", "direct:x"])
def test_conversation_key_parse_rejects_garbage(raw):
    with pytest.raises(ValueError):
        ConversationKey.parse(raw)


def test_conversation_key_str_round_trips():
    assert str(DIRECT_ALICE) == "direct:7"
    assert ConversationKey.parse(str(DIRECT_ALICE)) == DIRECT_ALICE


def test_selection_epoch_increases_on_every_switch():
    selection = ActiveSelection()

    first = selection.switch_to(DIRECT_ALICE)
    again = first.switch_to(DIRECT_ALICE)
    cleared = again.switch_to(None)

    assert (first.epoch, again.epoch, cleared.epoch) == (1, 2, 3)
    assert cleared.key is None
    assert selection.epoch == 0


def test_session_from_token_reads_claims():
    token = jwt.encode({"sub": "42", "username": "ann", "avatar": "/a/ann.png"}, "secret", algorithm="HS256")

    session = Session.from_token(token)

    assert session.current_user_id == 42
    assert session.username == "ann"
    assert session.avatar_ref == "/a/ann.png"
    assert session.auth_token == token


def test_session_repr_hides_token():
    session = Session(current_user_id=1, auth_token="very-secret")

    assert "very-secret" not in repr(session)


@pytest.mark.parametrize(
    "attempt, expected",
    [(0, 0.0), (1, 1.0), (2, 2.0), (3, 4.0), (5, 16.0), (6, 30.0), (10, 30.0)],
)
def test_calc_backoff(attempt, expected):
    assert calc_backoff(attempt, base_delay=1.0, max_delay=30.0) == expected


def test_sort_key_orders_numeric_ids_numerically():
    nine = make_message(id="9")
    ten = make_message(id="10")
    local = make_message(id=None)

    assert sorted([local, ten, nine], key=lambda m: m.sort_key) == [nine, ten, local]


def test_confirmed_as_keeps_temp_id_and_local_fields():
    pending = make_message(
        id=None, sender_id=ME, state=DeliveryState.PENDING, client_temp_id="tmp-1", file_name="a.txt",
    )
    server = make_message(id="5", sender_id=ME, at=2)

    merged = pending.confirmed_as(server)

    assert merged.id == "5"
    assert merged.client_temp_id == "tmp-1"
    assert merged.file_name == "a.txt"
    assert merged.is_confirmed
    assert merged.is_from(ME)


def test_optimistic_match():
    pending = make_message(id=None, sender_id=ME, content="x", state=DeliveryState.PENDING)
    confirmed = make_message(id="1", sender_id=ME, content="x", at=10)

    assert is_optimistic_match(pending, confirmed, window_seconds=30)
    assert not is_optimistic_match(pending, confirmed, window_seconds=5)
    other_kind = make_message(id="1", sender_id=ME, content="x", content_kind=ContentKind.IMAGE)
    assert not is_optimistic_match(pending, other_kind, window_seconds=30)
    elsewhere = make_message(key=GROUP_GENERAL, id="1", sender_id=ME, content="x")
    assert not is_optimistic_match(pending, elsewhere, window_seconds=30)


def test_optimistic_match_is_symmetric_in_time():
    pending = make_message(id=None, sender_id=ME, content="x", at=10, state=DeliveryState.PENDING)
    earlier = make_message(id="1", sender_id=ME, content="x")

    assert earlier.created_at == pending.created_at - timedelta(seconds=10)
    assert is_optimistic_match(pending, earlier, window_seconds=30)


@pytest.mark.parametrize(
    "mime, kind",
    [("image/png", ContentKind.IMAGE), ("IMAGE/JPEG", ContentKind.IMAGE), ("application/pdf", ContentKind.FILE)],
)
def test_outgoing_file_kind(mime, kind):
    assert OutgoingFile("f", mime, b"1").content_kind == kind
