from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from classroom_chat.errors import MalformedRecord
from classroom_chat.schemas.messaging import (
    Attachment,
    PendingTimestamp,
    ResolvedTimestamp,
    decode_conversation,
    decode_message,
    to_timestamp,
)
from classroom_chat.store.base import DocumentSnapshot


@pytest.mark.parametrize(
    "url",
    [
        "https://firebasestorage.googleapis.com/v0/b/app/o/messages%2Fa.pdf",
        "gs://bucket/messages/a.pdf",
    ],
)
def test_attachment_accepts_uploaded_urls(url):
    assert Attachment(name="a.pdf", url=url, type="file", size=1).url == url


@pytest.mark.parametrize("url", ["file:///tmp/a.pdf", "ph://ABC-123", "data:image/png;base64,AAAA", "/tmp/a.pdf"])
def test_attachment_rejects_local_urls(url):
    with pytest.raises(ValidationError):
        Attachment(name="a.pdf", url=url, type="file", size=1)


def test_attachment_kind_is_restricted():
    with pytest.raises(ValidationError):
        Attachment(name="a.mp3", url="https://x/a.mp3", type="audio", size=1)


def test_decode_conversation_fills_defaults():
    record = decode_conversation(
        DocumentSnapshot("alice_bob", {"participants": ["alice", "bob"], "participant_names": None})
    )

    assert record.participant_names == {}
    assert record.unread_counts == {}
    assert record.last_message == ""
    assert record.updated_at is None
    assert record.other_participant("alice") == "bob"


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"participants": ["alice"]},
        {"participants": ["alice", "alice"]},
        {"participants": ["alice", "bob"], "unread_counts": {"bob": "many"}},
    ],
)
def test_decode_conversation_rejects_malformed(data):
    with pytest.raises(MalformedRecord) as excinfo:
        decode_conversation(DocumentSnapshot("c1", data))

    assert excinfo.value.document_id == "c1"
    assert isinstance(excinfo.value.__cause__, ValidationError)


def test_decode_message_requires_a_body():
    with pytest.raises(MalformedRecord):
        decode_message(DocumentSnapshot("m1", {"sender_id": "alice", "content": "  "}))

    record = decode_message(
        DocumentSnapshot(
            "m2",
            {
                "sender_id": "alice",
                "content": None,
                "attachments": [{"name": "a.png", "url": "https://x/a.png", "type": "image", "size": 10}],
            },
        )
    )
    assert record.content == ""
    assert record.attachments[0].type == "image"
    assert record.read is False


def test_to_timestamp_models_pending_state():
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    server = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

    assert to_timestamp(None, now) == PendingTimestamp(local_time=now)
    assert to_timestamp(server, now) == ResolvedTimestamp(server_time=server)
    assert to_timestamp(server).value == server
