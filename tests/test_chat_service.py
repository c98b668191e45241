from datetime import datetime

import pytest

from classroom_chat.errors import InvalidMessage, NotAParticipant, StoreUnavailable
from classroom_chat.services.chat_service import attachment_preview, message_preview
from tests.conftest import ALICE, BOB, CAROL


def conversation(store, a=ALICE, b=BOB):
    return store.get("chats", "_".join(sorted([a, b])))


def messages(store, a=ALICE, b=BOB):
    return list(store.documents(f"chats/{'_'.join(sorted([a, b]))}/messages").values())


async def test_send_updates_summary_and_unread(messaging, store):
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "hello")

    convo = conversation(store)
    assert convo["participants"] == [ALICE, BOB]
    assert convo["participant_names"] == {ALICE: "Alice", BOB: "Bob"}
    assert convo["last_message"] == "hello"
    assert isinstance(convo["updated_at"], datetime)
    assert convo["unread_counts"] == {BOB: 1}


async def test_unread_counts_only_grow_for_the_recipient(messaging, store):
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "hello")
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "are you there?")
    await messaging.send_message(BOB, "Bob", ALICE, "Alice", "yes")

    convo = conversation(store)
    assert convo["unread_counts"] == {BOB: 2, ALICE: 1}
    assert convo["last_message"] == "yes"


async def test_message_record_is_appended(messaging, store):
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "hello")

    [msg] = messages(store)
    assert msg["sender_id"] == ALICE
    assert msg["sender_name"] == "Alice"
    assert msg["content"] == "hello"
    assert msg["read"] is False
    assert isinstance(msg["created_at"], datetime)
    assert "attachments" not in msg


async def test_summary_is_written_before_the_message(messaging, store):
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "hello")

    assert [w[0] for w in store.writes] == ["upsert_merge", "add_record"]


async def test_attachment_only_message_gets_synthesized_preview(messaging, store, attachment):
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "", [attachment])

    assert conversation(store)["last_message"] == attachment_preview(1)
    [msg] = messages(store)
    assert msg["content"] == ""
    assert msg["attachments"] == [attachment]


async def test_whitespace_text_with_attachments_uses_attachment_preview(messaging, store, attachment):
    second = dict(attachment, name="photo.jpg", type="image")
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "   ", [attachment, second])

    assert conversation(store)["last_message"] == "📎 2 attachments"


@pytest.mark.parametrize("text", ["", "   ", None])
async def test_empty_message_is_rejected_without_writes(messaging, store, text):
    with pytest.raises(InvalidMessage):
        await messaging.send_message(ALICE, "Alice", BOB, "Bob", text, [])

    assert store.writes == []


@pytest.mark.parametrize(
    "sender, recipient",
    [("", BOB), (ALICE, ""), (ALICE, ALICE)],
)
async def test_bad_participants_are_rejected(messaging, store, sender, recipient):
    with pytest.raises(InvalidMessage):
        await messaging.send_message(sender, "A", recipient, "B", "hi")

    assert store.writes == []


@pytest.mark.parametrize(
    "url",
    [
        "file:///data/user/0/cache/worksheet.pdf",
        "content://media/external/images/1",
        "blob:https://app.example.com/1234",
        "worksheet.pdf",
    ],
)
async def test_attachment_must_be_uploaded(messaging, store, attachment, url):
    with pytest.raises(InvalidMessage):
        await messaging.send_message(ALICE, "Alice", BOB, "Bob", "see file", [dict(attachment, url=url)])

    assert store.writes == []


async def test_blank_names_fall_back_to_default(messaging, store):
    await messaging.send_message(ALICE, "", BOB, None, "hello")

    assert conversation(store)["participant_names"] == {ALICE: "User", BOB: "User"}
    assert messages(store)[0]["sender_name"] == "User"


async def test_names_are_rewritten_on_every_send(messaging, store):
    await messaging.send_message(BOB, "Robert", ALICE, "Alice", "call me Robert")
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "ok Bob")

    assert conversation(store)["participant_names"][BOB] == "Bob"


async def test_store_outage_surfaces_as_store_unavailable(messaging, store):
    store.available = False

    with pytest.raises(StoreUnavailable):
        await messaging.send_message(ALICE, "Alice", BOB, "Bob", "hello")

    assert store.writes == []


async def test_mark_read_resets_only_the_reader(messaging, store):
    for _ in range(3):
        await messaging.send_message(ALICE, "Alice", BOB, "Bob", "ping")
    await messaging.send_message(BOB, "Bob", ALICE, "Alice", "pong")

    await messaging.mark_read(ALICE, BOB, BOB)

    assert conversation(store)["unread_counts"] == {BOB: 0, ALICE: 1}


async def test_mark_read_is_idempotent(messaging, store):
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "hello")

    await messaging.mark_read(BOB, ALICE, BOB)
    await messaging.mark_read(ALICE, BOB, BOB)

    assert conversation(store)["unread_counts"][BOB] == 0


async def test_mark_read_by_stranger_is_rejected(messaging):
    await messaging.send_message(ALICE, "Alice", BOB, "Bob", "hello")

    with pytest.raises(NotAParticipant):
        await messaging.mark_read(ALICE, BOB, CAROL)


async def test_mark_read_of_unknown_conversation_is_a_noop(messaging, store):
    await messaging.mark_read(ALICE, CAROL, ALICE)

    assert conversation(store, ALICE, CAROL) is None
    assert store.writes == []


def test_message_preview_prefers_raw_text():
    assert message_preview("  hi  ", []) == "  hi  "
    assert message_preview("", []) == ""
