from classroom_chat.config import MessagingSettings
from classroom_chat.main import lifespan
from classroom_chat.store.memory import InMemoryDocumentStore
from tests.conftest import ALICE, BOB


async def test_lifespan_without_mongo_uses_memory_store():
    async with lifespan(MessagingSettings(log_level="WARNING")) as messaging:
        assert isinstance(messaging.store, InMemoryDocumentStore)

        inbox, feed = [], []
        messaging.subscribe_conversations(BOB, inbox.append)
        await messaging.subscribe_messages(ALICE, BOB, feed.append)

        await messaging.send_message(ALICE, "Alice", BOB, "Bob", "welcome to class")

        assert inbox[-1][0].unread_count == 1
        assert [m.content for m in feed[-1]] == ["welcome to class"]

        await messaging.mark_read(ALICE, BOB, BOB)
        assert inbox[-1][0].unread_count == 0
