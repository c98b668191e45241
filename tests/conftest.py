import pytest

from classroom_chat.config import MessagingSettings
from classroom_chat.main import build_messaging
from classroom_chat.store.memory import InMemoryDocumentStore

ALICE = "alice"
BOB = "bob"
CAROL = "carol"


@pytest.fixture
def settings():
    return MessagingSettings()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def deferred_store():
    return InMemoryDocumentStore(defer_server_timestamps=True)


@pytest.fixture
def messaging(store, settings):
    return build_messaging(store, settings)


@pytest.fixture
def attachment():
    return {
        "name": "worksheet.pdf",
        "url": "https://storage.example.com/messages/alice/bob/worksheet.pdf",
        "type": "file",
        "size": 48213,
    }
