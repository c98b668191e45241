from classroom_chat.store.base import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Filter,
    Increment,
    Query,
)
from classroom_chat.store.memory import InMemoryDocumentStore
from classroom_chat.store.subscription import Subscription

__all__ = [
    "SERVER_TIMESTAMP",
    "DocumentSnapshot",
    "DocumentStore",
    "Filter",
    "Increment",
    "InMemoryDocumentStore",
    "Query",
    "Subscription",
]
