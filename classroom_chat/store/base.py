"""Document store contract consumed by the messaging core.

Implementations only need single-document atomicity: a merge that mixes
plain values, :class:`Increment` and ``SERVER_TIMESTAMP`` must be applied as
one write.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from classroom_chat.store.subscription import Subscription

FilterOp = Literal["==", "array_contains"]


class _ServerTimestamp:

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    amount: int = 1


@dataclass(frozen=True)
class Filter:
    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class Query:
    filters: List[Filter] = field(default_factory=list)
    order_by: Optional[str] = None
    descending: bool = False


@dataclass
class DocumentSnapshot:
    id: str
    data: Dict[str, Any]


def split_path(collection: str) -> List[str]:
    """``"chats/abc/messages"`` -> ``["chats", "abc", "messages"]``."""
    parts = [p for p in collection.split("/") if p]
    if not parts or len(parts) % 2 == 0:
        raise ValueError(f"not a collection path: {collection!r}")
    return parts


class DocumentStore(ABC):

    @abstractmethod
    async def upsert_merge(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        """Create the document or merge ``fields`` into it.

        Keys may be dotted paths into nested maps.
        """

    @abstractmethod
    async def add_record(self, collection: str, fields: Dict[str, Any]) -> str:
        """Insert a new document with a generated id and return the id."""

    @abstractmethod
    async def update_fields(self, collection: str, document_id: str, fields: Dict[str, Any]) -> bool:
        """Update an existing document. Returns False if it does not exist."""

    @abstractmethod
    def subscribe_query(self, collection: str, query: Query) -> Subscription[List[DocumentSnapshot]]:
        """Open a live query. The first snapshot is published right away."""

    def server_timestamp(self) -> _ServerTimestamp:
        return SERVER_TIMESTAMP

    def increment(self, amount: int = 1) -> Increment:
        return Increment(amount)

    async def close(self) -> None:
        return
