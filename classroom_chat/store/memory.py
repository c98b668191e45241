import copy
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from classroom_chat.errors import StoreUnavailable
from classroom_chat.store.base import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    Increment,
    Query,
    split_path,
)
from classroom_chat.store.subscription import Subscription

logger = logging.getLogger(__name__)


class _Watch:

    def __init__(self, collection: str, query: Query, subscription: Subscription) -> None:
        self.collection = collection
        self.query = query
        self.subscription = subscription
        self.last: Optional[List[DocumentSnapshot]] = None


class InMemoryDocumentStore(DocumentStore):
    """Process-local store with live queries.

    Snapshots are published synchronously from inside the write that changed
    them. With ``defer_server_timestamps`` the ``SERVER_TIMESTAMP`` fields
    stay ``None`` until :meth:`resolve_server_timestamps` is called, which
    mimics a client seeing its own write before the server acknowledged it.
    """

    def __init__(
        self,
        defer_server_timestamps: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._watches: List[_Watch] = []
        self._pending: List[Tuple[str, str, str]] = []
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_time: Optional[datetime] = None
        self.defer_server_timestamps = defer_server_timestamps
        self.available = True
        self.writes: List[Tuple[str, str, Optional[str], Dict[str, Any]]] = []

    # writes

    async def upsert_merge(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        self._check(collection)
        docs = self._collections.setdefault(collection, {})
        doc = docs.setdefault(document_id, {})
        self._apply(collection, document_id, doc, fields)
        self.writes.append(("upsert_merge", collection, document_id, dict(fields)))
        self._notify(collection)

    async def add_record(self, collection: str, fields: Dict[str, Any]) -> str:
        self._check(collection)
        document_id = uuid.uuid4().hex
        doc: Dict[str, Any] = {}
        self._apply(collection, document_id, doc, fields)
        self._collections.setdefault(collection, {})[document_id] = doc
        self.writes.append(("add_record", collection, document_id, dict(fields)))
        self._notify(collection)
        return document_id

    async def update_fields(self, collection: str, document_id: str, fields: Dict[str, Any]) -> bool:
        self._check(collection)
        doc = self._collections.get(collection, {}).get(document_id)
        if doc is None:
            return False
        self._apply(collection, document_id, doc, fields)
        self.writes.append(("update_fields", collection, document_id, dict(fields)))
        self._notify(collection)
        return True

    # reads

    def subscribe_query(self, collection: str, query: Query) -> Subscription[List[DocumentSnapshot]]:
        self._check(collection)
        watch: Optional[_Watch] = None

        def release() -> None:
            if watch in self._watches:
                self._watches.remove(watch)

        subscription: Subscription[List[DocumentSnapshot]] = Subscription(on_cancel=release)
        watch = _Watch(collection, query, subscription)
        self._watches.append(watch)
        self._publish(watch)
        return subscription

    def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collections.get(collection, {}).get(document_id)
        return copy.deepcopy(doc) if doc is not None else None

    def documents(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._collections.get(collection, {}))

    @property
    def watch_count(self) -> int:
        return len(self._watches)

    # test and local-development controls

    def resolve_server_timestamps(self) -> int:
        pending, self._pending = self._pending, []
        touched = set()
        for collection, document_id, path in pending:
            doc = self._collections.get(collection, {}).get(document_id)
            if doc is None:
                continue
            parent, leaf = _walk(doc, path)
            if parent.get(leaf) is None:
                parent[leaf] = self._now()
            touched.add(collection)
        for collection in touched:
            self._notify(collection)
        return len(pending)

    def fail_subscriptions(self, error: BaseException) -> None:
        for watch in list(self._watches):
            watch.subscription.fail(error)

    def put_raw(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[document_id] = copy.deepcopy(data)
        self._notify(collection)

    # internals

    def _check(self, collection: str) -> None:
        split_path(collection)
        if not self.available:
            raise StoreUnavailable(f"in-memory store is offline ({collection})")

    def _now(self) -> datetime:
        now = self._clock()
        if self._last_time is not None and now <= self._last_time:
            now = self._last_time + timedelta(microseconds=1)
        self._last_time = now
        return now

    def _apply(self, collection: str, document_id: str, doc: Dict[str, Any], fields: Dict[str, Any]) -> None:
        for path, value in fields.items():
            parent, leaf = _walk(doc, path)
            if value is SERVER_TIMESTAMP:
                if self.defer_server_timestamps:
                    parent[leaf] = None
                    self._pending.append((collection, document_id, path))
                else:
                    parent[leaf] = self._now()
            elif isinstance(value, Increment):
                current = parent.get(leaf)
                if not isinstance(current, (int, float)) or isinstance(current, bool):
                    current = 0
                parent[leaf] = current + value.amount
            else:
                parent[leaf] = copy.deepcopy(value)

    def _notify(self, collection: str) -> None:
        for watch in list(self._watches):
            if watch.collection == collection:
                self._publish(watch)

    def _publish(self, watch: _Watch) -> None:
        snapshot = self._run(watch.collection, watch.query)
        if snapshot == watch.last:
            return
        watch.last = snapshot
        logger.debug("Publishing %d documents from %s", len(snapshot), watch.collection)
        watch.subscription.push(copy.deepcopy(snapshot))

    def _run(self, collection: str, query: Query) -> List[DocumentSnapshot]:
        docs = [
            DocumentSnapshot(id=document_id, data=copy.deepcopy(data))
            for document_id, data in self._collections.get(collection, {}).items()
            if _matches(data, query)
        ]
        if query.order_by:
            # unresolved timestamps count as the newest value
            docs.sort(
                key=lambda d: _order_key(_lookup(d.data, query.order_by)),
                reverse=query.descending,
            )
        return docs


def _walk(doc: Dict[str, Any], path: str) -> Tuple[Dict[str, Any], str]:
    *parents, leaf = path.split(".")
    node = doc
    for name in parents:
        child = node.get(name)
        if not isinstance(child, dict):
            child = {}
            node[name] = child
        node = child
    return node, leaf


def _lookup(data: Dict[str, Any], path: str) -> Any:
    node: Any = data
    for name in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(name)
    return node


def _order_key(value: Any) -> Tuple[bool, Any]:
    return (value is None, value if value is not None else 0)


def _matches(data: Dict[str, Any], query: Query) -> bool:
    for f in query.filters:
        value = _lookup(data, f.field)
        if f.op == "==":
            if value != f.value:
                return False
        elif f.op == "array_contains":
            if not isinstance(value, list) or f.value not in value:
                return False
        else:
            raise ValueError(f"unsupported filter operator: {f.op!r}")
    return True
