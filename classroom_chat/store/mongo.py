import asyncio
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

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

PARENT_FIELD = "_parent"


def resolve_collection(collection: str) -> Tuple[str, Optional[str]]:
    """Map a store path onto a MongoDB collection name and parent id.

    ``chats`` -> (``chats``, None); ``chats/abc/messages`` ->
    (``chats.messages``, ``abc``). Sub-collection documents carry their
    parent id in ``_parent``.
    """
    parts = split_path(collection)
    names = parts[0::2]
    parents = parts[1::2]
    return ".".join(names), ("/".join(parents) if parents else None)


def build_update(fields: Dict[str, Any], parent: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    update: Dict[str, Dict[str, Any]] = {}
    for path, value in fields.items():
        if value is SERVER_TIMESTAMP:
            update.setdefault("$currentDate", {})[path] = True
        elif isinstance(value, Increment):
            update.setdefault("$inc", {})[path] = value.amount
        else:
            update.setdefault("$set", {})[path] = value
    if parent is not None:
        update.setdefault("$set", {})[PARENT_FIELD] = parent
    return update


def build_filter(query: Query, parent: Optional[str] = None) -> Dict[str, Any]:
    mongo_filter: Dict[str, Any] = {}
    if parent is not None:
        mongo_filter[PARENT_FIELD] = parent
    for f in query.filters:
        # MongoDB matches a scalar against array members natively
        if f.op in ("==", "array_contains"):
            mongo_filter[f.field] = f.value
        else:
            raise ValueError(f"unsupported filter operator: {f.op!r}")
    return mongo_filter


def build_sort(query: Query) -> List[Tuple[str, int]]:
    if not query.order_by:
        return [("_id", ASCENDING)]
    direction = DESCENDING if query.descending else ASCENDING
    return [(query.order_by, direction), ("_id", direction)]


def to_snapshot(doc: Dict[str, Any]) -> DocumentSnapshot:
    data = dict(doc)
    document_id = str(data.pop("_id"))
    data.pop(PARENT_FIELD, None)
    return DocumentSnapshot(id=document_id, data=data)


class MongoDocumentStore(DocumentStore):
    """Document store backed by MongoDB.

    Live queries use change streams, which need a replica set or sharded
    cluster. Each subscription owns one watcher task that re-runs the query
    after every relevant change and publishes the result when it differs.
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._tasks: Set[asyncio.Task] = set()

    async def ensure_indexes(self, conversations: str = "chats", messages: str = "messages") -> None:
        try:
            await self._db[conversations].create_index([("participants", ASCENDING)])
            await self._db[conversations].create_index([("updated_at", DESCENDING)])
            await self._db[f"{conversations}.{messages}"].create_index(
                [(PARENT_FIELD, ASCENDING), ("created_at", ASCENDING)]
            )
        except PyMongoError as exc:
            raise StoreUnavailable(f"could not create indexes: {exc}") from exc

    async def upsert_merge(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        name, parent = resolve_collection(collection)
        try:
            await self._db[name].update_one({"_id": document_id}, build_update(fields, parent), upsert=True)
        except PyMongoError as exc:
            raise StoreUnavailable(f"upsert {collection}/{document_id} failed: {exc}") from exc

    async def add_record(self, collection: str, fields: Dict[str, Any]) -> str:
        name, parent = resolve_collection(collection)
        document_id = str(ObjectId())
        # an upsert on a fresh id is an insert that can still use $currentDate
        try:
            await self._db[name].update_one({"_id": document_id}, build_update(fields, parent), upsert=True)
        except PyMongoError as exc:
            raise StoreUnavailable(f"insert into {collection} failed: {exc}") from exc
        return document_id

    async def update_fields(self, collection: str, document_id: str, fields: Dict[str, Any]) -> bool:
        name, parent = resolve_collection(collection)
        selector: Dict[str, Any] = {"_id": document_id}
        if parent is not None:
            selector[PARENT_FIELD] = parent
        try:
            result = await self._db[name].update_one(selector, build_update(fields))
        except PyMongoError as exc:
            raise StoreUnavailable(f"update {collection}/{document_id} failed: {exc}") from exc
        return bool(result.matched_count)

    def subscribe_query(self, collection: str, query: Query) -> Subscription[List[DocumentSnapshot]]:
        name, parent = resolve_collection(collection)
        task: Optional[asyncio.Task] = None

        def release() -> None:
            if task is not None and not task.done():
                task.cancel()

        subscription: Subscription[List[DocumentSnapshot]] = Subscription(on_cancel=release)
        task = asyncio.create_task(self._watch(name, parent, query, subscription))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return subscription

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _watch(self, name: str, parent: Optional[str], query: Query, subscription: Subscription) -> None:
        collection = self._db[name]
        mongo_filter = build_filter(query, parent)
        sort = build_sort(query)
        pipeline: List[Dict[str, Any]] = [
            {"$match": {"operationType": {"$in": ["insert", "update", "replace", "delete"]}}}
        ]
        if parent is not None:
            pipeline.append(
                {"$match": {"$or": [{f"fullDocument.{PARENT_FIELD}": parent}, {"operationType": "delete"}]}}
            )
        last: Optional[List[DocumentSnapshot]] = None
        try:
            async with collection.watch(pipeline, full_document="updateLookup") as stream:
                last = await self._publish(collection, mongo_filter, sort, subscription, last)
                async for _change in stream:
                    last = await self._publish(collection, mongo_filter, sort, subscription, last)
        except asyncio.CancelledError:
            raise
        except PyMongoError as exc:
            logger.error("Live query on %s stopped: %s", name, exc)
            subscription.fail(StoreUnavailable(f"live query on {name} failed: {exc}"))
        except Exception as exc:
            logger.exception("Live query on %s stopped unexpectedly", name)
            subscription.fail(exc)

    async def _publish(self, collection, mongo_filter, sort, subscription, last):
        docs = await collection.find(mongo_filter).sort(sort).to_list(length=None)
        snapshot = [to_snapshot(doc) for doc in docs]
        if snapshot != last:
            subscription.push(snapshot)
        return snapshot
