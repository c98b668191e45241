import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from classroom_chat.config import MessagingSettings
from classroom_chat.database.connection import get_database
from classroom_chat.store.base import DocumentStore
from classroom_chat.store.memory import InMemoryDocumentStore
from classroom_chat.store.mongo import MongoDocumentStore

logger = logging.getLogger(__name__)


async def create_store(settings: MessagingSettings, client: Optional[AsyncIOMotorClient] = None) -> DocumentStore:
    if client is None:
        logger.warning("No MongoDB client configured, using the in-memory document store")
        return InMemoryDocumentStore()
    store = MongoDocumentStore(get_database(client, settings))
    await store.ensure_indexes(settings.conversations_collection, settings.messages_subcollection)
    return store
