import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from classroom_chat.config import MessagingSettings
from classroom_chat.errors import StoreUnavailable

logger = logging.getLogger(__name__)


async def connect_to_mongo(settings: MessagingSettings) -> AsyncIOMotorClient:
    if not settings.mongo_url:
        raise StoreUnavailable("MONGO_URL is not configured")
    client = AsyncIOMotorClient(
        settings.mongo_url,
        tz_aware=True,
        serverSelectionTimeoutMS=settings.mongo_timeout_ms,
    )
    try:
        await client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        raise StoreUnavailable(f"could not reach MongoDB: {exc}") from exc
    logger.info("Connected to MongoDB database %s", settings.mongo_db_name)
    return client


def get_database(client: AsyncIOMotorClient, settings: MessagingSettings) -> AsyncIOMotorDatabase:
    return client[settings.mongo_db_name]


async def close_mongo_connection(client: AsyncIOMotorClient) -> None:
    client.close()
    logger.info("MongoDB connection closed")
