import logging
from typing import Optional

from fastapi.requests import HTTPConnection
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from chat_app.config import Settings


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


async def connect_to_mongo(settings: Settings) -> AsyncIOMotorDatabase:
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.mongo_url)
        logger.info("Connected to MongoDB at %s (db=%s)", settings.mongo_url, settings.mongo_db)
    return _client[settings.mongo_db]


async def close_mongo_connection() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed")


def mongo_db_dependency(conn: HTTPConnection) -> AsyncIOMotorDatabase:
    return conn.app.state.db
