from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from chat_app.models.user import SessionDocument


class SessionRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("user_sessions")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("token", ASCENDING)], unique=True)
        await self._collection.create_index([("expires_at", ASCENDING)])

    async def find_active(self, token: str, now: datetime) -> Optional[SessionDocument]:
        return await self._collection.find_one({"token": token, "expires_at": {"$gt": now}})

    async def extend(self, session_id, expires_at: datetime) -> None:
        await self._collection.update_one({"_id": session_id}, {"$set": {"expires_at": expires_at}})

    async def delete_expired(self, now: datetime) -> int:
        result = await self._collection.delete_many({"expires_at": {"$lt": now}})
        return result.deleted_count or 0
