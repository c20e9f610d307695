from typing import Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from chat_app.models.user import UserDocument


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def get_user_by_id(self, user_id: str) -> Optional[UserDocument]:
        return await self._collection.find_one({"_id": user_id})

    async def get_user_by_username(self, username: str) -> Optional[UserDocument]:
        return await self._collection.find_one({"username": username})

    async def usernames(self, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        cursor = self._collection.find({"_id": {"$in": ids}})
        return {doc["_id"]: doc.get("username", "") async for doc in cursor}

    async def list_excluding(self, excluded: Iterable[str]) -> List[UserDocument]:
        cursor = self._collection.find({"_id": {"$nin": list(excluded)}}, sort=[("username", ASCENDING)])
        return await cursor.to_list(length=None)
