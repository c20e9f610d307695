from typing import Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from chat_app.models.message import ReadCursorDocument


class ReadCursorRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["read_cursors"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("conversation_id", ASCENDING), ("user_id", ASCENDING)], unique=True
        )

    async def get(self, conversation_id: int, user_id: str) -> int:
        doc = await self.collection.find_one({"conversation_id": conversation_id, "user_id": user_id})
        if not doc:
            return 0
        return int(doc.get("last_read_message_id", 0))

    async def raise_to(self, conversation_id: int, user_id: str, candidate: int) -> Tuple[int, int]:
        """Atomically set the cursor to max(stored, candidate). Returns (before, after)."""
        query = {"conversation_id": conversation_id, "user_id": user_id}
        update = {"$max": {"last_read_message_id": candidate}}
        before: Optional[ReadCursorDocument]
        try:
            before = await self.collection.find_one_and_update(
                query, update, upsert=True, return_document=ReturnDocument.BEFORE
            )
        except DuplicateKeyError:
            # two upserts raced on a fresh key; the document exists now
            before = await self.collection.find_one_and_update(
                query, update, return_document=ReturnDocument.BEFORE
            )
        previous = int(before.get("last_read_message_id", 0)) if before else 0
        return previous, max(previous, candidate)

    async def max_other(self, conversation_id: int, user_id: str) -> int:
        doc = await self.collection.find_one(
            {"conversation_id": conversation_id, "user_id": {"$ne": user_id}},
            sort=[("last_read_message_id", DESCENDING)],
        )
        if not doc:
            return 0
        return int(doc.get("last_read_message_id", 0))
