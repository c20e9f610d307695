from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from chat_app.models.message import MessageDocument
from chat_app.repositories.counter_repository import CounterRepository
from chat_app.utils.clock import utcnow


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._counters = CounterRepository(db)

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("conversation_id", ASCENDING), ("_id", ASCENDING)]
        )
        await self.collection.create_index([("conversation_id", ASCENDING), ("sender_id", ASCENDING)])

    async def save_message(
        self,
        conversation_id: int,
        sender_id: str,
        sender_username: str,
        body: str,
    ) -> MessageDocument:
        doc: MessageDocument = {
            "_id": await self._counters.next_value("messages"),
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "sender_username": sender_username,
            "body": body,
            "created_at": utcnow(),
        }
        await self.collection.insert_one(doc)
        return doc

    async def get_page(self, conversation_id: int, page: int, page_size: int) -> List[MessageDocument]:
        cur = self.collection.find(
            {"conversation_id": conversation_id},
            # ids are assigned in commit order; timestamps may step backwards
            sort=[("_id", ASCENDING)],
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        return await cur.to_list(length=page_size)

    async def get_message(self, conversation_id: int, message_id: int) -> Optional[MessageDocument]:
        return await self.collection.find_one({"_id": message_id, "conversation_id": conversation_id})

    async def get_last_message(self, conversation_id: int) -> Optional[MessageDocument]:
        return await self.collection.find_one(
            {"conversation_id": conversation_id}, sort=[("_id", DESCENDING)]
        )

    async def get_latest_not_from(self, conversation_id: int, user_id: str) -> Optional[MessageDocument]:
        return await self.collection.find_one(
            {"conversation_id": conversation_id, "sender_id": {"$ne": user_id}},
            sort=[("_id", DESCENDING)],
        )

    async def count_unread(self, conversation_id: int, user_id: str, cursor: int) -> int:
        return await self.collection.count_documents(
            {"conversation_id": conversation_id, "sender_id": {"$ne": user_id}, "_id": {"$gt": cursor}}
        )

    async def count(self, conversation_id: int) -> int:
        return await self.collection.count_documents({"conversation_id": conversation_id})
