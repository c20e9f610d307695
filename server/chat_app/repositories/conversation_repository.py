from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from chat_app.models.conversation import ConversationDocument, MembershipDocument
from chat_app.repositories.counter_repository import CounterRepository
from chat_app.utils.clock import utcnow


def direct_key(user_a: str, user_b: str) -> str:
    return "|".join(sorted([user_a, user_b]))


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._counters = CounterRepository(db)

    @property
    def collection(self):
        return self._db["conversations"]

    @property
    def memberships(self):
        return self._db["memberships"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("name", ASCENDING)], unique=True, sparse=True)
        await self.collection.create_index([("direct_key", ASCENDING)], unique=True, sparse=True)
        await self.collection.create_index([("kind", ASCENDING)])
        await self.memberships.create_index(
            [("conversation_id", ASCENDING), ("user_id", ASCENDING)], unique=True
        )
        await self.memberships.create_index([("user_id", ASCENDING)])

    async def get_by_id(self, conversation_id: int) -> Optional[ConversationDocument]:
        return await self.collection.find_one({"_id": conversation_id})

    async def get_by_name(self, name: str) -> Optional[ConversationDocument]:
        return await self.collection.find_one({"name": name})

    async def find_direct(self, user_a: str, user_b: str) -> Optional[ConversationDocument]:
        return await self.collection.find_one({"direct_key": direct_key(user_a, user_b)})

    async def create_direct(self, creator_id: str, other_id: str) -> ConversationDocument:
        # raises DuplicateKeyError if the pair already has a direct conversation
        now = utcnow()
        doc: ConversationDocument = {
            "_id": await self._counters.next_value("conversations"),
            "kind": "direct",
            "direct_key": direct_key(creator_id, other_id),
            "created_by": creator_id,
            "created_at": now,
        }
        await self.collection.insert_one(doc)
        members: List[MembershipDocument] = [
            {"conversation_id": doc["_id"], "user_id": creator_id, "joined_at": now},
            {"conversation_id": doc["_id"], "user_id": other_id, "joined_at": now},
        ]
        try:
            await self.memberships.insert_many(members)
        except PyMongoError:
            await self._discard(doc["_id"])
            raise
        return doc

    async def create_public(self, creator_id: str, name: str) -> ConversationDocument:
        # raises DuplicateKeyError if the name is taken
        now = utcnow()
        doc: ConversationDocument = {
            "_id": await self._counters.next_value("conversations"),
            "kind": "public",
            "name": name,
            "created_by": creator_id,
            "created_at": now,
        }
        await self.collection.insert_one(doc)
        try:
            await self.add_member(doc["_id"], creator_id)
        except PyMongoError:
            await self._discard(doc["_id"])
            raise
        return doc

    async def _discard(self, conversation_id: int) -> None:
        # a conversation never outlives a failed membership write
        await self.memberships.delete_many({"conversation_id": conversation_id})
        await self.collection.delete_one({"_id": conversation_id})

    async def add_member(self, conversation_id: int, user_id: str) -> bool:
        result = await self.memberships.update_one(
            {"conversation_id": conversation_id, "user_id": user_id},
            {"$setOnInsert": {"joined_at": utcnow()}},
            upsert=True,
        )
        return result.upserted_id is not None

    async def member_ids(self, conversation_id: int) -> List[str]:
        cursor = self.memberships.find({"conversation_id": conversation_id})
        items = await cursor.to_list(length=None)
        return [it["user_id"] for it in items]

    async def conversation_ids_for_user(self, user_id: str) -> List[int]:
        cursor = self.memberships.find({"user_id": user_id})
        items = await cursor.to_list(length=None)
        return [it["conversation_id"] for it in items]

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        """Direct conversations the user belongs to plus every public conversation."""
        member_of = await self.conversation_ids_for_user(user_id)
        query = {
            "$or": [
                {"kind": "direct", "_id": {"$in": member_of}},
                {"kind": "public"},
            ]
        }
        cursor = self.collection.find(query, sort=[("_id", ASCENDING)])
        return await cursor.to_list(length=None)

    async def direct_partner_ids(self, user_id: str) -> List[str]:
        member_of = await self.conversation_ids_for_user(user_id)
        cursor = self.collection.find({"kind": "direct", "_id": {"$in": member_of}})
        partners: List[str] = []
        async for convo in cursor:
            partners.extend(u for u in convo["direct_key"].split("|") if u != user_id)
        return partners
