from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument


class CounterRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["counters"]

    async def next_value(self, name: str) -> int:
        doc = await self.collection.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["seq"])
