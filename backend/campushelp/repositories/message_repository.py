from datetime import datetime, timezone
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING)])

    async def save_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str,
        sender_email: str,
        body: str,
    ) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "sender_name": sender_name,
            "sender_email": sender_email,
            "body": body,
            "created_at": datetime.now(timezone.utc),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def list_for_conversation(self, conversation_id: str, limit: int = 500) -> List[Dict[str, Any]]:
        # oldest first, the order the thread is read in
        cursor = (
            self.collection.find({"conversation_id": conversation_id})
            .sort([("created_at", ASCENDING), ("_id", ASCENDING)])
            .limit(limit)
        )
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items
