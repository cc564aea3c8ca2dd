from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["chats"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("requester_id", ASCENDING), ("updated_at", DESCENDING)])
        await self.collection.create_index([("helper_id", ASCENDING), ("updated_at", DESCENDING)])
        await self.collection.create_index([("request_id", ASCENDING)])

    async def create(
        self,
        request_id: str,
        request_title: str,
        requester_id: str,
        requester_name: str,
        requester_email: str,
        helper_id: str,
        helper_name: str,
        helper_email: str,
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "request_id": request_id,
            "request_title": request_title,
            "requester_id": requester_id,
            "requester_name": requester_name,
            "requester_email": requester_email,
            "helper_id": helper_id,
            "helper_name": helper_name,
            "helper_email": helper_email,
            "participants": [requester_id, helper_id],
            "participant_names": {requester_id: requester_name, helper_id: helper_name},
            "status": "active",
            "last_message": None,
            "last_message_at": None,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get(self, chat_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(chat_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def get_by_request_id(self, request_id: str) -> Optional[Dict[str, Any]]:
        # one chat per request
        doc = await self.collection.find_one({"request_id": request_id}, sort=[("created_at", ASCENDING)])
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def list_for_requester(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return await self._list_by({"requester_id": user_id}, limit)

    async def list_for_helper(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return await self._list_by({"helper_id": user_id}, limit)

    async def _list_by(self, query: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        cursor = self.collection.find(query).sort([("updated_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def update_on_new_message(self, chat_id: str, preview: str, at: datetime) -> bool:
        result = await self.collection.update_one(
            {"_id": to_object_id(chat_id)},
            {"$set": {"last_message": preview, "last_message_at": at, "updated_at": at}},
        )
        return bool(result.matched_count)

    async def finalize(self, chat_id: str) -> bool:
        # status only ever moves active -> finalized
        result = await self.collection.update_one(
            {"_id": to_object_id(chat_id), "status": "active"},
            {"$set": {"status": "finalized", "updated_at": datetime.now(timezone.utc)}},
        )
        return bool(result.modified_count)

    async def delete(self, chat_id: str) -> bool:
        result = await self.collection.delete_one({"_id": to_object_id(chat_id)})
        return bool(result.deleted_count)
