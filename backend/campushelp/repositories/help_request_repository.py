from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from campushelp.repositories.conversation_repository import to_object_id


class HelpRequestRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("help_requests")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
        await self._collection.create_index([("status", ASCENDING), ("category", ASCENDING), ("created_at", DESCENDING)])
        await self._collection.create_index([("user_id", ASCENDING)])
        await self._collection.create_index([("accepted_by", ASCENDING)])

    async def create(self, data: Dict[str, Any], user_id: str, user_name: str, user_email: str) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            **data,
            "user_id": user_id,
            "user_name": user_name,
            "user_email": user_email,
            "status": "active",
            "created_at": now,
            "updated_at": now,
        }
        result = await self._collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get(self, request_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(request_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def list_active(self, category: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"status": "active"}
        if category:
            query["category"] = category
        cursor = self._collection.find(query).sort("created_at", DESCENDING).limit(limit)
        results = []
        async for doc in cursor:
            doc["_id"] = str(doc["_id"])
            results.append(doc)
        return results

    async def accept(self, request_id: str, helper_id: str, helper_name: str, helper_email: str, chat_id: str) -> bool:
        result = await self._collection.update_one(
            {"_id": to_object_id(request_id), "status": "active"},
            {
                "$set": {
                    "status": "accepted",
                    "accepted_by": helper_id,
                    "accepted_by_name": helper_name,
                    "accepted_by_email": helper_email,
                    "chat_id": chat_id,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        return result.modified_count > 0

    async def set_status(self, request_id: str, status: str) -> bool:
        result = await self._collection.update_one(
            {"_id": to_object_id(request_id)},
            {"$set": {"status": status, "updated_at": datetime.now(timezone.utc)}},
        )
        return result.matched_count > 0

    async def delete(self, request_id: str) -> bool:
        result = await self._collection.delete_one({"_id": to_object_id(request_id)})
        return result.deleted_count > 0

    async def list_by_user(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return await self._list_by({"user_id": user_id}, limit)

    async def list_accepted_by(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return await self._list_by({"accepted_by": user_id}, limit)

    async def count_by_user(self, user_id: str) -> int:
        return await self._collection.count_documents({"user_id": user_id})

    async def count_accepted_by(self, user_id: str) -> int:
        return await self._collection.count_documents({"accepted_by": user_id})

    async def _list_by(self, query: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        cursor = self._collection.find(query).sort("created_at", DESCENDING).limit(limit)
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it["_id"])
        return items
