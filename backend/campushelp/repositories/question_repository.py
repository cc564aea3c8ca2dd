from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from campushelp.repositories.conversation_repository import to_object_id


def _vote_id(user_id: str, item_id: str) -> str:
    return f"{user_id}_{item_id}"


class QuestionRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def questions(self):
        return self._db["questions"]

    @property
    def answers(self):
        return self._db["answers"]

    @property
    def votes(self):
        return self._db["votes"]

    async def ensure_indexes(self) -> None:
        await self.questions.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
        await self.questions.create_index([("tags", ASCENDING)])
        await self.questions.create_index([("author_id", ASCENDING), ("created_at", DESCENDING)])
        await self.answers.create_index([("question_id", ASCENDING), ("created_at", ASCENDING)])
        await self.votes.create_index([("user_id", ASCENDING), ("item_id", ASCENDING)], unique=True)

    # ------------------------------------------------------------------ #
    # Questions
    # ------------------------------------------------------------------ #
    async def create(self, data: Dict[str, Any], author_id: str, author_name: str, author_email: str) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            **data,
            "author_id": author_id,
            "author_name": author_name,
            "author_email": author_email,
            "votes": 0,
            "answer_count": 0,
            "has_accepted_answer": False,
            "status": "open",
            "created_at": now,
            "updated_at": now,
        }
        result = await self.questions.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get(self, question_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(question_id)
        if oid is None:
            return None
        doc = await self.questions.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def list_questions(self, status: Optional[str] = None, tag: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if tag:
            query["tags"] = tag
        cursor = self.questions.find(query).sort("created_at", DESCENDING).limit(limit)
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it["_id"])
        return items

    async def list_by_author(self, author_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        cursor = self.questions.find({"author_id": author_id}).sort("created_at", DESCENDING).limit(limit)
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it["_id"])
        return items

    async def count_by_author(self, author_id: str) -> int:
        return await self.questions.count_documents({"author_id": author_id})

    async def update(self, question_id: str, fields: Dict[str, Any]) -> bool:
        result = await self.questions.update_one(
            {"_id": to_object_id(question_id)},
            {"$set": {**fields, "updated_at": datetime.now(timezone.utc)}},
        )
        return result.matched_count > 0

    async def delete(self, question_id: str) -> bool:
        # answers and their votes go with the question
        answer_ids = [str(a["_id"]) async for a in self.answers.find({"question_id": question_id}, {"_id": 1})]
        await self.votes.delete_many({"item_id": {"$in": answer_ids + [question_id]}})
        await self.answers.delete_many({"question_id": question_id})
        result = await self.questions.delete_one({"_id": to_object_id(question_id)})
        return result.deleted_count > 0

    # ------------------------------------------------------------------ #
    # Answers
    # ------------------------------------------------------------------ #
    async def add_answer(self, question_id: str, body: str, author_id: str, author_name: str, author_email: str) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "question_id": question_id,
            "body": body,
            "author_id": author_id,
            "author_name": author_name,
            "author_email": author_email,
            "votes": 0,
            "accepted": False,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.answers.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        await self.questions.update_one(
            {"_id": to_object_id(question_id)},
            {"$inc": {"answer_count": 1}, "$set": {"updated_at": now}},
        )
        return doc

    async def get_answer(self, answer_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(answer_id)
        if oid is None:
            return None
        doc = await self.answers.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def list_answers(self, question_id: str, limit: int = 500) -> List[Dict[str, Any]]:
        cursor = (
            self.answers.find({"question_id": question_id})
            .sort([("created_at", ASCENDING), ("_id", ASCENDING)])
            .limit(limit)
        )
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it["_id"])
        return items

    async def update_answer(self, answer_id: str, body: str) -> bool:
        result = await self.answers.update_one(
            {"_id": to_object_id(answer_id)},
            {"$set": {"body": body, "updated_at": datetime.now(timezone.utc)}},
        )
        return result.matched_count > 0

    async def delete_answer(self, question_id: str, answer_id: str, was_accepted: bool) -> bool:
        result = await self.answers.delete_one({"_id": to_object_id(answer_id)})
        if not result.deleted_count:
            return False
        await self.votes.delete_many({"item_id": answer_id})
        update: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc)}
        if was_accepted:
            update["has_accepted_answer"] = False
        await self.questions.update_one({"_id": to_object_id(question_id)}, {"$inc": {"answer_count": -1}, "$set": update})
        return True

    async def accept_answer(self, question_id: str, answer_id: str) -> None:
        now = datetime.now(timezone.utc)
        # at most one accepted answer per question
        await self.answers.update_many(
            {"question_id": question_id, "accepted": True, "_id": {"$ne": to_object_id(answer_id)}},
            {"$set": {"accepted": False, "updated_at": now}},
        )
        await self.answers.update_one({"_id": to_object_id(answer_id)}, {"$set": {"accepted": True, "updated_at": now}})
        await self.questions.update_one(
            {"_id": to_object_id(question_id)},
            {"$set": {"has_accepted_answer": True, "updated_at": now}},
        )

    # ------------------------------------------------------------------ #
    # Votes
    # ------------------------------------------------------------------ #
    async def get_vote(self, user_id: str, item_id: str) -> Optional[str]:
        doc = await self.votes.find_one({"_id": _vote_id(user_id, item_id)})
        return doc.get("vote_type") if doc else None

    async def get_votes(self, user_id: str, item_ids: List[str]) -> Dict[str, Optional[str]]:
        found: Dict[str, Optional[str]] = {item_id: None for item_id in item_ids}
        async for doc in self.votes.find({"user_id": user_id, "item_id": {"$in": item_ids}}):
            found[doc["item_id"]] = doc.get("vote_type")
        return found

    async def set_vote(self, user_id: str, item_id: str, item_type: str, vote_type: Optional[str]) -> None:
        vote_id = _vote_id(user_id, item_id)
        if vote_type is None:
            await self.votes.delete_one({"_id": vote_id})
            return
        now = datetime.now(timezone.utc)
        await self.votes.update_one(
            {"_id": vote_id},
            {
                "$set": {"user_id": user_id, "item_id": item_id, "item_type": item_type, "vote_type": vote_type, "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )

    async def add_to_score(self, item_type: str, item_id: str, delta: int) -> bool:
        collection = self.questions if item_type == "question" else self.answers
        result = await collection.update_one({"_id": to_object_id(item_id)}, {"$inc": {"votes": delta}})
        return result.matched_count > 0
