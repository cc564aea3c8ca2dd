import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from campushelp.config import get_settings
from campushelp.repositories.conversation_repository import ConversationRepository
from campushelp.repositories.help_request_repository import HelpRequestRepository
from campushelp.repositories.message_repository import MessageRepository
from campushelp.repositories.question_repository import QuestionRepository


logger = logging.getLogger(__name__)


class _Mongo:

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo() -> None:
    settings = get_settings()
    # tz_aware so timestamps compare with datetime.now(timezone.utc)
    _Mongo.client = AsyncIOMotorClient(settings.mongodb_url, tz_aware=True)
    _Mongo.db = _Mongo.client[settings.mongodb_db]
    await ConversationRepository(_Mongo.db).ensure_indexes()
    await MessageRepository(_Mongo.db).ensure_indexes()
    await HelpRequestRepository(_Mongo.db).ensure_indexes()
    await QuestionRepository(_Mongo.db).ensure_indexes()
    logger.info("Connected to MongoDB database '%s'", settings.mongodb_db)


async def close_mongo_connection() -> None:
    if _Mongo.client is not None:
        _Mongo.client.close()
        logger.info("MongoDB connection closed")
    _Mongo.client = None
    _Mongo.db = None


def get_database() -> AsyncIOMotorDatabase:
    if _Mongo.db is None:
        raise RuntimeError("MongoDB is not connected")
    return _Mongo.db


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()
