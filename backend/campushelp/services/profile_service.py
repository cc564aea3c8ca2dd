import logging
from typing import List

from campushelp.repositories.help_request_repository import HelpRequestRepository
from campushelp.repositories.question_repository import QuestionRepository
from campushelp.schemas.profile import ActivityItem, UserStats


logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10


class ProfileService:

    def __init__(self, help_request_repo: HelpRequestRepository, question_repo: QuestionRepository) -> None:
        self._help_request_repo = help_request_repo
        self._question_repo = question_repo

    async def get_user_stats(self, user_id: str) -> UserStats:
        return UserStats(
            requests_posted=await self._help_request_repo.count_by_user(user_id),
            help_given=await self._help_request_repo.count_accepted_by(user_id),
            questions_asked=await self._question_repo.count_by_author(user_id),
        )

    async def get_recent_activity(self, user_id: str) -> List[ActivityItem]:
        """The user's latest requests, help given and questions, newest first."""
        items: List[ActivityItem] = []
        for doc in await self._help_request_repo.list_by_user(user_id):
            if not doc.get("created_at"):
                logger.warning("Skipping request %s without created_at", doc.get("_id"))
                continue
            items.append(ActivityItem(
                id=str(doc["_id"]),
                type="request",
                title=doc.get("title") or "Help Request",
                timestamp=doc["created_at"],
                status=doc.get("status"),
            ))
        for doc in await self._help_request_repo.list_accepted_by(user_id):
            if not doc.get("updated_at"):
                logger.warning("Skipping help %s without updated_at", doc.get("_id"))
                continue
            items.append(ActivityItem(
                id=str(doc["_id"]),
                type="help",
                title=f"Helped with: {doc.get('title') or 'Request'}",
                timestamp=doc["updated_at"],
                status=doc.get("status"),
            ))
        for doc in await self._question_repo.list_by_author(user_id):
            if not doc.get("created_at"):
                logger.warning("Skipping question %s without created_at", doc.get("_id"))
                continue
            items.append(ActivityItem(
                id=str(doc["_id"]),
                type="question",
                title=doc.get("title") or "Question",
                timestamp=doc["created_at"],
            ))
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items[:RECENT_ACTIVITY_LIMIT]
