import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from campushelp.repositories.question_repository import QuestionRepository
from campushelp.schemas.question import Answer, AnswerCreate, Question, QuestionCreate, QuestionUpdate
from campushelp.schemas.user import SessionUser
from campushelp.services.errors import AnswerNotFoundError, NotOwnerError, QuestionNotFoundError


logger = logging.getLogger(__name__)

_VOTE_VALUE = {"upvote": 1, "downvote": -1, None: 0}


def vote_delta(current: Optional[str], new: Optional[str]) -> int:
    """Change to an item's score when a user's vote goes from ``current`` to ``new``."""
    return _VOTE_VALUE[new] - _VOTE_VALUE[current]


def document_to_question(doc: Dict[str, Any]) -> Optional[Question]:
    question_id = str(doc.get("_id", ""))
    if not doc.get("title") or not doc.get("author_id"):
        logger.warning("Missing required fields in question document %s", question_id)
        return None
    now = datetime.now(timezone.utc)
    return Question(
        id=question_id,
        title=doc["title"],
        body=doc.get("body") or "",
        tags=doc.get("tags") or [],
        author_id=doc["author_id"],
        author_name=doc.get("author_name") or "Anonymous",
        author_email=doc.get("author_email") or "",
        votes=doc.get("votes") or 0,
        answer_count=doc.get("answer_count") or 0,
        has_accepted_answer=bool(doc.get("has_accepted_answer")),
        status=doc.get("status") or "open",
        created_at=doc.get("created_at") or now,
        updated_at=doc.get("updated_at") or now,
    )


def document_to_answer(doc: Dict[str, Any]) -> Optional[Answer]:
    answer_id = str(doc.get("_id", ""))
    if not all(doc.get(k) for k in ("question_id", "body", "author_id")):
        logger.warning("Missing required fields in answer document %s", answer_id)
        return None
    now = datetime.now(timezone.utc)
    return Answer(
        id=answer_id,
        question_id=doc["question_id"],
        body=doc["body"],
        author_id=doc["author_id"],
        author_name=doc.get("author_name") or "Anonymous",
        author_email=doc.get("author_email") or "",
        votes=doc.get("votes") or 0,
        accepted=bool(doc.get("accepted")),
        created_at=doc.get("created_at") or now,
        updated_at=doc.get("updated_at") or now,
    )


class QuestionService:
    """The Q&A forum: questions, answers, accepted answers and votes."""

    def __init__(self, repo: QuestionRepository) -> None:
        self._repo = repo

    async def create_question(self, data: QuestionCreate, user: SessionUser) -> Question:
        title = data.title.strip()
        if not title:
            raise ValueError("Question title cannot be empty")
        tags = [t.strip() for t in data.tags if t.strip()]
        doc = await self._repo.create({"title": title, "body": data.body.strip(), "tags": tags}, user.id, user.name, user.email)
        logger.info("User %s asked question %s", user.id, doc["_id"])
        return document_to_question(doc)

    async def get_question(self, question_id: str) -> Question:
        doc = await self._repo.get(question_id)
        question = document_to_question(doc) if doc else None
        if question is None:
            raise QuestionNotFoundError(f"Question {question_id} not found")
        return question

    async def list_questions(
        self,
        status: Optional[str] = None,
        tags: Optional[List[str]] = None,
        search: Optional[str] = None,
        sort_by: str = "recent",
    ) -> List[Question]:
        tags = [t for t in (tags or []) if t]
        # a single tag is matched by the query, several tags here
        docs = await self._repo.list_questions(status=status, tag=tags[0] if len(tags) == 1 else None)
        questions = [q for q in (document_to_question(d) for d in docs) if q is not None]

        if len(tags) > 1:
            questions = [q for q in questions if any(tag in q.tags for tag in tags)]
        if search:
            needle = search.lower()
            questions = [q for q in questions if needle in q.title.lower() or needle in q.body.lower()]
        if sort_by == "unanswered":
            questions = [q for q in questions if q.answer_count == 0]

        if sort_by == "popular":
            questions.sort(key=lambda q: q.votes, reverse=True)
        else:
            questions.sort(key=lambda q: q.created_at, reverse=True)
        return questions

    async def update_question(self, question_id: str, data: QuestionUpdate, user: SessionUser) -> Question:
        question = await self.get_question(question_id)
        if question.author_id != user.id:
            raise NotOwnerError("You can only edit your own questions")
        fields = data.model_dump(exclude_none=True)
        if "title" in fields:
            fields["title"] = fields["title"].strip()
            if not fields["title"]:
                raise ValueError("Question title cannot be empty")
        if fields:
            await self._repo.update(question_id, fields)
        return await self.get_question(question_id)

    async def delete_question(self, question_id: str, user: SessionUser) -> None:
        question = await self.get_question(question_id)
        if question.author_id != user.id:
            raise NotOwnerError("You can only delete your own questions")
        await self._repo.delete(question_id)
        logger.info("Question %s deleted by %s", question_id, user.id)

    async def add_answer(self, question_id: str, data: AnswerCreate, user: SessionUser) -> Answer:
        body = data.body.strip()
        if not body:
            raise ValueError("Answer body cannot be empty")
        await self.get_question(question_id)
        doc = await self._repo.add_answer(question_id, body, user.id, user.name, user.email)
        logger.info("User %s answered question %s", user.id, question_id)
        return document_to_answer(doc)

    async def list_answers(self, question_id: str) -> List[Answer]:
        await self.get_question(question_id)
        docs = await self._repo.list_answers(question_id)
        return [a for a in (document_to_answer(d) for d in docs) if a is not None]

    async def get_answer(self, question_id: str, answer_id: str) -> Answer:
        doc = await self._repo.get_answer(answer_id)
        answer = document_to_answer(doc) if doc else None
        if answer is None or answer.question_id != question_id:
            raise AnswerNotFoundError(f"Answer {answer_id} not found on question {question_id}")
        return answer

    async def update_answer(self, question_id: str, answer_id: str, data: AnswerCreate, user: SessionUser) -> Answer:
        answer = await self.get_answer(question_id, answer_id)
        if answer.author_id != user.id:
            raise NotOwnerError("You can only edit your own answers")
        body = data.body.strip()
        if not body:
            raise ValueError("Answer body cannot be empty")
        await self._repo.update_answer(answer_id, body)
        return await self.get_answer(question_id, answer_id)

    async def delete_answer(self, question_id: str, answer_id: str, user: SessionUser) -> None:
        answer = await self.get_answer(question_id, answer_id)
        if answer.author_id != user.id:
            raise NotOwnerError("You can only delete your own answers")
        await self._repo.delete_answer(question_id, answer_id, answer.accepted)

    async def accept_answer(self, question_id: str, answer_id: str, user: SessionUser) -> Answer:
        question = await self.get_question(question_id)
        if question.author_id != user.id:
            raise NotOwnerError("Only the question owner can accept answers")
        await self.get_answer(question_id, answer_id)
        await self._repo.accept_answer(question_id, answer_id)
        logger.info("Answer %s accepted on question %s", answer_id, question_id)
        return await self.get_answer(question_id, answer_id)

    async def vote(
        self,
        item_type: str,
        item_id: str,
        vote: Optional[str],
        user: SessionUser,
        question_id: Optional[str] = None,
    ) -> Union[Question, Answer]:
        """Cast, switch or take back (``vote=None``) the user's vote on an item."""
        if item_type == "answer":
            if not question_id:
                raise ValueError("question_id is required for answer votes")
            await self.get_answer(question_id, item_id)
        else:
            await self.get_question(item_id)

        current = await self._repo.get_vote(user.id, item_id)
        delta = vote_delta(current, vote)
        if delta:
            await self._repo.set_vote(user.id, item_id, item_type, vote)
            await self._repo.add_to_score(item_type, item_id, delta)
            logger.debug("User %s voted %s on %s %s (%+d)", user.id, vote, item_type, item_id, delta)

        if item_type == "answer":
            return await self.get_answer(question_id, item_id)
        return await self.get_question(item_id)

    async def get_user_votes(self, user_id: str, item_ids: List[str]) -> Dict[str, Optional[str]]:
        if not item_ids:
            return {}
        return await self._repo.get_votes(user_id, item_ids)
