from datetime import datetime
from typing import List, Literal, Optional, TypedDict


QuestionStatus = Literal["open", "closed"]

VoteType = Literal["upvote", "downvote"]

VoteItemType = Literal["question", "answer"]


class QuestionDocument(TypedDict, total=False):
    _id: str
    title: str
    body: str
    tags: List[str]
    author_id: str
    author_name: str
    author_email: str
    # net score, upvotes minus downvotes
    votes: int
    answer_count: int
    has_accepted_answer: bool
    status: QuestionStatus
    created_at: datetime
    updated_at: datetime


class AnswerDocument(TypedDict, total=False):
    _id: str
    question_id: str
    body: str
    author_id: str
    author_name: str
    author_email: str
    votes: int
    accepted: bool
    created_at: datetime
    updated_at: datetime


class VoteDocument(TypedDict, total=False):
    # one per user and item
    user_id: str
    item_id: str
    item_type: VoteItemType
    vote_type: Optional[VoteType]
    created_at: datetime
    updated_at: datetime
