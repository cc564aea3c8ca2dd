from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from campushelp.models.question import QuestionStatus, VoteType


QuestionSort = Literal["recent", "popular", "unanswered"]


class QuestionCreate(BaseModel):

    title: str = Field(min_length=1, max_length=200)
    body: str = ""
    tags: List[str] = Field(default_factory=list)


class QuestionUpdate(BaseModel):

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    body: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[QuestionStatus] = None


class Question(BaseModel):

    id: str
    title: str
    body: str = ""
    tags: List[str] = Field(default_factory=list)
    author_id: str
    author_name: str = "Anonymous"
    author_email: str = ""
    votes: int = 0
    answer_count: int = 0
    has_accepted_answer: bool = False
    status: QuestionStatus = "open"
    created_at: datetime
    updated_at: datetime


class AnswerCreate(BaseModel):

    body: str = Field(min_length=1)


class Answer(BaseModel):

    id: str
    question_id: str
    body: str
    author_id: str
    author_name: str = "Anonymous"
    author_email: str = ""
    votes: int = 0
    accepted: bool = False
    created_at: datetime
    updated_at: datetime


class VoteRequest(BaseModel):
    """``vote`` of None takes back an earlier vote."""

    vote: Optional[VoteType] = None
