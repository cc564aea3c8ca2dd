from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class UserStats(BaseModel):

    requests_posted: int = 0
    help_given: int = 0
    questions_asked: int = 0


class ActivityItem(BaseModel):

    id: str
    type: Literal["request", "question", "help"]
    title: str
    timestamp: datetime
    status: Optional[str] = None
