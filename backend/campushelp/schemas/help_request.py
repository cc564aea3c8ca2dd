from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from campushelp.models.help_request import HelpRequestCategory, HelpRequestStatus


class HelpRequestCreate(BaseModel):

    title: str = Field(min_length=1, max_length=200)
    category: HelpRequestCategory
    description: str = ""
    location: str = Field(min_length=1)
    is_return_needed: bool = False
    urgent: bool = False
    is_anonymous: bool = False


class HelpRequest(BaseModel):

    id: str
    title: str
    category: HelpRequestCategory
    description: str = ""
    location: str
    is_return_needed: bool = False
    urgent: bool = False
    is_anonymous: bool = False
    user_id: str
    user_name: str = "Anonymous"
    user_email: str = ""
    status: HelpRequestStatus = "active"
    accepted_by: Optional[str] = None
    accepted_by_name: Optional[str] = None
    accepted_by_email: Optional[str] = None
    chat_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class HelpRequestStatusUpdate(BaseModel):
    # accepted and finalized are reached through offer and complete only
    status: Literal["active", "fulfilled", "cancelled"]
