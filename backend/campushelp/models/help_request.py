from datetime import datetime
from typing import Literal, Optional, TypedDict


HelpRequestCategory = Literal["medical", "academic", "transport", "other"]

HelpRequestStatus = Literal["active", "accepted", "fulfilled", "cancelled", "finalized"]


class HelpRequestDocument(TypedDict, total=False):
    _id: str
    # what the requester needs
    title: str
    category: HelpRequestCategory
    description: str
    location: str
    is_return_needed: bool
    urgent: bool
    is_anonymous: bool
    user_id: str
    user_name: str
    user_email: str
    status: HelpRequestStatus
    accepted_by: Optional[str]
    accepted_by_name: Optional[str]
    accepted_by_email: Optional[str]
    chat_id: Optional[str]
    created_at: datetime
    updated_at: datetime
