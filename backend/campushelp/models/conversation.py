from datetime import datetime
from typing import Dict, List, Literal, Optional, TypedDict


ChatStatus = Literal["active", "finalized"]


class ChatDocument(TypedDict, total=False):
    _id: str
    request_id: str
    request_title: str
    requester_id: str
    requester_name: str
    requester_email: str
    helper_id: str
    helper_name: str
    helper_email: str
    # always [requester_id, helper_id]
    participants: List[str]
    participant_names: Dict[str, str]
    status: ChatStatus
    last_message: Optional[str]
    last_message_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
