from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from campushelp.models.conversation import ChatStatus


ActiveView = Literal["threads", "conversation"]


class Conversation(BaseModel):

    id: str
    request_id: str
    request_title: str
    requester_id: str
    requester_name: str = "Anonymous"
    requester_email: str = ""
    helper_id: str
    helper_name: str = "Anonymous"
    helper_email: str = ""
    participants: List[str]
    participant_names: Dict[str, str] = Field(default_factory=dict)
    status: ChatStatus = "active"
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class Message(BaseModel):

    id: str
    conversation_id: str
    sender_id: str
    sender_name: str = "Anonymous"
    sender_email: str = ""
    body: str
    created_at: datetime


class SendMessageRequest(BaseModel):

    body: str


class OverlaySnapshot(BaseModel):

    is_open: bool
    is_minimized: bool
    active_view: ActiveView
    active_chat_id: Optional[str] = None
    chats: List[Conversation] = Field(default_factory=list)
    unread_count: int = 0
