from datetime import datetime
from typing import TypedDict


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    sender_name: str
    sender_email: str
    body: str
    created_at: datetime
