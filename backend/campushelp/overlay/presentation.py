from typing import Any, Dict, Iterable, List, Optional

from campushelp.schemas.chat import Conversation


MAX_BADGE = 99


def visible_threads(chats: Iterable[Conversation]) -> List[Conversation]:
    """Chats shown in the thread list. Finalized ones are hidden here, not in the controller."""
    return [chat for chat in chats if chat.status != "finalized"]


def badge_label(unread_count: int) -> Optional[str]:
    if unread_count <= 0:
        return None
    if unread_count > MAX_BADGE:
        return f"{MAX_BADGE}+"
    return str(unread_count)


def counterpart_name(chat: Conversation, user_id: str) -> str:
    if user_id == chat.requester_id:
        return chat.helper_name
    return chat.requester_name


def thread_list(chats: Iterable[Conversation], user_id: Optional[str]) -> List[Dict[str, Any]]:
    """Rows for the thread list, each naming the other participant."""
    return [
        {**chat.model_dump(mode="json"), "counterpart": counterpart_name(chat, user_id or "")}
        for chat in visible_threads(chats)
    ]
