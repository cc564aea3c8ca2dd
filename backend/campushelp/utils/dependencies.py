from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from pydantic import ValidationError

from campushelp.config import get_settings
from campushelp.database.connection import mongo_db_dependency
from campushelp.repositories.conversation_repository import ConversationRepository
from campushelp.repositories.help_request_repository import HelpRequestRepository
from campushelp.repositories.message_repository import MessageRepository
from campushelp.repositories.question_repository import QuestionRepository
from campushelp.schemas.user import SessionUser
from campushelp.services.chat_service import ChatService
from campushelp.services.help_request_service import HelpRequestService
from campushelp.services.profile_service import ProfileService
from campushelp.services.question_service import QuestionService
from campushelp.utils.realtime_bus import bus_dependency


class AuthError(Exception):

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail

    @property
    def close_code(self) -> int:
        # websocket close codes mirror the HTTP status
        return 4000 + self.status_code


def authenticate(user_id: Optional[str], email: Optional[str], name: Optional[str] = None) -> SessionUser:
    """Build the session user from identity the auth layer already verified."""
    if not user_id or not email:
        raise AuthError(status.HTTP_401_UNAUTHORIZED, "Not authenticated")
    try:
        user = SessionUser(id=user_id, email=email, display_name=name or None)
    except ValidationError:
        raise AuthError(status.HTTP_401_UNAUTHORIZED, "Invalid identity")
    domain = get_settings().allowed_email_domain
    if domain and not user.email.lower().endswith("@" + domain.lower()):
        raise AuthError(status.HTTP_403_FORBIDDEN, f"Only @{domain} email addresses are allowed")
    return user


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> SessionUser:
    try:
        return authenticate(x_user_id, x_user_email, x_user_name)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)


def get_chat_service(db = Depends(mongo_db_dependency), bus = Depends(bus_dependency)) -> ChatService:
    return ChatService(ConversationRepository(db), MessageRepository(db), HelpRequestRepository(db), bus)


def get_help_request_service(db = Depends(mongo_db_dependency), chat_service: ChatService = Depends(get_chat_service)) -> HelpRequestService:
    return HelpRequestService(HelpRequestRepository(db), chat_service)


def get_question_service(db = Depends(mongo_db_dependency)) -> QuestionService:
    return QuestionService(QuestionRepository(db))


def get_profile_service(db = Depends(mongo_db_dependency)) -> ProfileService:
    return ProfileService(HelpRequestRepository(db), QuestionRepository(db))
