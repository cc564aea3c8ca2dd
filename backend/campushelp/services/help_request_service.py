import logging
from typing import Any, Dict, List, Optional, Tuple

from campushelp.repositories.help_request_repository import HelpRequestRepository
from campushelp.schemas.chat import Conversation
from campushelp.schemas.help_request import HelpRequest, HelpRequestCreate
from campushelp.schemas.user import SessionUser
from campushelp.services.chat_service import ChatService
from campushelp.services.errors import HelpRequestNotFoundError, NotOwnerError, RequestAlreadyAcceptedError


logger = logging.getLogger(__name__)


def document_to_help_request(doc: Dict[str, Any]) -> Optional[HelpRequest]:
    request_id = str(doc.get("_id", ""))
    if not all(doc.get(k) for k in ("title", "category", "location", "user_id")):
        logger.warning("Missing required fields in help request document %s", request_id)
        return None
    data = {k: v for k, v in doc.items() if k != "_id" and v is not None}
    data.setdefault("user_name", "Anonymous")
    return HelpRequest(id=request_id, **data)


class HelpRequestService:

    def __init__(self, repo: HelpRequestRepository, chat_service: ChatService) -> None:
        self._repo = repo
        self._chat_service = chat_service

    async def create_request(self, data: HelpRequestCreate, user: SessionUser) -> HelpRequest:
        doc = await self._repo.create(data.model_dump(), user.id, user.name, user.email)
        logger.info("User %s posted help request %s", user.id, doc["_id"])
        return document_to_help_request(doc)

    async def get_request(self, request_id: str) -> HelpRequest:
        doc = await self._repo.get(request_id)
        request = document_to_help_request(doc) if doc else None
        if request is None:
            raise HelpRequestNotFoundError(f"Help request {request_id} not found")
        return request

    async def list_active(self, category: Optional[str] = None) -> List[HelpRequest]:
        docs = await self._repo.list_active(category)
        return [r for r in (document_to_help_request(d) for d in docs) if r is not None]

    async def offer_help(self, request_id: str, helper: SessionUser) -> Tuple[HelpRequest, Conversation]:
        """Accept someone's request and open the chat between the two of them."""
        request = await self.get_request(request_id)
        if request.user_id == helper.id:
            raise ValueError("Cannot accept your own request")
        if request.status in ("accepted", "finalized"):
            raise RequestAlreadyAcceptedError(f"Help request {request_id} was already accepted")

        chat = await self._chat_service.get_chat_by_request_id(request_id)
        created = chat is None
        if chat is None:
            chat = await self._chat_service.create_chat(
                request_id=request.id,
                request_title=request.title,
                requester_id=request.user_id,
                requester_name=request.user_name,
                requester_email=request.user_email,
                helper_id=helper.id,
                helper_name=helper.name,
                helper_email=helper.email,
            )

        accepted = await self._repo.accept(request_id, helper.id, helper.name, helper.email, chat.id)
        if not accepted:
            # another helper's accept won; the chat made here belongs to no request
            if created:
                await self._chat_service.discard_chat(chat)
            raise RequestAlreadyAcceptedError(f"Help request {request_id} was already accepted")
        logger.info("User %s accepted help request %s, chat %s", helper.id, request_id, chat.id)
        return await self.get_request(request_id), chat

    async def update_status(self, request_id: str, status: str, user: SessionUser) -> HelpRequest:
        """Owner moves an unaccepted request between active, fulfilled and cancelled."""
        request = await self._owned_request(request_id, user)
        if request.status in ("accepted", "finalized"):
            raise RequestAlreadyAcceptedError(f"Help request {request_id} is {request.status}")
        if not await self._repo.set_status(request_id, status):
            raise HelpRequestNotFoundError(f"Help request {request_id} not found")
        logger.info("Help request %s set to %s by %s", request_id, status, user.id)
        return await self.get_request(request_id)

    async def delete_request(self, request_id: str, user: SessionUser) -> None:
        request = await self._owned_request(request_id, user)
        if request.status == "accepted":
            # its chat is still running
            raise RequestAlreadyAcceptedError(f"Help request {request_id} has an open chat")
        if not await self._repo.delete(request_id):
            raise HelpRequestNotFoundError(f"Help request {request_id} not found")
        logger.info("Help request %s deleted by %s", request_id, user.id)

    async def _owned_request(self, request_id: str, user: SessionUser) -> HelpRequest:
        request = await self.get_request(request_id)
        if request.user_id != user.id:
            raise NotOwnerError("You can only change your own help requests")
        return request
