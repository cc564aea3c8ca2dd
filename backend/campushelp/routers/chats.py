from fastapi import APIRouter, Depends, HTTPException

from campushelp.schemas.chat import Conversation, SendMessageRequest
from campushelp.schemas.user import SessionUser
from campushelp.services.chat_service import ChatService
from campushelp.services.errors import ChatFinalizedError, ChatNotFoundError, HelpRequestNotFoundError, PartialCompletionError
from campushelp.utils.dependencies import get_chat_service, get_current_user


router = APIRouter(prefix="/chats", tags=["chat"])


async def _participant_chat(chat_id: str, user: SessionUser, service: ChatService) -> Conversation:
    chat = await service.get_chat(chat_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found.")
    if user.id not in chat.participants:
        raise HTTPException(status_code=403, detail="Not a participant of this chat.")
    return chat


@router.get("")
async def list_chats(current_user: SessionUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    chats = await service.list_chats_for_user(current_user.id)
    return {"items": [c.model_dump(mode="json") for c in chats]}


@router.get("/by-request/{request_id}")
async def chat_by_request(request_id: str, current_user: SessionUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    chat = await service.get_chat_by_request_id(request_id)
    if chat is None or current_user.id not in chat.participants:
        raise HTTPException(status_code=404, detail="No chat for this request.")
    return chat.model_dump(mode="json")


@router.get("/{chat_id}")
async def get_chat(chat_id: str, current_user: SessionUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    chat = await _participant_chat(chat_id, current_user, service)
    return chat.model_dump(mode="json")


@router.get("/{chat_id}/messages")
async def list_messages(chat_id: str, current_user: SessionUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await _participant_chat(chat_id, current_user, service)
    messages = await service.list_messages(chat_id)
    return {"items": [m.model_dump(mode="json") for m in messages]}


@router.post("/{chat_id}/messages", status_code=201)
async def send_message(chat_id: str, payload: SendMessageRequest, current_user: SessionUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await _participant_chat(chat_id, current_user, service)
    try:
        message = await service.send_message(chat_id, payload.body, current_user.id, current_user.name, current_user.email)
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found.")
    except ChatFinalizedError:
        raise HTTPException(status_code=409, detail="Chat is already finalized.")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return message.model_dump(mode="json")


@router.post("/{chat_id}/complete")
async def complete(chat_id: str, current_user: SessionUser = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await _participant_chat(chat_id, current_user, service)
    try:
        chat = await service.complete_transaction(chat_id)
    except (ChatNotFoundError, HelpRequestNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PartialCompletionError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return chat.model_dump(mode="json")
