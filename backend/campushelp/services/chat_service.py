import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from campushelp.config import get_settings
from campushelp.repositories.conversation_repository import ConversationRepository
from campushelp.repositories.help_request_repository import HelpRequestRepository
from campushelp.repositories.message_repository import MessageRepository
from campushelp.schemas.chat import Conversation, Message
from campushelp.services.errors import ChatFinalizedError, ChatNotFoundError, HelpRequestNotFoundError, PartialCompletionError
from campushelp.utils.live_query import KeyedMerge, LiveGroup, LiveQuery, OnError
from campushelp.utils.realtime_bus import chat_messages_channel, user_chats_channel


logger = logging.getLogger(__name__)


def document_to_conversation(doc: Dict[str, Any]) -> Optional[Conversation]:
    chat_id = str(doc.get("_id", ""))
    if not all(doc.get(k) for k in ("request_id", "requester_id", "helper_id", "request_title")):
        logger.warning("Missing required fields in chat document %s", chat_id)
        return None
    requester_id = doc["requester_id"]
    helper_id = doc["helper_id"]
    requester_name = doc.get("requester_name") or "Anonymous"
    helper_name = doc.get("helper_name") or "Anonymous"
    now = datetime.now(timezone.utc)
    return Conversation(
        id=chat_id,
        request_id=doc["request_id"],
        request_title=doc["request_title"],
        requester_id=requester_id,
        requester_name=requester_name,
        requester_email=doc.get("requester_email") or "",
        helper_id=helper_id,
        helper_name=helper_name,
        helper_email=doc.get("helper_email") or "",
        participants=doc.get("participants") or [requester_id, helper_id],
        participant_names=doc.get("participant_names") or {requester_id: requester_name, helper_id: helper_name},
        status=doc.get("status") or "active",
        last_message=doc.get("last_message"),
        last_message_at=doc.get("last_message_at"),
        created_at=doc.get("created_at") or now,
        updated_at=doc.get("updated_at") or now,
    )


def document_to_message(doc: Dict[str, Any]) -> Optional[Message]:
    message_id = str(doc.get("_id", ""))
    if not all(doc.get(k) for k in ("conversation_id", "sender_id", "body")):
        logger.warning("Missing required fields in message document %s", message_id)
        return None
    return Message(
        id=message_id,
        conversation_id=doc["conversation_id"],
        sender_id=doc["sender_id"],
        sender_name=doc.get("sender_name") or "Anonymous",
        sender_email=doc.get("sender_email") or "",
        body=doc["body"],
        created_at=doc.get("created_at") or datetime.now(timezone.utc),
    )


def _conversations(docs: List[Dict[str, Any]]) -> List[Conversation]:
    return [c for c in (document_to_conversation(d) for d in docs) if c is not None]


class ChatService:

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        help_request_repo: HelpRequestRepository,
        bus,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._help_request_repo = help_request_repo
        self._bus = bus

    async def create_chat(
        self,
        request_id: str,
        request_title: str,
        requester_id: str,
        requester_name: str,
        requester_email: str,
        helper_id: str,
        helper_name: str,
        helper_email: str,
    ) -> Conversation:
        doc = await self._conversation_repo.create(
            request_id=request_id,
            request_title=request_title,
            requester_id=requester_id,
            requester_name=requester_name,
            requester_email=requester_email,
            helper_id=helper_id,
            helper_name=helper_name,
            helper_email=helper_email,
        )
        chat = document_to_conversation(doc)
        if chat is None:
            raise ValueError("Chat needs a request, a title and two participants")
        logger.info("Created chat %s for request %s", chat.id, request_id)
        await self._publish_chat_changed(chat)
        return chat

    async def get_chat(self, chat_id: str) -> Optional[Conversation]:
        doc = await self._conversation_repo.get(chat_id)
        return document_to_conversation(doc) if doc else None

    async def get_chat_by_request_id(self, request_id: str) -> Optional[Conversation]:
        doc = await self._conversation_repo.get_by_request_id(request_id)
        return document_to_conversation(doc) if doc else None

    async def list_chats_for_user(self, user_id: str) -> List[Conversation]:
        limit = get_settings().chat_list_limit
        merged: Dict[str, Conversation] = {}
        for chat in _conversations(await self._conversation_repo.list_for_requester(user_id, limit=limit)):
            merged[chat.id] = chat
        for chat in _conversations(await self._conversation_repo.list_for_helper(user_id, limit=limit)):
            merged[chat.id] = chat
        return sorted(merged.values(), key=lambda c: c.updated_at, reverse=True)

    async def list_messages(self, chat_id: str) -> List[Message]:
        docs = await self._message_repo.list_for_conversation(chat_id, limit=get_settings().message_history_limit)
        return [m for m in (document_to_message(d) for d in docs) if m is not None]

    async def send_message(
        self,
        chat_id: str,
        body: str,
        sender_id: str,
        sender_name: str,
        sender_email: str,
    ) -> Message:
        if not body or not body.strip():
            raise ValueError("Message body cannot be empty")
        chat = await self.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(f"Chat {chat_id} not found")
        if chat.status == "finalized":
            raise ChatFinalizedError(f"Chat {chat_id} is finalized")
        text = body.strip()
        saved = await self._message_repo.save_message(
            conversation_id=chat_id,
            sender_id=sender_id,
            sender_name=sender_name,
            sender_email=sender_email,
            body=text,
        )
        preview = text[: get_settings().message_preview_length]
        await self._conversation_repo.update_on_new_message(chat_id, preview, saved["created_at"])
        logger.debug("Message %s sent to chat %s", saved["_id"], chat_id)
        await self._bus.publish(chat_messages_channel(chat_id), json.dumps({"type": "message", "message_id": saved["_id"]}))
        await self._publish_chat_changed(chat)
        return document_to_message(saved)

    async def finalize_chat(self, chat_id: str) -> Conversation:
        chat = await self.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(f"Chat {chat_id} not found")
        if chat.status == "finalized":
            return chat
        await self._conversation_repo.finalize(chat_id)
        logger.info("Chat %s finalized", chat_id)
        finalized = chat.model_copy(update={"status": "finalized"})
        await self._publish_chat_changed(finalized)
        return finalized

    async def discard_chat(self, chat: Conversation) -> None:
        """Remove a chat that never became the chat of its request."""
        await self._conversation_repo.delete(chat.id)
        logger.info("Discarded chat %s for request %s", chat.id, chat.request_id)
        await self._publish_chat_changed(chat)

    async def finalize_request(self, request_id: str) -> None:
        found = await self._help_request_repo.set_status(request_id, "finalized")
        if not found:
            raise HelpRequestNotFoundError(f"Help request {request_id} not found")
        logger.info("Help request %s finalized", request_id)

    async def complete_transaction(self, chat_id: str) -> Conversation:
        # Two separate writes, request first. No transaction spans them.
        chat = await self.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(f"Chat {chat_id} not found")
        await self.finalize_request(chat.request_id)
        try:
            return await self.finalize_chat(chat_id)
        except Exception as exc:
            logger.error("Request %s finalized but chat %s was not: %s", chat.request_id, chat_id, exc)
            raise PartialCompletionError(chat_id, chat.request_id, exc) from exc

    async def subscribe_to_user_chats(
        self,
        user_id: str,
        on_update: Callable[[List[Conversation]], None],
        on_error: Optional[OnError] = None,
    ) -> LiveGroup:
        """Live list of every chat the user is in, most recently updated first.

        Requester-side and helper-side chats are two separate queries merged by
        chat id.
        """
        limit = get_settings().chat_list_limit
        merged: KeyedMerge[Conversation] = KeyedMerge(
            on_update, key=lambda c: c.id, sort_key=lambda c: c.updated_at, reverse=True
        )
        channel = user_chats_channel(user_id)

        async def _as_requester() -> List[Conversation]:
            return _conversations(await self._conversation_repo.list_for_requester(user_id, limit=limit))

        async def _as_helper() -> List[Conversation]:
            return _conversations(await self._conversation_repo.list_for_helper(user_id, limit=limit))

        def _failed(name: str) -> OnError:
            def _on_error(exc: Exception) -> None:
                if on_error is not None:
                    on_error(exc)
                merged.failed(name)
            return _on_error

        group = LiveGroup([
            LiveQuery(self._bus, channel, _as_requester, merged.source("requester"), _failed("requester")),
            LiveQuery(self._bus, channel, _as_helper, merged.source("helper"), _failed("helper")),
        ])
        await group.start()
        logger.debug("Subscribed to chats of user %s", user_id)
        return group

    async def subscribe_to_messages(
        self,
        chat_id: str,
        on_update: Callable[[List[Message]], None],
        on_error: Optional[OnError] = None,
    ) -> LiveQuery:
        query: LiveQuery[List[Message]] = LiveQuery(
            self._bus,
            chat_messages_channel(chat_id),
            lambda: self.list_messages(chat_id),
            on_update,
            on_error,
        )
        await query.start()
        logger.debug("Subscribed to messages of chat %s", chat_id)
        return query

    async def _publish_chat_changed(self, chat: Conversation) -> None:
        payload = json.dumps({"type": "chat", "chat_id": chat.id})
        for participant in set(chat.participants):
            await self._bus.publish(user_chats_channel(participant), payload)
