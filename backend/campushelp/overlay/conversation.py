import logging
from functools import partial
from typing import Callable, List, Optional, Tuple

from campushelp.overlay.controller import ChatOverlayController
from campushelp.schemas.chat import Conversation, Message


logger = logging.getLogger(__name__)


class ConversationPane:
    """Message thread of whatever chat the overlay has open.

    Follows the controller's ``active_chat_id``. Switching chats cancels the
    previous message subscription; late updates from it are ignored. Sent
    messages only show up once the subscription delivers them.
    """

    def __init__(
        self,
        controller: ChatOverlayController,
        chat_service,
        on_change: Optional[Callable[["ConversationPane"], None]] = None,
    ) -> None:
        self._controller = controller
        self._chat_service = chat_service
        self._on_change = on_change
        self._subscription = None
        self._generation = 0

        self.chat_id: Optional[str] = None
        self.chat: Optional[Conversation] = None
        self.messages: Tuple[Message, ...] = ()
        self.loading = False
        self.draft = ""
        self.sending = False
        self.completing = False

    async def sync(self) -> None:
        await self.follow(self._controller.state.active_chat_id)

    async def follow(self, chat_id: Optional[str]) -> None:
        if chat_id == self.chat_id:
            return
        self._generation += 1
        generation = self._generation
        await self._cancel_subscription()

        self.chat_id = chat_id
        self.chat = None
        self.messages = ()
        self.draft = ""
        self.loading = chat_id is not None
        self._notify()
        if chat_id is None:
            return

        try:
            chat = await self._chat_service.get_chat(chat_id)
        except Exception:
            logger.exception("Error loading chat %s", chat_id)
            chat = None
        if generation != self._generation:
            return
        self.chat = chat
        if chat is None:
            # unknown chat: nothing to listen to
            self.loading = False
            self._notify()
            return

        try:
            subscription = await self._chat_service.subscribe_to_messages(
                chat_id,
                partial(self._on_messages, generation),
                partial(self._on_error, generation),
            )
        except Exception:
            logger.exception("Could not subscribe to messages of chat %s", chat_id)
            self.loading = False
            self._notify()
            return
        if generation != self._generation:
            await subscription.cancel()
            return
        self._subscription = subscription

    async def send(self, text: Optional[str] = None) -> bool:
        """Send ``text`` (or the current draft).

        On failure the text goes back into the draft and the error is
        re-raised so the caller can tell the user and let them retry.
        """
        user = self._controller.user
        body = (self.draft if text is None else text).strip()
        if not body or user is None or self.chat_id is None or self.sending:
            return False
        self.draft = ""
        self.sending = True
        try:
            await self._chat_service.send_message(self.chat_id, body, user.id, user.name, user.email)
        except Exception:
            logger.warning("Error sending message to chat %s", self.chat_id, exc_info=True)
            self.draft = body
            raise
        finally:
            self.sending = False
        return True

    async def complete(self) -> bool:
        """Mark the help request done and close the overlay."""
        if self.chat is None or self.chat_id is None or self.completing:
            return False
        self.completing = True
        try:
            await self._chat_service.complete_transaction(self.chat_id)
        finally:
            self.completing = False
        self._controller.close_chat()
        await self.sync()
        return True

    async def close(self) -> None:
        self._generation += 1
        await self._cancel_subscription()

    def _on_messages(self, generation: int, messages: List[Message]) -> None:
        if generation != self._generation:
            logger.debug("Ignoring messages from a cancelled subscription")
            return
        self.messages = tuple(messages)
        self.loading = False
        self._notify()

    def _on_error(self, generation: int, exc: Exception) -> None:
        if generation != self._generation:
            return
        logger.warning("Message subscription error for chat %s, keeping %d messages: %s", self.chat_id, len(self.messages), exc)

    async def _cancel_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.cancel()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
