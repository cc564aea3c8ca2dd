"""Overlay state store for the floating chat widget.

One controller lives for one signed-in session. It owns what the overlay
shows (visibility, thread list or conversation, which conversation) and a
live mirror of the user's chats, independent of whatever screen is mounted.

The state is an immutable ``OverlayState``; the action methods below are the
only way to change it, and every change is pushed to the registered
listeners. Action methods never raise: impossible transitions are logged and
ignored.

Visibility and view are orthogonal::

    MINIMIZED --toggle_minimize--> EXPANDED(threads)
    EXPANDED  --toggle_minimize--> MINIMIZED
    EXPANDED(threads) --open_chat(id)--> EXPANDED(conversation, id)
    EXPANDED(conversation) --go_back_to_threads--> EXPANDED(threads)
    any --open_chat(id)--> EXPANDED(conversation, id)
    any --close_chat--> MINIMIZED, closed, no active chat
"""

import logging
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable, Iterable, List, Optional, Tuple

from campushelp.schemas.chat import ActiveView, Conversation, OverlaySnapshot
from campushelp.schemas.user import SessionUser


logger = logging.getLogger(__name__)

THREADS: ActiveView = "threads"
CONVERSATION: ActiveView = "conversation"

Listener = Callable[["OverlayState"], None]


def count_unread(chats: Iterable[Conversation]) -> int:
    """Badge count: one per chat that is still open.

    Counts conversations, not unseen messages; there is no read-receipt data
    to do better with.
    """
    return sum(1 for chat in chats if chat.status != "finalized")


@dataclass(frozen=True)
class OverlayState:

    is_open: bool = False
    is_minimized: bool = True
    active_view: ActiveView = THREADS
    active_chat_id: Optional[str] = None
    chats: Tuple[Conversation, ...] = ()

    @property
    def unread_count(self) -> int:
        return count_unread(self.chats)

    def snapshot(self) -> OverlaySnapshot:
        return OverlaySnapshot(
            is_open=self.is_open,
            is_minimized=self.is_minimized,
            active_view=self.active_view,
            active_chat_id=self.active_chat_id,
            chats=list(self.chats),
            unread_count=self.unread_count,
        )


INITIAL_STATE = OverlayState()


class ChatOverlayController:

    def __init__(self, chat_service) -> None:
        self._chat_service = chat_service
        self._state = INITIAL_STATE
        self._listeners: List[Listener] = []
        self._user: Optional[SessionUser] = None
        self._subscription = None
        # bumped on every start/stop; callbacks from older subscriptions are dropped
        self._generation = 0

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def user(self) -> Optional[SessionUser]:
        return self._user

    @property
    def is_active(self) -> bool:
        """False while nobody is signed in; the overlay is not shown then."""
        return self._user is not None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #
    async def start(self, user: SessionUser) -> None:
        """Sign-in: mirror the user's chats until ``stop`` is called."""
        self._generation += 1
        generation = self._generation
        await self._cancel_subscription()
        self._user = user
        self._commit(INITIAL_STATE)
        logger.info("Setting up chat subscription for user %s", user.id)
        try:
            subscription = await self._chat_service.subscribe_to_user_chats(
                user.id,
                partial(self._on_chats, generation),
                partial(self._on_chats_error, generation),
            )
        except Exception:
            logger.exception("Could not subscribe to chats of user %s", user.id)
            return
        if generation != self._generation:
            # stopped or restarted while subscribing
            await subscription.cancel()
            return
        self._subscription = subscription

    async def stop(self) -> None:
        """Sign-out or unmount: drop the subscription and reset the overlay."""
        self._generation += 1
        if self._user is not None:
            logger.info("Cleaning up chat subscription for user %s", self._user.id)
        self._user = None
        self._commit(INITIAL_STATE)
        await self._cancel_subscription()

    async def _cancel_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            await subscription.cancel()
        except Exception:
            logger.warning("Failed to cancel chat subscription", exc_info=True)

    def _on_chats(self, generation: int, chats: List[Conversation]) -> None:
        if generation != self._generation:
            logger.debug("Ignoring chat update from a cancelled subscription")
            return
        logger.debug("Received chat updates, total count: %d", len(chats))
        self._set(chats=tuple(chats))

    def _on_chats_error(self, generation: int, exc: Exception) -> None:
        if generation != self._generation:
            return
        # keep showing the last good list
        logger.warning("Chat subscription error, keeping %d cached chats: %s", len(self._state.chats), exc)

    # ------------------------------------------------------------------ #
    # Actions
    # ------------------------------------------------------------------ #
    def open_chat(self, chat_id: str) -> None:
        if not chat_id or not isinstance(chat_id, str):
            logger.warning("open_chat called without a usable chat id: %r", chat_id)
            return
        logger.debug("Opening chat %s", chat_id)
        self._set(active_chat_id=chat_id, active_view=CONVERSATION, is_minimized=False, is_open=True)

    async def open_chat_by_request_id(self, request_id: str) -> None:
        if not request_id or not isinstance(request_id, str):
            logger.warning("open_chat_by_request_id called without a usable request id: %r", request_id)
            return
        chat = next((c for c in self._state.chats if c.request_id == request_id), None)
        if chat is None:
            generation = self._generation
            try:
                chat = await self._chat_service.get_chat_by_request_id(request_id)
            except Exception:
                logger.exception("Looking up chat for request %s failed", request_id)
                return
            if generation != self._generation:
                return
        if chat is None:
            logger.warning("No chat found for request %s", request_id)
            return
        self.open_chat(chat.id)

    def close_chat(self) -> None:
        logger.debug("Closing chat overlay")
        self._set(is_open=False, is_minimized=True, active_view=THREADS, active_chat_id=None)

    def toggle_minimize(self) -> None:
        if self._state.is_minimized:
            # expanding always lands on the thread list
            self._set(is_minimized=False, is_open=True, active_view=THREADS, active_chat_id=None)
        else:
            self._set(is_minimized=True)

    def go_back_to_threads(self) -> None:
        if self._state.active_view != CONVERSATION:
            return
        self._set(active_view=THREADS, active_chat_id=None)

    # ------------------------------------------------------------------ #
    def _set(self, **changes) -> None:
        self._commit(replace(self._state, **changes))

    def _commit(self, new_state: OverlayState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Overlay listener failed")
