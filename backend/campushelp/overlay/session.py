import asyncio
import logging
from typing import Any, Dict

from campushelp.overlay.controller import ChatOverlayController, OverlayState
from campushelp.overlay.conversation import ConversationPane
from campushelp.overlay.presentation import badge_label, thread_list
from campushelp.schemas.user import SessionUser


logger = logging.getLogger(__name__)


class OverlaySession:
    """Glue between one overlay socket and its controller.

    Client frames become controller actions; state and message updates are
    queued on ``outbox`` for the socket writer.
    """

    def __init__(self, chat_service) -> None:
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.controller = ChatOverlayController(chat_service)
        self.pane = ConversationPane(self.controller, chat_service, on_change=self._push_pane)
        self._remove_listener = self.controller.add_listener(self._push_state)

    async def start(self, user: SessionUser) -> None:
        self._push_state(self.controller.state)
        await self.controller.start(user)

    async def close(self) -> None:
        self._remove_listener()
        await self.pane.close()
        await self.controller.stop()

    async def dispatch(self, frame: Dict[str, Any]) -> None:
        kind = frame.get("type")
        if kind == "open_chat":
            self.controller.open_chat(frame.get("chat_id") or "")
        elif kind == "open_chat_by_request":
            await self.controller.open_chat_by_request_id(frame.get("request_id") or "")
        elif kind == "close_chat":
            self.controller.close_chat()
        elif kind == "toggle_minimize":
            self.controller.toggle_minimize()
        elif kind == "go_back_to_threads":
            self.controller.go_back_to_threads()
        elif kind == "send_message":
            try:
                await self.pane.send(frame.get("body"))
            except Exception as exc:
                self.outbox.put_nowait({"type": "send_failed", "draft": self.pane.draft, "error": str(exc)})
        elif kind == "complete":
            try:
                await self.pane.complete()
            except Exception as exc:
                logger.error("Error completing chat %s: %s", self.pane.chat_id, exc)
                self.outbox.put_nowait({"type": "error", "error": "Failed to complete transaction. Please try again."})
        else:
            self.outbox.put_nowait({"type": "error", "error": f"Unknown frame type: {kind}"})
        await self.pane.sync()

    def _push_state(self, state: OverlayState) -> None:
        user = self.controller.user
        # chats stays unfiltered; threads is what the list shows
        self.outbox.put_nowait({
            "type": "state",
            **state.snapshot().model_dump(mode="json"),
            "threads": thread_list(state.chats, user.id if user else None),
            "badge": badge_label(state.unread_count),
        })

    def _push_pane(self, pane: ConversationPane) -> None:
        self.outbox.put_nowait({
            "type": "messages",
            "chat_id": pane.chat_id,
            "chat": pane.chat.model_dump(mode="json") if pane.chat else None,
            "loading": pane.loading,
            "messages": [m.model_dump(mode="json") for m in pane.messages],
        })
