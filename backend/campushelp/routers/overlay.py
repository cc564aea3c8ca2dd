import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from campushelp.overlay.session import OverlaySession
from campushelp.services.chat_service import ChatService
from campushelp.utils.dependencies import AuthError, authenticate, get_chat_service


router = APIRouter(prefix="/overlay", tags=["chat"])
logger = logging.getLogger(__name__)


async def _drain(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        frame = await outbox.get()
        await websocket.send_text(json.dumps(frame))


@router.websocket("/ws")
async def overlay_socket(websocket: WebSocket, service: ChatService = Depends(get_chat_service)):
    # identity comes from the auth layer: ?user_id=...&email=...&name=...
    params = websocket.query_params
    try:
        user = authenticate(params.get("user_id"), params.get("email"), params.get("name"))
    except AuthError as exc:
        await websocket.close(code=exc.close_code)
        return

    await websocket.accept()
    session = OverlaySession(service)
    writer = asyncio.create_task(_drain(websocket, session.outbox))
    await session.start(user)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
            except ValueError:
                frame = None
            if not isinstance(frame, dict):
                session.outbox.put_nowait({"type": "error", "error": "Invalid frame"})
                continue
            await session.dispatch(frame)
    except WebSocketDisconnect:
        logger.debug("Overlay socket closed for user %s", user.id)
    finally:
        await session.close()
        writer.cancel()
