import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

import redis.asyncio as redis

from campushelp.config import get_settings


logger = logging.getLogger(__name__)

OnMessage = Callable[[str], Awaitable[None]]


def user_chats_channel(user_id: str) -> str:
    return f"chats:{user_id}"


def chat_messages_channel(chat_id: str) -> str:
    return f"messages:{chat_id}"


class LocalBus:
    """In-process fan-out. Every subscriber gets its own queue."""

    enabled = False

    def __init__(self) -> None:
        self._queues: Dict[str, Set[asyncio.Queue]] = {}

    async def publish(self, channel: str, message: str) -> None:
        for queue in list(self._queues.get(channel, ())):
            queue.put_nowait(message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        # Registered before returning so nothing published after this call is lost
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.setdefault(channel, set()).add(queue)
        bus = self

        class _Sub:
            async def run(self_inner):
                while True:
                    data = await queue.get()
                    if data is None:
                        return
                    try:
                        await on_message(data)
                    except Exception:
                        logger.exception("Subscriber on %s failed", channel)

            async def cancel(self_inner):
                bus._discard(channel, queue)
                queue.put_nowait(None)

        return _Sub()

    def subscriber_count(self, channel: str) -> int:
        return len(self._queues.get(channel, ()))

    def _discard(self, channel: str, queue: asyncio.Queue) -> None:
        queues = self._queues.get(channel)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._queues[channel]

    async def close(self) -> None:
        return


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                        if msg and msg.get("type") == "message":
                            data = msg.get("data")
                            if isinstance(data, bytes):
                                data = data.decode("utf-8")
                            await on_message(data)
                    except Exception:
                        logger.exception("Redis subscription on %s failed, retrying", channel)
                        await asyncio.sleep(0.5)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except Exception:
                    logger.warning("Could not unsubscribe from %s", channel, exc_info=True)

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus: Optional[object] = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url = get_settings().redis_url
    if url:
        logger.info("Using Redis realtime bus")
        _bus = RedisBus(url)
    else:
        logger.info("REDIS_URL not set, using in-process realtime bus")
        _bus = LocalBus()
    return _bus


async def bus_dependency():
    return await get_bus()


async def close_bus() -> None:
    global _bus
    if _bus is None:
        return
    await _bus.close()
    _bus = None
