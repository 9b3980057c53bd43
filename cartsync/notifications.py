"""Notification channel - success/error toasts emitted by the cart."""
import json
from typing import Optional, Protocol

from upstash_redis.asyncio import Redis as AsyncRedis

from cartsync.db import RedisKeys
from cartsync.logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    """Receives human-readable messages for the user."""

    async def success(self, message: str) -> None: ...

    async def error(self, message: str) -> None: ...


class LogNotifier:
    """Writes toasts to the log; default when no UI channel is wired."""

    async def success(self, message: str) -> None:
        logger.info(f"[toast] {message}")

    async def error(self, message: str) -> None:
        logger.warning(f"[toast] {message}")


class StreamNotifier:
    """Emits cart.toast events to a Redis Stream for the UI to render."""

    def __init__(self, redis: AsyncRedis, audience: str):
        self.redis = redis
        self.stream_key = RedisKeys.toast_stream_key(audience)

    async def _emit(self, level: str, message: str) -> None:
        payload = {"event": "cart.toast", "level": level, "message": message}
        try:
            await self.redis.xadd(self.stream_key, "*", {"data": json.dumps(payload)})
        except Exception as e:
            logger.warning(f"Failed to emit cart.toast: {e}", exc_info=True)

    async def success(self, message: str) -> None:
        await self._emit("success", message)

    async def error(self, message: str) -> None:
        await self._emit("error", message)


def get_notifier(redis: Optional[AsyncRedis] = None, audience: Optional[str] = None) -> Notifier:
    """Stream toasts when a Redis client and audience are given, else log them."""
    if redis is not None and audience:
        return StreamNotifier(redis, audience)
    return LogNotifier()
