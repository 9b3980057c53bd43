"""Cart Realtime Module - change feed over Redis Streams.

Cart writes append a `cart.changed` entry to the owner's stream; listeners
poll the stream and are called once per batch of new entries.

Note: upstash-redis REST API does NOT support blocking xread, so listeners
poll with xrange and asyncio.sleep() between reads.
"""

import asyncio
import contextlib
import json
import os
from typing import Any, Awaitable, Callable, Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from cartsync.db import RedisKeys
from cartsync.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

POLL_INTERVAL_SECS = float(os.environ.get("CART_FEED_POLL_SECS", "1.0"))

# Maximum number of entries to read per poll
MAX_EVENTS_PER_POLL = 50

# Streams are trimmed to roughly this many entries on write
STREAM_MAXLEN = 200

Unsubscribe = Callable[[], Awaitable[None]]


class CartChangeFeed:
    """Per-user stream of cart change events."""

    def __init__(self, redis: AsyncRedis, user_id: str, poll_interval: float = POLL_INTERVAL_SECS):
        self.redis = redis
        self.user_id = user_id
        self.stream_key = RedisKeys.cart_stream_key(user_id)
        self.poll_interval = poll_interval

    async def emit(self, change: str, product_id: Optional[str] = None) -> None:
        """Emit cart.changed event. Failures are logged, never raised."""
        payload = {
            "event": "cart.changed",
            "user_id": self.user_id,
            "product_id": product_id,
            "change": change,
        }
        try:
            await self.redis.xadd(
                self.stream_key, "*", {"data": json.dumps(payload)}, maxlen=STREAM_MAXLEN
            )
            logger.debug(f"Emitted cart.changed ({change}) for user {sanitize_id_for_logging(self.user_id)}")
        except Exception as e:
            logger.warning(f"Failed to emit cart.changed: {e}", exc_info=True)

    async def _latest_id(self) -> str:
        entries = await self.redis.xrevrange(self.stream_key, end="+", start="-", count=1)
        return str(entries[0][0]) if entries else "0"

    async def _read_after(self, last_id: str) -> list[Any]:
        start = "-" if last_id == "0" else f"({last_id}"
        return await self.redis.xrange(self.stream_key, start=start, end="+", count=MAX_EVENTS_PER_POLL)

    async def _poll(self, on_event: Callable[[], Awaitable[None]], last_id: str) -> None:
        while True:
            try:
                entries = await self._read_after(last_id)
                if entries:
                    last_id = str(entries[-1][0])
                    # One refresh per batch; the listener reads the full current state
                    await on_event()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in cart change feed {self.stream_key}: {e}", exc_info=True)

            await asyncio.sleep(self.poll_interval)

    async def listen(self, on_event: Callable[[], Awaitable[None]]) -> Unsubscribe:
        """Start polling in a background task; returns an async stop callable."""
        try:
            last_id = await self._latest_id()
        except Exception as e:
            logger.warning(f"Error reading stream head {self.stream_key}: {e}")
            last_id = "0"

        task = asyncio.create_task(self._poll(on_event, last_id), name=f"cart-feed:{self.user_id}")

        async def stop() -> None:
            if task.done():
                return
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.debug(f"Stopped cart feed for user {sanitize_id_for_logging(self.user_id)}")

        return stop
