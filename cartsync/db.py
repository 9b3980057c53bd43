"""
Database Module - Supabase and Redis Clients

Provides singleton instances of:
- Async Supabase client for cart line items and orders
- Async Upstash Redis client for the cart change feed and toasts
- Sync Upstash Redis client usable as a local cart blob store
"""

import os
from typing import Optional

from supabase._async.client import AsyncClient, create_client as acreate_client
from upstash_redis import Redis
from upstash_redis.asyncio import Redis as AsyncRedis

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_async_supabase_client: Optional[AsyncClient] = None
_redis_client: Optional[AsyncRedis] = None
_sync_redis_client: Optional[Redis] = None


async def get_supabase() -> AsyncClient:
    """
    Get async Supabase client (singleton).
    """
    global _async_supabase_client

    if _async_supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _async_supabase_client = await acreate_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _async_supabase_client


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Used for:
    - Cart change feed (streams)
    - Toast events
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


def get_redis_sync() -> Redis:
    """
    Get sync Upstash Redis client (singleton).
    Its get/set/delete make it a drop-in blob store for LocalCartStore.
    """
    global _sync_redis_client

    if _sync_redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _sync_redis_client = Redis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _sync_redis_client


class Tables:
    """Supabase table names."""

    CART_ITEMS = "cart_items"
    ORDERS = "orders"


class RedisKeys:
    """Redis key prefixes for different data types."""

    # Local snapshot key (single key per device)
    LOCAL_CART = "cart"
    LOCAL_CART_DEVICE = "cart:device:"  # cart:device:{device_id}

    # Streams
    CART_STREAM = "stream:realtime:cart:"  # stream:realtime:cart:{user_id}
    TOAST_STREAM = "stream:realtime:toasts:"  # stream:realtime:toasts:{audience}

    @staticmethod
    def local_cart_key(device_id: str | None = None) -> str:
        if not device_id:
            return RedisKeys.LOCAL_CART
        return f"{RedisKeys.LOCAL_CART_DEVICE}{device_id}"

    @staticmethod
    def cart_stream_key(user_id: str) -> str:
        return f"{RedisKeys.CART_STREAM}{user_id}"

    @staticmethod
    def toast_stream_key(audience: str) -> str:
        return f"{RedisKeys.TOAST_STREAM}{audience}"
