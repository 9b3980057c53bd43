"""Base repository with shared Supabase client."""
import asyncio
import os
from typing import Any, Optional

from supabase._async.client import AsyncClient

from cartsync.errors import ERROR_STORE_TIMEOUT, CartError

# 0 or unset disables the timeout
STORE_TIMEOUT_SECS = float(os.environ.get("CART_STORE_TIMEOUT_SECS", "0") or 0)


class BaseRepository:
    """Base class for all repositories.

    Every query goes through `_execute` so that transport failures surface as
    cart store errors and, when configured, hangs become timeouts.
    """

    def __init__(self, client: AsyncClient, timeout: Optional[float] = None) -> None:
        self.client = client
        self.timeout = STORE_TIMEOUT_SECS if timeout is None else timeout

    async def _execute(self, query: Any, error_cls: type[CartError], action: str) -> Any:
        try:
            if self.timeout:
                return await asyncio.wait_for(query.execute(), self.timeout)
            return await query.execute()
        except asyncio.TimeoutError as e:
            raise error_cls(f"{ERROR_STORE_TIMEOUT}: {action}") from e
        except Exception as e:
            raise error_cls(f"{action} failed: {e}") from e
