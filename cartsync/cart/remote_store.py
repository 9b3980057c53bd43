"""Remote cart storage in Supabase, scoped to one user."""
from typing import Callable, Optional

from supabase._async.client import AsyncClient

from cartsync.db import Tables
from cartsync.errors import SerializationError, StoreReadError, StoreWriteError
from cartsync.logging import get_logger, sanitize_id_for_logging
from cartsync.realtime import CartChangeFeed, Unsubscribe
from cartsync.repositories.base import BaseRepository
from .models import Cart, CartLineItem

logger = get_logger(__name__)

OnChange = Callable[[list[CartLineItem]], None]


class RemoteCartStore(BaseRepository):
    """
    Cart line items of one user in the `cart_items` table.

    Rows are keyed by (user_id, product_id). Every successful write emits a
    change event on the user's feed; subscribers receive the full item list
    after each batch of changes.
    """

    def __init__(
        self,
        client: AsyncClient,
        user_id: str,
        feed: CartChangeFeed,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(client, timeout)
        self.user_id = user_id
        self.feed = feed

    def _table(self):
        return self.client.table(Tables.CART_ITEMS)

    def _parse_rows(self, rows: list[dict]) -> list[CartLineItem]:
        items = []
        for row in rows:
            try:
                items.append(CartLineItem.from_document(row))
            except SerializationError as e:
                logger.warning(
                    f"Skipping malformed cart row for user {sanitize_id_for_logging(self.user_id)}: {e}"
                )
        return list(Cart.of(items).items)

    async def list_items(self) -> list[CartLineItem]:
        result = await self._execute(
            self._table().select("*").eq("user_id", self.user_id),
            StoreReadError,
            "list cart items",
        )
        return self._parse_rows(result.data or [])

    async def get_item(self, product_id: str) -> Optional[CartLineItem]:
        result = await self._execute(
            self._table().select("*").eq("user_id", self.user_id).eq("product_id", product_id).limit(1),
            StoreReadError,
            "get cart item",
        )
        items = self._parse_rows(result.data or [])
        return items[0] if items else None

    async def upsert_item(self, item: CartLineItem) -> None:
        """Create or overwrite the line item keyed by item.product_id."""
        await self._execute(
            self._table().upsert(item.to_document(self.user_id), on_conflict="user_id,product_id"),
            StoreWriteError,
            "upsert cart item",
        )
        await self.feed.emit("upsert", item.product_id)

    async def update_quantity(self, product_id: str, quantity: int) -> bool:
        """Overwrite the quantity of an existing line item. Returns False if absent."""
        result = await self._execute(
            self._table()
            .update({"quantity": quantity})
            .eq("user_id", self.user_id)
            .eq("product_id", product_id),
            StoreWriteError,
            "update cart item",
        )
        if not result.data:
            return False
        await self.feed.emit("update", product_id)
        return True

    async def delete_item(self, product_id: str) -> bool:
        """Delete a line item. Returns False if there was nothing to delete."""
        result = await self._execute(
            self._table().delete().eq("user_id", self.user_id).eq("product_id", product_id),
            StoreWriteError,
            "delete cart item",
        )
        if not result.data:
            return False
        await self.feed.emit("delete", product_id)
        return True

    async def subscribe(self, on_change: OnChange) -> Unsubscribe:
        """Push the full item list to on_change after every change to this cart."""

        async def refresh() -> None:
            on_change(await self.list_items())

        return await self.feed.listen(refresh)
