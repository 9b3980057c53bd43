"""Order Repository - Order operations."""
from typing import List, Optional

from cartsync.cart.models import Order
from cartsync.db import Tables
from cartsync.errors import SerializationError, StoreReadError, StoreWriteError
from cartsync.logging import get_logger, sanitize_id_for_logging
from .base import BaseRepository

logger = get_logger(__name__)


class OrderRepository(BaseRepository):
    """Order database operations. Orders are insert-only."""

    async def create(self, order: Order) -> Order:
        """Insert a new order document."""
        await self._execute(
            self.client.table(Tables.ORDERS).insert(order.to_document()),
            StoreWriteError,
            "create order",
        )
        logger.info(
            f"Order {sanitize_id_for_logging(order.id)} created for user "
            f"{sanitize_id_for_logging(order.user_id)} ({len(order.items)} items)"
        )
        return order

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID."""
        result = await self._execute(
            self.client.table(Tables.ORDERS).select("*").eq("id", order_id).limit(1),
            StoreReadError,
            "get order",
        )
        if not result.data:
            return None
        try:
            return Order.from_document(result.data[0])
        except SerializationError as e:
            raise StoreReadError(f"Order {order_id} is malformed: {e}") from e

    async def get_by_user(self, user_id: str, limit: int = 10) -> List[Order]:
        """Get user's orders, newest first. Malformed rows are skipped."""
        result = await self._execute(
            self.client.table(Tables.ORDERS)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit),
            StoreReadError,
            "list orders",
        )
        orders = []
        for row in result.data or []:
            try:
                orders.append(Order.from_document(row))
            except SerializationError as e:
                logger.warning(f"Skipping malformed order row: {e}")
        return orders
