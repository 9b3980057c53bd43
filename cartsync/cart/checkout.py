"""Checkout: commit the order, then drain the remote cart."""
import asyncio
from typing import TYPE_CHECKING, Any, Mapping, Optional

from cartsync.errors import CheckoutIncompleteError
from cartsync.identity import Authenticated
from cartsync.logging import get_logger, sanitize_id_for_logging
from cartsync.money import Number, to_decimal
from .models import Cart, Order
from .reconciler import CartReconciler
from .remote_store import RemoteCartStore
from .state import CartState

if TYPE_CHECKING:
    from cartsync.repositories.order_repo import OrderRepository

logger = get_logger(__name__)


class CheckoutCoordinator:
    """
    Best-effort multi-step checkout.

    Steps:
      1. Snapshot the cart into an Order.
      2. Insert the Order. On failure nothing else happens.
      3. Delete all cart line items concurrently and wait for every deletion.
      4. Clear in-memory state.

    The Order is authoritative once step 2 succeeds. If some deletions fail
    the cart is still cleared in memory and CheckoutIncompleteError is raised;
    there is no compensation or retry.
    """

    def __init__(self, orders: "OrderRepository", state: CartState, reconciler: CartReconciler):
        self._orders = orders
        self._state = state
        self._reconciler = reconciler

    async def checkout(
        self,
        identity: Authenticated,
        remote: RemoteCartStore,
        session_id: int,
        cart: Cart,
        total_with_shipping: Number,
        billing_data: Optional[Mapping[str, Any]],
    ) -> Order:
        order = Order(
            user_id=identity.user_id,
            email=identity.email,
            items=list(cart.items),
            billing=dict(billing_data or {}),
            total=to_decimal(total_with_shipping),
        )

        await self._orders.create(order)

        results = await asyncio.gather(
            *(remote.delete_item(item.product_id) for item in cart.items),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]

        if self._reconciler.is_current(session_id):
            self._state.clear()

        if failures:
            logger.error(
                f"Order {sanitize_id_for_logging(order.id)} committed but "
                f"{len(failures)}/{len(results)} cart items were not deleted: {failures[0]}"
            )
            raise CheckoutIncompleteError(order, failures)

        return order
