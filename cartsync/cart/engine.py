"""Cart engine - the cart operations exposed to callers."""
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Union

from cartsync.errors import (
    CartError,
    EmptyCartError,
    InvalidQuantityError,
    NotAuthenticatedError,
    PreconditionError,
    SerializationError,
    StoreWriteError,
)
from cartsync.i18n import DEFAULT_LANGUAGE, get_text
from cartsync.identity import Authenticated
from cartsync.logging import get_logger, sanitize_id_for_logging
from cartsync.money import Number
from cartsync.notifications import Notifier
from .checkout import CheckoutCoordinator
from .local_store import LocalCartStore
from .models import Cart, CartLineItem, Order, Product
from .reconciler import CartReconciler
from .state import CartState

logger = get_logger(__name__)

ProductLike = Union[Product, Mapping[str, Any]]
ProductRef = Union[str, Product, CartLineItem, Mapping[str, Any]]


def _as_product(product: ProductLike) -> Product:
    if isinstance(product, Product):
        return product
    try:
        return Product.model_validate(dict(product))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Invalid product: {e}") from e


def _display_name(product: ProductLike) -> str:
    if isinstance(product, Product):
        return product.name
    if isinstance(product, Mapping):
        return str(product.get("name") or product.get("id") or "")
    return ""


def _product_id(product: ProductRef) -> str:
    if isinstance(product, str):
        return product
    if isinstance(product, Product):
        return product.id
    if isinstance(product, CartLineItem):
        return product.product_id
    try:
        return str(product["id"])
    except (KeyError, TypeError) as e:
        raise SerializationError(f"Product reference has no id: {product!r}") from e


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantityError(quantity)
    return quantity


class CartEngine:
    """
    Cart state machine shared by guests and signed-in users.

    Every operation is routed by the current identity:
      - guest: compute the next Cart, save the snapshot locally, then commit it
        to in-memory state
      - signed in: write to the remote store; the subscription push is what
        ultimately drives state, an optimistic commit is applied only if the
        session is unchanged and no push landed while the write was in flight

    Store failures never escape: they are logged and reported through the
    notifier, and the operation returns False (checkout returns None).
    """

    def __init__(
        self,
        state: CartState,
        reconciler: CartReconciler,
        local_store: LocalCartStore,
        checkout: CheckoutCoordinator,
        notifier: Notifier,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._state = state
        self._reconciler = reconciler
        self._local = local_store
        self._checkout = checkout
        self._notifier = notifier
        self.language = language

    # ---- derived reads ----

    @property
    def cart(self) -> Cart:
        return self._state.cart

    @property
    def items(self) -> tuple[CartLineItem, ...]:
        return self._state.cart.items

    @property
    def total_items(self) -> int:
        return self._state.cart.total_items

    @property
    def total_price(self) -> Decimal:
        return self._state.cart.total_price

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self._reconciler.identity, Authenticated)

    # ---- internal helpers ----

    def _text(self, key: str, **kwargs) -> str:
        return get_text(key, self.language, **kwargs)

    def _persist_local(self, next_cart: Cart) -> None:
        self._local.save(next_cart.items)
        self._state.replace(next_cart)

    def _commit(self, session_id: int, version: int, step: Callable[[Cart], Cart]) -> None:
        """Apply an optimistic result of a remote write, unless it went stale."""
        if not self._reconciler.is_current(session_id):
            logger.debug("Discarding write result: identity changed while in flight")
            return
        if self._state.version != version:
            logger.debug("Skipping optimistic commit: a newer push already landed")
            return
        self._state.replace(step(self._state.cart))

    async def _fail(self, error: CartError, failure_key: str, **kwargs) -> bool:
        if isinstance(error, PreconditionError):
            await self._notifier.error(self._text(error.message_key))
        else:
            logger.error(f"Cart operation failed: {error}")
            await self._notifier.error(self._text(failure_key, **kwargs))
        return False

    # ---- operations ----

    async def add_to_cart(self, product: ProductLike, quantity: int = 1) -> bool:
        """Add `quantity` units of product, summing with an existing line item."""
        name = _display_name(product)
        try:
            product = _as_product(product)
            _check_quantity(quantity)
            if self.is_authenticated:
                await self._add_remote(product, quantity)
            else:
                self._persist_local(self.cart.with_added(product, quantity))
        except CartError as e:
            return await self._fail(e, "cart.add_failed", name=name)

        await self._notifier.success(self._text("cart.added", name=product.name))
        return True

    async def _add_remote(self, product: Product, quantity: int) -> None:
        remote = self._reconciler.remote
        session_id = self._reconciler.session_id
        version = self._state.version

        existing = await remote.get_item(product.id)
        if existing:
            item = existing.with_quantity(existing.quantity + quantity)
        else:
            item = CartLineItem.from_product(product, quantity)
        await remote.upsert_item(item)

        self._commit(session_id, version, lambda cart: cart.with_item(item))

    async def update_cart_item_quantity(self, product: ProductRef, new_quantity: int) -> bool:
        """Overwrite the quantity of a line item already in the cart."""
        try:
            product_id = _product_id(product)
            _check_quantity(new_quantity)
            if self.is_authenticated:
                updated = await self._update_remote(product_id, new_quantity)
            else:
                updated = product_id in self.cart
                if updated:
                    self._persist_local(self.cart.with_quantity(product_id, new_quantity))
        except CartError as e:
            return await self._fail(e, "cart.update_failed")

        if not updated:
            logger.info(f"Quantity update ignored, {sanitize_id_for_logging(product_id)} not in cart")
            return False
        await self._notifier.success(self._text("cart.quantity_updated"))
        return True

    async def _update_remote(self, product_id: str, new_quantity: int) -> bool:
        remote = self._reconciler.remote
        session_id = self._reconciler.session_id
        version = self._state.version

        updated = await remote.update_quantity(product_id, new_quantity)
        if updated:
            self._commit(session_id, version, lambda cart: cart.with_quantity(product_id, new_quantity))
        return updated

    async def remove_from_cart(self, product_id: str) -> bool:
        """Remove a line item. Removing an absent product is a silent no-op."""
        try:
            if self.is_authenticated:
                removed = await self._remove_remote(product_id)
            else:
                removed = product_id in self.cart
                if removed:
                    self._persist_local(self.cart.without(product_id))
        except CartError as e:
            return await self._fail(e, "cart.remove_failed")

        if removed:
            await self._notifier.success(self._text("cart.removed"))
        return removed

    async def _remove_remote(self, product_id: str) -> bool:
        remote = self._reconciler.remote
        session_id = self._reconciler.session_id
        version = self._state.version
        was_present = product_id in self.cart

        deleted = await remote.delete_item(product_id)
        if not (deleted or was_present):
            return False
        if not self._reconciler.is_current(session_id):
            return True

        # Keep the local snapshot close to what the user last saw, in case of logout
        try:
            self._local.save(self.cart.without(product_id).items)
        except StoreWriteError as e:
            logger.warning(f"Failed to mirror removal into local cart: {e}")

        self._commit(session_id, version, lambda cart: cart.without(product_id))
        return True

    async def checkout(
        self,
        total_with_shipping: Number,
        billing_data: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Order]:
        """Turn the cart into an order and empty it. Returns the Order or None."""
        cart = self.cart
        identity = self._reconciler.identity
        try:
            if cart.is_empty:
                raise EmptyCartError()
            if not isinstance(identity, Authenticated):
                raise NotAuthenticatedError()
            order = await self._checkout.checkout(
                identity,
                self._reconciler.remote,
                self._reconciler.session_id,
                cart,
                total_with_shipping,
                billing_data,
            )
        except CartError as e:
            await self._fail(e, "checkout.failed")
            return None

        await self._notifier.success(self._text("checkout.success"))
        return order

    def reload_from_local_store(self) -> Cart:
        """Force in-memory state from the local snapshot."""
        return self._state.replace(self._local.load())
