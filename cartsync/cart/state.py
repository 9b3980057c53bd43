"""In-memory cart state shared by the reconciler and the engine."""
from typing import Callable, Iterable

from cartsync.logging import get_logger
from .models import Cart, CartLineItem

logger = get_logger(__name__)

Listener = Callable[[Cart], None]


class CartState:
    """
    Holds the current Cart for one CartSession.

    `version` increases on every replacement so that a write which started
    before a push can tell the push has landed and skip its own commit.
    """

    def __init__(self) -> None:
        self._cart = Cart()
        self.version = 0
        self._listeners: list[Listener] = []

    @property
    def cart(self) -> Cart:
        return self._cart

    def replace(self, items: Iterable[CartLineItem]) -> Cart:
        self._cart = items if isinstance(items, Cart) else Cart.of(items)
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(self._cart)
            except Exception as e:
                logger.error(f"Cart listener failed: {e}", exc_info=True)
        return self._cart

    def clear(self) -> Cart:
        return self.replace(())

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a consumer; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove
