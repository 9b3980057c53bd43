"""Cart package: models, stores, reconciler, engine and session facade."""
from .models import Cart, CartLineItem, Order, Product
from .state import CartState
from .local_store import FileBlobStore, LocalCartStore
from .remote_store import RemoteCartStore
from .reconciler import CartReconciler
from .checkout import CheckoutCoordinator
from .engine import CartEngine
from .session import CartSession, create_cart_session

__all__ = [
    "Cart",
    "CartLineItem",
    "Order",
    "Product",
    "CartState",
    "FileBlobStore",
    "LocalCartStore",
    "RemoteCartStore",
    "CartReconciler",
    "CheckoutCoordinator",
    "CartEngine",
    "CartSession",
    "create_cart_session",
]
