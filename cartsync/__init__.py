"""
cartsync - one shopping cart for guests and signed-in users.

This package contains:
- cart: models, local/remote stores, reconciler, engine, checkout
- db: Supabase and Upstash Redis clients
- realtime: cart change feed over Redis Streams
- identity: identity signal consumed by the cart
- notifications: toast channel

Note: Imports are lazy so that models can be used without the
database clients being configured.
"""

__all__ = [
    "CartSession",
    "create_cart_session",
    "IdentityProvider",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "CartSession":
        from cartsync.cart.session import CartSession
        return CartSession
    elif name == "create_cart_session":
        from cartsync.cart.session import create_cart_session
        return create_cart_session
    elif name == "IdentityProvider":
        from cartsync.identity import IdentityProvider
        return IdentityProvider
    raise AttributeError(f"module 'cartsync' has no attribute '{name}'")
