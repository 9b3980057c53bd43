"""CartSession - the context object composing identity and cart.

Usage:
    session = await create_cart_session(identity_provider)
    await session.start()
    await session.engine.add_to_cart({"id": "sku-1", "name": "Tea", "price": "4.50"})
    ...
    await session.close()
"""
from typing import TYPE_CHECKING, Callable, Optional

from cartsync.db import RedisKeys, get_redis, get_redis_sync, get_supabase
from cartsync.i18n import DEFAULT_LANGUAGE
from cartsync.identity import Identity, IdentityProvider
from cartsync.logging import get_logger
from cartsync.notifications import Notifier, get_notifier
from cartsync.realtime import CartChangeFeed
from .checkout import CheckoutCoordinator
from .engine import CartEngine
from .local_store import BlobStore, FileBlobStore, LocalCartStore
from .reconciler import CartReconciler, RemoteStoreFactory
from .remote_store import RemoteCartStore
from .state import CartState

if TYPE_CHECKING:
    from cartsync.repositories.order_repo import OrderRepository

logger = get_logger(__name__)


class CartSession:
    """
    Owns one cart for one client: state, reconciler and engine.

    start() loads the cart for the provider's current identity and follows
    later transitions; close() stops following them and releases the remote
    subscription.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        local_store: LocalCartStore,
        remote_factory: RemoteStoreFactory,
        orders: "OrderRepository",
        notifier: Notifier,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self.identity_provider = identity_provider
        self.state = CartState()
        self.reconciler = CartReconciler(self.state, local_store, remote_factory)
        self.engine = CartEngine(
            self.state,
            self.reconciler,
            local_store,
            CheckoutCoordinator(orders, self.state, self.reconciler),
            notifier,
            language=language,
        )
        self._stop_following: Optional[Callable[[], None]] = None

    async def _on_identity(self, identity: Identity) -> None:
        await self.reconciler.apply(identity)

    async def start(self) -> None:
        if self._stop_following is not None:
            return
        self._stop_following = self.identity_provider.subscribe(self._on_identity)
        await self.reconciler.apply(self.identity_provider.current)

    async def close(self) -> None:
        if self._stop_following is not None:
            self._stop_following()
            self._stop_following = None
        await self.reconciler.close()

    async def __aenter__(self) -> "CartSession":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


async def create_cart_session(
    identity_provider: IdentityProvider,
    blob_store: Optional[BlobStore] = None,
    device_id: Optional[str] = None,
    notifier: Optional[Notifier] = None,
    language: str = DEFAULT_LANGUAGE,
) -> CartSession:
    """
    Build a CartSession on the shared Supabase and Redis clients.

    The local snapshot goes to `blob_store` if given, to the sync Redis
    client when a `device_id` is given, and to a JSON file otherwise.
    """
    from cartsync.repositories.order_repo import OrderRepository

    client = await get_supabase()
    redis = get_redis()

    if blob_store is None:
        blob_store = get_redis_sync() if device_id else FileBlobStore()
    local_store = LocalCartStore(blob_store, RedisKeys.local_cart_key(device_id))

    def remote_factory(user_id: str) -> RemoteCartStore:
        return RemoteCartStore(client, user_id, CartChangeFeed(redis, user_id))

    return CartSession(
        identity_provider,
        local_store,
        remote_factory,
        OrderRepository(client),
        notifier or get_notifier(redis, device_id),
        language=language,
    )
