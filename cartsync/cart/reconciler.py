"""Chooses the authoritative cart store on identity transitions."""
from typing import Callable, Optional

from cartsync.errors import StoreReadError
from cartsync.identity import Authenticated, Identity
from cartsync.logging import get_logger, sanitize_id_for_logging
from cartsync.realtime import Unsubscribe
from .local_store import LocalCartStore
from .models import CartLineItem
from .remote_store import RemoteCartStore
from .state import CartState

logger = get_logger(__name__)

RemoteStoreFactory = Callable[[str], RemoteCartStore]


class CartReconciler:
    """
    Repopulates CartState whenever identity changes and owns the remote
    subscription.

    Guest: state comes from the local snapshot, no subscription.
    Signed in: the subscription opens first, then state comes from the remote
    listing unless a push already replaced it, then from pushes.

    Each transition starts a new session (`session_id`). Anything resolved
    under an older session, such as a push from a closed subscription or a
    listing that finished after logout, is discarded.
    """

    def __init__(
        self,
        state: CartState,
        local_store: LocalCartStore,
        remote_factory: RemoteStoreFactory,
    ) -> None:
        self._state = state
        self._local = local_store
        self._remote_factory = remote_factory
        self._identity: Optional[Identity] = None
        self._remote: Optional[RemoteCartStore] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self.session_id = 0

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def remote(self) -> Optional[RemoteCartStore]:
        """Remote store of the current user, None for guests."""
        return self._remote

    @property
    def is_subscribed(self) -> bool:
        return self._unsubscribe is not None

    def is_current(self, session_id: int) -> bool:
        return session_id == self.session_id

    async def apply(self, identity: Identity) -> None:
        """React to the identity provider announcing `identity`."""
        if self._identity is not None and identity == self._identity:
            return

        await self._close_subscription()
        self.session_id += 1
        session_id = self.session_id
        self._identity = identity

        if isinstance(identity, Authenticated):
            self._remote = self._remote_factory(identity.user_id)
            await self._load_remote(session_id, self._remote)
        else:
            self._remote = None
            self._state.replace(self._local.load())
            logger.info(f"Guest cart loaded from local storage ({len(self._state.cart)} items)")

    async def _load_remote(self, session_id: int, remote: RemoteCartStore) -> None:
        who = sanitize_id_for_logging(remote.user_id)

        # Subscribe before listing: changes written while the listing runs must still be pushed
        unsubscribe = await remote.subscribe(lambda pushed: self._on_push(session_id, pushed))
        if not self.is_current(session_id):
            await unsubscribe()
            return
        self._unsubscribe = unsubscribe

        version = self._state.version
        try:
            items = await remote.list_items()
        except StoreReadError as e:
            logger.error(f"Failed to load cart for user {who}: {e}")
            items = []

        if not self.is_current(session_id):
            logger.debug(f"Discarding cart listing for user {who}: identity changed")
            return
        if self._state.version != version:
            logger.debug(f"Discarding cart listing for user {who}: a newer push already landed")
            return
        self._state.replace(items)
        logger.info(f"Cart loaded for user {who} ({len(items)} items)")

    def _on_push(self, session_id: int, items: list[CartLineItem]) -> None:
        if not self.is_current(session_id):
            logger.debug("Discarding cart push from a closed session")
            return
        self._state.replace(items)

    async def _close_subscription(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            await unsubscribe()

    async def close(self) -> None:
        """Release the subscription; later pushes are ignored."""
        await self._close_subscription()
        self.session_id += 1
        self._identity = None
        self._remote = None
