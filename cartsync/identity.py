"""Identity signal consumed by the cart.

The session provider owns identity; the cart only reads the current value
and reacts to transitions announced through `IdentityProvider`.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from cartsync.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


@dataclass(frozen=True)
class Anonymous:
    """Guest without an account; cart lives in local storage."""


@dataclass(frozen=True)
class Authenticated:
    user_id: str
    email: Optional[str] = None


Identity = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()

IdentityListener = Callable[[Identity], Awaitable[None]]


def identity_from_session(session: Optional[dict]) -> Identity:
    """Build an identity from a verified web session dict (None means guest)."""
    if not session or not session.get("user_id"):
        return ANONYMOUS
    return Authenticated(user_id=str(session["user_id"]), email=session.get("email"))


class IdentityProvider:
    """Holds the current identity and notifies listeners on change."""

    def __init__(self, initial: Identity = ANONYMOUS) -> None:
        self._current: Identity = initial
        self._listeners: list[IdentityListener] = []

    @property
    def current(self) -> Identity:
        return self._current

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def set_identity(self, identity: Identity) -> None:
        """Announce a new identity; listeners run in registration order."""
        if identity == self._current:
            return
        self._current = identity
        who = sanitize_id_for_logging(identity.user_id) if isinstance(identity, Authenticated) else "guest"
        logger.info(f"Identity changed to {who}")
        for listener in list(self._listeners):
            await listener(identity)

    async def login(self, user_id: str, email: Optional[str] = None) -> None:
        await self.set_identity(Authenticated(user_id=user_id, email=email))

    async def logout(self) -> None:
        await self.set_identity(ANONYMOUS)
