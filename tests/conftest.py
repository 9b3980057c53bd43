"""Pytest configuration and fixtures"""
import os
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")

from cartsync.cart.local_store import LocalCartStore
from cartsync.cart.models import CartLineItem, Product
from cartsync.cart.session import CartSession
from cartsync.errors import StoreReadError, StoreWriteError
from cartsync.identity import IdentityProvider


class MemoryBlobStore:
    """Dict-backed stand-in for the device blob store."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.fail_writes = False

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FakeRemoteCartStore:
    """In-memory RemoteCartStore with a manual push trigger."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.rows: dict[str, CartLineItem] = {}
        self.listeners = []
        self.unsubscribe_calls = 0
        self.fail_list = False
        self.fail_writes = False
        self.fail_delete_for: set[str] = set()
        self.deleted: list[str] = []

    def seed(self, *items: CartLineItem) -> "FakeRemoteCartStore":
        for item in items:
            self.rows[item.product_id] = item
        return self

    async def list_items(self):
        if self.fail_list:
            raise StoreReadError("list cart items failed: offline")
        return list(self.rows.values())

    async def get_item(self, product_id):
        return self.rows.get(product_id)

    async def upsert_item(self, item):
        if self.fail_writes:
            raise StoreWriteError("upsert cart item failed: offline")
        self.rows[item.product_id] = item

    async def update_quantity(self, product_id, quantity):
        if self.fail_writes:
            raise StoreWriteError("update cart item failed: offline")
        if product_id not in self.rows:
            return False
        self.rows[product_id] = self.rows[product_id].with_quantity(quantity)
        return True

    async def delete_item(self, product_id):
        if self.fail_writes or product_id in self.fail_delete_for:
            raise StoreWriteError("delete cart item failed: offline")
        self.deleted.append(product_id)
        return self.rows.pop(product_id, None) is not None

    async def subscribe(self, on_change):
        self.listeners.append(on_change)

        async def unsubscribe():
            if on_change in self.listeners:
                self.listeners.remove(on_change)
            self.unsubscribe_calls += 1

        return unsubscribe

    def push(self, items=None):
        """Deliver the current rows (or `items`) to every live listener."""
        payload = list(self.rows.values()) if items is None else list(items)
        for listener in list(self.listeners):
            listener(payload)


def make_item(product_id: str, quantity: int = 1, price: str = "10.00", name: Optional[str] = None) -> CartLineItem:
    return CartLineItem(
        product_id=product_id,
        name=name or f"Product {product_id}",
        unit_price=Decimal(price),
        quantity=quantity,
    )


@pytest.fixture
def product():
    """Sample product with display metadata"""
    return Product(id="prod-1", name="Green Tea", price="4.50", image="tea.png", category="drinks")


@pytest.fixture
def other_product():
    return Product(id="prod-2", name="Mug", price="12.00")


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def local_store(blob_store):
    return LocalCartStore(blob_store)


@pytest.fixture
def remote_stores():
    """Remote stores created so far, keyed by user id."""
    return {}


@pytest.fixture
def remote_factory(remote_stores):
    def factory(user_id: str) -> FakeRemoteCartStore:
        if user_id not in remote_stores:
            remote_stores[user_id] = FakeRemoteCartStore(user_id)
        return remote_stores[user_id]

    return factory


@pytest.fixture
def notifier():
    notifier = Mock()
    notifier.success = AsyncMock()
    notifier.error = AsyncMock()
    return notifier


@pytest.fixture
def orders():
    """Mock OrderRepository"""
    repo = Mock()
    repo.create = AsyncMock(side_effect=lambda order: order)
    return repo


@pytest.fixture
def identity_provider():
    return IdentityProvider()


@pytest.fixture
def cart_session(identity_provider, local_store, remote_factory, orders, notifier):
    return CartSession(
        identity_provider,
        local_store,
        remote_factory,
        orders,
        notifier,
        language="en",
    )


@pytest.fixture
def mock_supabase_client():
    """Mock async Supabase client; every builder call returns the same table mock"""
    client = Mock()

    table_mock = Mock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.update.return_value = table_mock
    table_mock.delete.return_value = table_mock
    table_mock.upsert.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.limit.return_value = table_mock
    table_mock.order.return_value = table_mock
    table_mock.execute = AsyncMock(return_value=Mock(data=[]))

    client.table.return_value = table_mock

    return client


@pytest.fixture
def mock_feed():
    feed = Mock()
    feed.emit = AsyncMock()
    feed.listen = AsyncMock()
    return feed
