"""Tests for the identity signal, the session facade and i18n"""
from unittest.mock import AsyncMock, Mock, patch

import pytest

from cartsync.cart.local_store import FileBlobStore
from cartsync.cart.remote_store import RemoteCartStore
from cartsync.cart.session import create_cart_session
from cartsync.i18n import detect_language, get_text
from cartsync.identity import ANONYMOUS, Anonymous, Authenticated, IdentityProvider, identity_from_session
from cartsync.notifications import LogNotifier, StreamNotifier
from tests.conftest import make_item


class TestIdentity:
    def test_identity_from_session(self):
        assert identity_from_session(None) == ANONYMOUS
        assert identity_from_session({"user_id": ""}) == ANONYMOUS
        assert identity_from_session({"user_id": 12, "email": "a@b.c"}) == Authenticated("12", "a@b.c")

    @pytest.mark.asyncio
    async def test_listeners_notified_on_change_only(self):
        provider = IdentityProvider()
        listener = AsyncMock()
        provider.subscribe(listener)

        await provider.logout()
        await provider.login("u1")
        await provider.login("u1")

        listener.assert_awaited_once_with(Authenticated("u1"))
        assert provider.current == Authenticated("u1")

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        provider = IdentityProvider(Authenticated("u1"))
        listener = AsyncMock()
        unsubscribe = provider.subscribe(listener)
        unsubscribe()

        await provider.logout()

        listener.assert_not_awaited()
        assert isinstance(provider.current, Anonymous)


class TestCartSession:
    @pytest.mark.asyncio
    async def test_follows_identity_transitions(self, identity_provider, cart_session, local_store, remote_factory):
        local_store.save([make_item("guest", 1)])
        remote = remote_factory("u1").seed(make_item("remote", 2))

        async with cart_session as session:
            assert [i.product_id for i in session.engine.items] == ["guest"]

            await identity_provider.login("u1")
            assert [i.product_id for i in session.engine.items] == ["remote"]
            assert session.engine.is_authenticated

            await identity_provider.logout()
            assert [i.product_id for i in session.engine.items] == ["guest"]

        assert remote.listeners == []
        assert cart_session.reconciler.identity is None

    @pytest.mark.asyncio
    async def test_no_transitions_after_close(self, identity_provider, cart_session, remote_stores):
        await cart_session.start()
        await cart_session.close()

        await identity_provider.login("u1")

        assert remote_stores == {}
        assert cart_session.reconciler.identity is None

    @pytest.mark.asyncio
    async def test_state_listener_sees_every_replacement(self, cart_session, product):
        seen = []
        cart_session.state.add_listener(lambda cart: seen.append(cart.total_items))

        await cart_session.start()
        await cart_session.engine.add_to_cart(product, 2)

        assert seen == [0, 2]


class TestCreateCartSession:
    @pytest.mark.asyncio
    async def test_wires_clients(self, tmp_path):
        client = Mock()
        redis = Mock()
        with patch("cartsync.cart.session.get_supabase", AsyncMock(return_value=client)), patch(
            "cartsync.cart.session.get_redis", return_value=redis
        ):
            session = await create_cart_session(IdentityProvider(), blob_store=FileBlobStore(tmp_path))

        remote = session.reconciler._remote_factory("u1")
        assert isinstance(remote, RemoteCartStore)
        assert remote.client is client
        assert remote.feed.redis is redis
        assert remote.feed.stream_key == "stream:realtime:cart:u1"
        assert isinstance(session.engine._notifier, LogNotifier)

    @pytest.mark.asyncio
    async def test_device_session_uses_redis_blob_store_and_toasts(self):
        sync_redis = Mock()
        with patch("cartsync.cart.session.get_supabase", AsyncMock(return_value=Mock())), patch(
            "cartsync.cart.session.get_redis", return_value=Mock()
        ), patch("cartsync.cart.session.get_redis_sync", return_value=sync_redis):
            session = await create_cart_session(IdentityProvider(), device_id="dev-1")

        local = session.reconciler._local
        assert local._blobs is sync_redis
        assert local.key == "cart:device:dev-1"
        assert isinstance(session.engine._notifier, StreamNotifier)


class TestI18n:
    def test_format(self):
        assert get_text("cart.added", "en", name="Tea") == "Tea added to cart"
        assert get_text("cart.added", "es", name="Té") == "Té agregado al carrito"

    def test_unknown_language_falls_back(self):
        assert get_text("checkout.success", "de") == get_text("checkout.success", "en")
        assert detect_language("es-AR") == "es"

    def test_missing_key(self):
        assert get_text("cart.nope", "en") == "cart.nope"
        assert get_text("cart.nope", "en", default="x") == "x"
