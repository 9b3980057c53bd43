"""Tests for the cart change feed and toast stream"""
import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from cartsync.notifications import LogNotifier, StreamNotifier, get_notifier
from cartsync.realtime import STREAM_MAXLEN, CartChangeFeed


@pytest.fixture
def mock_redis():
    redis = AsyncMock()
    redis.xadd = AsyncMock(return_value="1-0")
    redis.xrevrange = AsyncMock(return_value=[])
    redis.xrange = AsyncMock(return_value=[])
    return redis


class TestCartChangeFeed:
    @pytest.mark.asyncio
    async def test_emit_appends_to_user_stream(self, mock_redis):
        feed = CartChangeFeed(mock_redis, "user-1")

        await feed.emit("upsert", "sku-1")

        args, kwargs = mock_redis.xadd.call_args
        assert args[0] == "stream:realtime:cart:user-1"
        assert args[1] == "*"
        payload = json.loads(args[2]["data"])
        assert payload == {
            "event": "cart.changed",
            "user_id": "user-1",
            "product_id": "sku-1",
            "change": "upsert",
        }
        assert kwargs["maxlen"] == STREAM_MAXLEN

    @pytest.mark.asyncio
    async def test_emit_failure_is_logged_not_raised(self, mock_redis):
        mock_redis.xadd.side_effect = ConnectionError("redis down")
        await CartChangeFeed(mock_redis, "user-1").emit("delete", "sku-1")

    @pytest.mark.asyncio
    async def test_listen_reads_after_stream_head(self, mock_redis):
        mock_redis.xrevrange.return_value = [["5-0", {"data": "{}"}]]
        calls = []
        got_event = asyncio.Event()

        async def on_event():
            calls.append(1)
            got_event.set()

        async def xrange(key, start, end, count):
            if start == "(5-0":
                return [["6-0", {"data": "{}"}], ["7-0", {"data": "{}"}]]
            return []

        mock_redis.xrange.side_effect = xrange
        feed = CartChangeFeed(mock_redis, "user-1", poll_interval=0.01)

        stop = await feed.listen(on_event)
        await asyncio.wait_for(got_event.wait(), timeout=1)
        await asyncio.sleep(0.05)
        await stop()

        # Two entries in one batch produce a single refresh
        assert calls == [1]
        starts = [c.kwargs["start"] for c in mock_redis.xrange.call_args_list]
        assert starts[0] == "(5-0"
        assert "(7-0" in starts

    @pytest.mark.asyncio
    async def test_empty_stream_reads_from_start(self, mock_redis):
        feed = CartChangeFeed(mock_redis, "user-1", poll_interval=0.01)

        stop = await feed.listen(AsyncMock())
        await asyncio.sleep(0.03)
        await stop()

        assert mock_redis.xrange.call_args_list[0].kwargs["start"] == "-"

    @pytest.mark.asyncio
    async def test_poll_errors_do_not_stop_listener(self, mock_redis):
        on_event = AsyncMock()
        mock_redis.xrange.side_effect = [ConnectionError("blip"), [["1-0", {}]], [], [], [], [], [], []]
        feed = CartChangeFeed(mock_redis, "user-1", poll_interval=0.01)

        stop = await feed.listen(on_event)
        await asyncio.sleep(0.05)
        await stop()

        on_event.assert_awaited()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, mock_redis):
        on_event = AsyncMock()
        feed = CartChangeFeed(mock_redis, "user-1", poll_interval=0.01)

        stop = await feed.listen(on_event)
        await stop()
        await stop()

        calls_after_stop = mock_redis.xrange.await_count
        await asyncio.sleep(0.03)
        assert mock_redis.xrange.await_count == calls_after_stop


class TestNotifiers:
    @pytest.mark.asyncio
    async def test_stream_notifier_emits_toast(self, mock_redis):
        notifier = StreamNotifier(mock_redis, "device-1")

        await notifier.error("The cart is empty")

        args = mock_redis.xadd.call_args[0]
        assert args[0] == "stream:realtime:toasts:device-1"
        assert json.loads(args[2]["data"]) == {
            "event": "cart.toast",
            "level": "error",
            "message": "The cart is empty",
        }

    @pytest.mark.asyncio
    async def test_stream_notifier_failure_is_swallowed(self, mock_redis):
        mock_redis.xadd.side_effect = ConnectionError("redis down")
        await StreamNotifier(mock_redis, "device-1").success("ok")

    def test_get_notifier(self, mock_redis):
        assert isinstance(get_notifier(mock_redis, "device-1"), StreamNotifier)
        assert isinstance(get_notifier(mock_redis), LogNotifier)
        assert isinstance(get_notifier(), LogNotifier)
