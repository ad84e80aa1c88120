"""Tests for the kline stream subscription."""

import asyncio
import json

import pytest
from websockets.protocol import State

from tradingdesk.config import BinanceConfig
from tradingdesk.ingestion.live_feed import LiveFeed, Subscription, parse_kline_message
from tradingdesk.models import Candle


def _kline_event(t: int = 1_700_000_000_000, close: str = "101.0") -> dict:
    return {
        "e": "kline",
        "s": "BTCUSDT",
        "k": {"t": t, "o": "100.0", "h": "102.0", "l": "99.0", "c": close, "v": "5.0"},
    }


class FakeWebSocket:
    """Async-iterable stand-in for a websockets client connection."""

    def __init__(self, messages):
        self._queue: asyncio.Queue = asyncio.Queue()
        for m in messages:
            self._queue.put_nowait(m)
        self.state = State.OPEN
        self.close_calls = 0

    def push(self, message):
        self._queue.put_nowait(message)

    async def close(self):
        self.close_calls += 1
        self.state = State.CLOSED
        self._queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self._queue.get()
        if message is None:
            raise StopAsyncIteration
        return message


class TestParseKlineMessage:
    def test_raw_event(self):
        candle = parse_kline_message(json.dumps(_kline_event(close="123.4")))
        assert candle.close == 123.4

    def test_combined_stream_event(self):
        msg = json.dumps({"stream": "btcusdt@kline_1h", "data": _kline_event()})
        assert isinstance(parse_kline_message(msg), Candle)

    def test_other_events_ignored(self):
        assert parse_kline_message(json.dumps({"e": "trade"})) is None

    def test_invalid_json_ignored(self):
        assert parse_kline_message("not json") is None

    def test_incomplete_kline_ignored(self):
        assert parse_kline_message(json.dumps({"e": "kline", "k": {"t": 1}})) is None


class TestSubscription:
    def test_deliver_only_while_active(self):
        received = []
        sub = Subscription("BTCUSDT", received.append)
        candle = Candle(time=1, open=1, high=1, low=1, close=1, volume=1)
        assert sub.deliver(candle) is True
        sub._active = False
        assert sub.deliver(candle) is False
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_closes_open_socket(self):
        sub = Subscription("BTCUSDT", lambda c: None)
        ws = FakeWebSocket([])
        sub._websocket = ws
        await sub.unsubscribe()
        assert not sub.active
        assert ws.close_calls == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_skips_closed_socket(self):
        sub = Subscription("BTCUSDT", lambda c: None)
        ws = FakeWebSocket([])
        ws.state = State.CLOSED
        sub._websocket = ws
        await sub.unsubscribe()
        assert ws.close_calls == 0


class TestLiveFeed:
    """Stream lifecycle against a fake connection."""

    def test_stream_url(self):
        feed = LiveFeed(config=BinanceConfig())
        assert feed.stream_url("BTC/USDT") == "wss://fstream.binance.com/ws/btcusdt@kline_1h"

    @pytest.mark.asyncio
    async def test_ticks_delivered_until_unsubscribe(self):
        ws = FakeWebSocket([json.dumps(_kline_event(close="101.0"))])
        urls = []

        async def connect(url, **kwargs):
            urls.append(url)
            return ws

        received = []
        feed = LiveFeed(config=BinanceConfig(), connect=connect)
        sub = feed.subscribe("BTCUSDT", received.append)

        for _ in range(20):
            if received:
                break
            await asyncio.sleep(0)

        assert [c.close for c in received] == [101.0]
        assert urls == ["wss://fstream.binance.com/ws/btcusdt@kline_1h"]

        await sub.unsubscribe()
        ws.push(json.dumps(_kline_event(close="999.0")))
        await asyncio.sleep(0)

        assert len(received) == 1
        assert ws.close_calls == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_before_connect_completes(self):
        ws = FakeWebSocket([json.dumps(_kline_event())])
        gate = asyncio.Event()

        async def connect(url, **kwargs):
            await gate.wait()
            return ws

        received = []
        sub = LiveFeed(config=BinanceConfig(), connect=connect).subscribe("BTCUSDT", received.append)
        await asyncio.sleep(0)
        await sub.unsubscribe()

        assert received == []
        assert sub._task.done()

    @pytest.mark.asyncio
    async def test_connect_failure_ends_subscription_task(self):
        async def connect(url, **kwargs):
            raise OSError("unreachable")

        sub = LiveFeed(config=BinanceConfig(), connect=connect).subscribe("BTCUSDT", lambda c: None)
        await asyncio.gather(sub._task)
        assert sub.ticks_delivered == 0
