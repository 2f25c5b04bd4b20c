"""Tests for the adaptive trade dispatcher

Tests cover:
- Coalescing of single-trade frames inside the window
- Pass-through of multi-trade frames
- Flush of expired pending trades
- Timer cancellation and teardown
"""

import asyncio

from okex_feed.core.models import Trade
from okex_feed.exchanges.trade_dispatcher import TradeDispatcher


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Records call_later requests; the test decides when timers fire."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    def live(self):
        return [h for h in self.handles if not h.cancelled]

    def fire(self):
        for handle in self.live():
            handle.cancelled = True
            handle.callback()


def _trade(ts, price=100.0):
    return Trade(exchange="okex", ts=ts, price=price, size=1.0, side=1)


def _dispatcher(loop):
    batches = []
    return TradeDispatcher(batches.append, delay_ms=30, loop=loop), batches


class TestSingleTradeFrames:

    def test_coalesced_into_one_batch(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)
        trades = [_trade(1000, price=100.0 + i) for i in range(5)]

        for trade in trades:
            dispatcher.push([trade])
        assert batches == []
        assert dispatcher.pending_count == 5
        assert len(loop.live()) == 1

        loop.fire()

        assert batches == [trades]
        assert dispatcher.pending_count == 0

    def test_timer_reset_on_each_arrival(self):
        loop = FakeLoop()
        dispatcher, _ = _dispatcher(loop)

        dispatcher.push([_trade(1000)])
        dispatcher.push([_trade(1000)])

        assert len(loop.handles) == 2
        assert loop.handles[0].cancelled
        assert loop.handles[1].delay == 0.03

    def test_new_timestamp_expires_pending(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)
        first, second = _trade(1000), _trade(1001)

        dispatcher.push([first])
        dispatcher.push([second])

        assert batches == [[first]]
        assert dispatcher.pending_count == 1

        loop.fire()
        assert batches == [[first], [second]]

    def test_timer_fires_with_single_trade(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)
        trade = _trade(1000)

        dispatcher.push([trade])
        loop.fire()

        assert batches == [[trade]]


class TestMultiTradeFrames:

    def test_emitted_immediately(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)
        burst = [_trade(1000), _trade(1000), _trade(1001)]

        dispatcher.push(burst)

        assert batches == [burst]
        assert loop.handles == []

    def test_pending_flushed_first(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)
        pending = _trade(900)
        burst = [_trade(1000), _trade(1001), _trade(1002)]

        dispatcher.push([pending])
        dispatcher.push(burst)

        assert batches == [[pending], burst]
        assert loop.live() == []

    def test_batch_is_a_copy(self):
        dispatcher, batches = _dispatcher(FakeLoop())
        burst = [_trade(1000), _trade(1001)]

        dispatcher.push(burst)
        burst.append(_trade(1002))

        assert len(batches[0]) == 2


class TestFlushAndClose:

    def test_flush_empty_is_noop(self):
        dispatcher, batches = _dispatcher(FakeLoop())
        dispatcher.flush()
        dispatcher.flush()
        assert batches == []

    def test_empty_push_is_noop(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)
        dispatcher.push([])
        assert batches == []
        assert loop.handles == []

    def test_explicit_flush_cancels_timer(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)
        trade = _trade(1000)

        dispatcher.push([trade])
        dispatcher.flush()
        loop.fire()

        assert batches == [[trade]]

    def test_close_discards_pending(self):
        loop = FakeLoop()
        dispatcher, batches = _dispatcher(loop)

        dispatcher.push([_trade(1000)])
        dispatcher.close()
        loop.fire()

        assert batches == []
        assert dispatcher.pending_count == 0
        assert loop.live() == []


class TestWithEventLoop:
    """Same policy on a real asyncio loop."""

    def test_window_elapses(self):
        batches = []

        async def scenario():
            dispatcher = TradeDispatcher(batches.append, delay_ms=100)
            for _ in range(3):
                dispatcher.push([_trade(1000)])
                await asyncio.sleep(0.005)
            assert batches == []
            await asyncio.sleep(0.3)

        asyncio.run(scenario())

        assert len(batches) == 1
        assert len(batches[0]) == 3

    def test_listener_failure_on_timed_flush(self):
        batches = []

        def on_trades(trades):
            batches.append(trades)
            if len(batches) == 1:
                raise ValueError("downstream failed")

        async def scenario():
            dispatcher = TradeDispatcher(on_trades, delay_ms=10)
            dispatcher.push([_trade(1000)])
            await asyncio.sleep(0.1)
            dispatcher.push([_trade(2000)])
            await asyncio.sleep(0.1)

        asyncio.run(scenario())

        assert [[t.ts for t in b] for b in batches] == [[1000], [2000]]
