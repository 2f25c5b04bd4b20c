"""
Adaptive micro-batching of normalized trades.

Frames carrying several trades are forwarded untouched.  Frames carrying a
single trade are held for a short window (``DISPATCH_DELAY_MS``) so that a
run of single-trade ticks reaches the listener as one batch.

Single-threaded: ``push`` and the timer callback both run on the event loop
and never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from okex_feed.core.models import Trade

DISPATCH_DELAY_MS = 30

TradesCallback = Callable[[list[Trade]], None]


class TradeDispatcher:
    """
    Parameters
    ----------
    on_trades : TradesCallback
        Receives every emitted batch, in arrival order.
    delay_ms : float
        Coalescing window for single-trade frames.
    loop : asyncio.AbstractEventLoop, optional
        Anything with ``call_later``.  Defaults to the running loop.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(
        self,
        on_trades: TradesCallback,
        delay_ms: float = DISPATCH_DELAY_MS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._on_trades = on_trades
        self._delay = delay_ms / 1000.0
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._pending: list[Trade] = []
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def push(self, trades: list[Trade]) -> None:
        """Route the trades of one frame."""
        if not trades:
            return

        if len(trades) > 1:
            # already grouped by the exchange
            self.flush()
            self._on_trades(list(trades))
            return

        trade = trades[0]
        if self._pending and self._pending[0].ts != trade.ts:
            self.flush()

        self._pending.append(trade)
        self._cancel_timer()
        self._timer = self._get_loop().call_later(self._delay, self._flush_on_timer)

    def flush(self) -> None:
        """Emit pending trades as one batch.  No-op when nothing is pending."""
        self._cancel_timer()
        if not self._pending:
            return
        batch = self._pending
        self._pending = []
        self._on_trades(batch)

    def _flush_on_timer(self) -> None:
        self._timer = None
        try:
            self.flush()
        except Exception as exc:
            self._logger.error(f"Trade listener failed on timed flush: {exc}", exc_info=True)

    def close(self) -> None:
        """Cancel the timer and drop pending trades without emitting them."""
        self._cancel_timer()
        if self._pending:
            self._logger.debug(f"Discarding {len(self._pending)} pending trade(s)")
        self._pending = []

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _get_loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop
