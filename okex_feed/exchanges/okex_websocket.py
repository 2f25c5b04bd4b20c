"""
OKEx v3 WebSocket trade stream.

Subscribes to the trade channel of every requested pair, decodes text and
raw-DEFLATE binary frames, normalizes trades and hands them to a
``TradeDispatcher`` which forwards batches to the listener's
``on_trades``.

The stream implements the ``ExchangeConnector`` lifecycle: ``open`` connects
and subscribes, ``close`` tears everything down.  Reconnection is left to
the caller (see ``jobs/okex_trades_job.py``).

Usage::

    import asyncio
    from okex_feed.exchanges.base import TradeFeedListener
    from okex_feed.exchanges.okex import OkexAdapter
    from okex_feed.exchanges.okex_websocket import OkexTradeStream

    class Printer(TradeFeedListener):
        def on_trades(self, trades):
            print(trades)

    catalog = OkexAdapter().fetch_catalog()
    stream = OkexTradeStream(catalog, ["BTCUSD", "BTCUSD-SWAP"], Printer())
    asyncio.run(stream.run())
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from okex_feed.core.models import Catalog
from okex_feed.exchanges.base import ExchangeConnector, TradeFeedListener
from okex_feed.exchanges.okex import InstrumentClassifier
from okex_feed.exchanges.okex_trades import Frame, format_live_trades
from okex_feed.exchanges.trade_dispatcher import DISPATCH_DELAY_MS, TradeDispatcher

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_WS_URL = "wss://real.okex.com:10442/ws/v3"

# OKEx drops idle connections after 30s without a "ping" text frame.
KEEPALIVE_SECS = 30

ERROR_MESSAGE = "Websocket error"


class OkexTradeStream(ExchangeConnector):
    """
    Live trades for a list of canonical pair names.

    Parameters
    ----------
    catalog : Catalog
        Product catalog used to resolve pairs and convert contract sizes.
    pairs : list[str]
        Canonical pair names (``"BTCUSD"``, ``"BTCUSD-SWAP"``) or raw
        instrument ids.  Pairs that do not resolve are skipped.
    listener : TradeFeedListener
        Receives trade batches and lifecycle events.  Called on the
        event-loop thread, must be non-blocking.
    url : str
        WebSocket endpoint.
    keepalive_secs : float
        Interval of the ``"ping"`` keepalive.
    dispatch_delay_ms : float
        Coalescing window for single-trade frames.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(
        self,
        catalog: Catalog,
        pairs: list[str],
        listener: TradeFeedListener,
        url: str = DEFAULT_WS_URL,
        keepalive_secs: float = KEEPALIVE_SECS,
        dispatch_delay_ms: float = DISPATCH_DELAY_MS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.pairs = list(pairs)
        self.listener = listener
        self.url = url
        self.keepalive_secs = keepalive_secs
        self.dispatch_delay_ms = dispatch_delay_ms
        self.logger = logger or logging.getLogger(__name__)
        self._classifier = InstrumentClassifier(catalog)
        self._specs = dict(catalog.specs)
        self._ws = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._dispatcher: Optional[TradeDispatcher] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_instruments(self) -> list[str]:
        """Instrument ids of the requested pairs, unresolved pairs skipped."""
        instruments: list[str] = []
        for pair in self.pairs:
            instrument_id = self._classifier.match_pair_name(pair)
            if instrument_id is None:
                self.logger.warning(f"Unknown pair {pair}, not subscribing.")
                continue
            if instrument_id not in instruments:
                instruments.append(instrument_id)
        return instruments

    def build_subscribe_message(self, instruments: list[str]) -> dict:
        return {
            "op": "subscribe",
            "args": [
                f"{self._classifier.type_of(i).value}/trade:{i}" for i in instruments
            ],
        }

    async def open(self) -> None:
        """Connect, subscribe and start the keepalive."""
        instruments = self.resolve_instruments()
        if not instruments:
            raise ValueError(f"None of the pairs {self.pairs} match the catalog")

        # a fresh dispatcher per connection: nothing pending survives a reconnect
        self._dispatcher = TradeDispatcher(
            self.listener.on_trades,
            delay_ms=self.dispatch_delay_ms,
            loop=asyncio.get_running_loop(),
            logger=self.logger,
        )

        self.logger.info(f"Connecting to {self.url} ({len(instruments)} instruments) …")
        try:
            self._ws = await websockets.connect(self.url, ping_interval=None)
        except (WebSocketException, OSError) as exc:
            self.logger.error(f"Connection to {self.url} failed: {exc}")
            self.listener.on_error(ERROR_MESSAGE)
            raise
        await self._ws.send(json.dumps(self.build_subscribe_message(instruments)))
        self._keepalive_task = asyncio.create_task(self._keepalive())
        self.logger.info("Connected.")
        self.listener.on_open()

    async def listen(self) -> None:
        """Consume frames until the connection closes."""
        ws = self._ws
        try:
            async for frame in ws:
                try:
                    self.handle_frame(frame)
                except Exception as exc:
                    # a failing listener must not end the connection
                    self.logger.error(f"Frame handling error: {exc}", exc_info=True)
        except ConnectionClosedOK:
            pass
        except (ConnectionClosed, OSError) as exc:
            self.logger.error(f"Connection lost: {exc}")
            self.listener.on_error(ERROR_MESSAGE)
        finally:
            self._teardown()
            self.listener.on_close(ws.close_code, ws.close_reason or "")

    async def run(self) -> None:
        """Open and listen until the connection ends."""
        await self.open()
        await self.listen()

    async def close(self) -> None:
        """Stop keepalive and pending dispatch, then close the socket."""
        self._teardown()
        if self._ws is not None:
            await self._ws.close()

    def handle_frame(self, frame: Frame) -> None:
        trades = format_live_trades(frame, self._specs)
        if trades and self._dispatcher is not None:
            self._dispatcher.push(trades)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _teardown(self) -> None:
        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None
        if self._dispatcher is not None:
            self._dispatcher.close()

    async def _keepalive(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_secs)
            try:
                await self._ws.send("ping")
            except ConnectionClosed:
                return
