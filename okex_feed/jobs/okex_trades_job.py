"""Trades Job

Streams live OKEx trades for the configured pairs.

The job:
1. Reads configuration from config/okex_trades_job_config.json
2. Loads the stored product catalog before every (re)open, refetching it
   when missing or stale
3. Opens the OKEx trade stream and logs every emitted batch
4. Optionally appends batches to a CSV file (trades_csv_path)
5. Reopens the stream after reconnect_delay_secs when the connection drops,
   the catalog fetch fails, or no configured pair resolves

Usage:
    python -m okex_feed.jobs.okex_trades_job [config_path]
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import requests
from websockets.exceptions import WebSocketException

from okex_feed.core.models import Catalog, Trade
from okex_feed.data.storage import CatalogStorage
from okex_feed.exchanges.base import TradeFeedListener
from okex_feed.exchanges.okex import OkexAdapter
from okex_feed.exchanges.okex_websocket import DEFAULT_WS_URL, KEEPALIVE_SECS, OkexTradeStream
from okex_feed.exchanges.trade_dispatcher import DISPATCH_DELAY_MS
from okex_feed.helpers.data_helper import append_trades_to_csv
from okex_feed.utils.logger import setup_logger

DEFAULT_CONFIG_PATH = "config/okex_trades_job_config.json"

DEFAULTS = {
    "pairs": ["BTCUSD"],
    "ws_url": DEFAULT_WS_URL,
    "keepalive_secs": KEEPALIVE_SECS,
    "dispatch_delay_ms": DISPATCH_DELAY_MS,
    "reconnect_delay_secs": 5,
    "catalog_path": "data/catalog/okex_catalog.json",
    "catalog_max_age_hours": 24,
    "trades_csv_path": None,
    "log_path": "logs/okex_trades_job.log",
}


def load_config(config_path: str) -> dict:
    """Load configuration from JSON file, filling in defaults.

    Args:
        config_path: Path to config JSON file

    Returns:
        Dictionary with configuration parameters
    """
    with open(config_path, 'r') as f:
        config = json.load(f)
    return {**DEFAULTS, **config}


def load_catalog(config: dict, logger: logging.Logger, adapter: Optional[OkexAdapter] = None) -> Catalog:
    """Stored catalog if fresh, otherwise fetch and store a new one."""
    storage = CatalogStorage(
        config["catalog_path"],
        max_age_hours=config["catalog_max_age_hours"],
        logger=logger,
    )
    catalog = storage.load()
    if catalog is not None:
        logger.info(f"Using stored catalog {config['catalog_path']}")
        return catalog

    catalog = (adapter or OkexAdapter(logger=logger)).fetch_catalog()
    storage.save(catalog)
    return catalog


class LoggingTradeListener(TradeFeedListener):
    """Logs each batch and appends it to a CSV sink when one is configured."""

    def __init__(self, logger: logging.Logger, csv_path: Optional[str] = None) -> None:
        self.logger = logger
        self.csv_path = csv_path
        self.trade_count = 0

    def on_trades(self, trades: list[Trade]) -> None:
        self.trade_count += len(trades)
        last = trades[-1]
        self.logger.info(
            f"{len(trades)} trade(s), last {last.price} x {last.size:.8f} "
            f"{'buy' if last.side else 'sell'} @ {last.ts}"
        )
        if self.csv_path:
            append_trades_to_csv(trades, self.csv_path)

    def on_open(self) -> None:
        self.logger.info("Stream open.")

    def on_close(self, code, reason) -> None:
        self.logger.info(f"Stream closed (code={code}, reason={reason!r}).")

    def on_error(self, message: str) -> None:
        self.logger.error(message)


async def run_trades_job(
    config: dict, logger: logging.Logger, adapter: Optional[OkexAdapter] = None
) -> None:
    """Run the stream forever, reopening it after each disconnect.

    The catalog is reloaded before every open so rolled futures aliases
    resolve to the current instruments.
    """
    listener = LoggingTradeListener(logger, config["trades_csv_path"])
    delay = config["reconnect_delay_secs"]

    while True:
        try:
            # blocking HTTP when the stored catalog is stale
            catalog = await asyncio.to_thread(load_catalog, config, logger, adapter)
        except requests.RequestException as exc:
            logger.error(f"Catalog refresh failed ({exc}).")
        else:
            stream = OkexTradeStream(
                catalog,
                config["pairs"],
                listener,
                url=config["ws_url"],
                keepalive_secs=config["keepalive_secs"],
                dispatch_delay_ms=config["dispatch_delay_ms"],
                logger=logger,
            )
            try:
                await stream.run()
            except (WebSocketException, OSError) as exc:
                logger.warning(f"Stream failed ({exc}).")
            except ValueError as exc:
                logger.error(f"Stream not opened: {exc}")
            finally:
                await stream.close()

        logger.warning(f"Reconnecting in {delay}s …")
        await asyncio.sleep(delay)


def main(config_path: str = DEFAULT_CONFIG_PATH) -> None:
    config = load_config(config_path)
    logger = setup_logger("okex_trades_job", config["log_path"])
    try:
        asyncio.run(run_trades_job(config, logger))
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping.")


if __name__ == "__main__":
    main(*sys.argv[1:2])
