"""
Decoding and normalization of OKEx v3 trade frames.

Frames arrive either as text JSON or as raw-DEFLATE compressed JSON in a
binary frame.  Both carry::

    {"table": "spot/trade",
     "data": [{"instrument_id": "BTC-USDT", "price": "100", "size": "2",
               "side": "buy", "timestamp": "2020-01-01T00:00:00.000Z"}]}

Derivative trades report ``size``/``qty`` in contracts; they are converted
to base-asset size with the instrument's contract value.
"""

from __future__ import annotations

import json
import logging
import math
import zlib
from typing import Any, Mapping, Optional, Union

import pandas as pd

from okex_feed.core.models import Trade
from okex_feed.exchanges.okex import EXCHANGE_ID

Frame = Union[str, bytes, bytearray, memoryview]

# upper bound on an inflated frame; trade pushes are a few KB
MAX_INFLATED_BYTES = 1 << 20

logger = logging.getLogger(__name__)


def _inflate_raw(payload: bytes) -> str:
    # negative wbits: raw deflate stream, no zlib header
    inflater = zlib.decompressobj(-zlib.MAX_WBITS)
    data = inflater.decompress(payload, MAX_INFLATED_BYTES)
    if inflater.unconsumed_tail:
        raise ValueError(f"frame inflates past {MAX_INFLATED_BYTES} bytes")
    if not inflater.eof:
        raise zlib.error("incomplete or truncated stream")
    return data.decode("utf-8")


def _to_ms(timestamp: Any) -> int:
    ts = pd.Timestamp(timestamp)
    if pd.isna(ts):
        raise ValueError(f"Cannot parse timestamp: {timestamp!r}")
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int(ts.value // 1_000_000)


def decode_frame(frame: Frame) -> Optional[dict]:
    """Parse one wire frame, or return ``None`` if it carries no trades."""
    try:
        if isinstance(frame, str):
            message = json.loads(frame)
        else:
            message = json.loads(_inflate_raw(bytes(frame)))
    except (ValueError, TypeError, zlib.error) as exc:
        logger.debug(f"Undecodable frame dropped: {exc}")
        return None

    if not isinstance(message, dict):
        return None
    data = message.get("data")
    if not isinstance(data, list) or not data:
        return None
    return message


def normalize_trade(trade: Mapping[str, Any], specs: Mapping[str, float]) -> Trade:
    """Convert one raw trade entry into a Trade.

    Raises KeyError/ValueError/TypeError on entries missing price or
    timestamp, or with values that are not finite numbers.
    """
    price = float(trade["price"])
    if not math.isfinite(price):
        raise ValueError(f"non-finite price {price}")
    quantity = trade.get("size")
    if quantity is None:
        quantity = trade.get("qty")
    quantity = float(quantity)
    if not math.isfinite(quantity):
        raise ValueError(f"non-finite quantity {quantity}")

    contract_val = specs.get(trade.get("instrument_id"))
    if contract_val is not None:
        if price <= 0:
            raise ValueError(f"non-positive price {price} for contract conversion")
        size = quantity * contract_val / price
    else:
        size = quantity

    return Trade(
        exchange=EXCHANGE_ID,
        ts=_to_ms(trade["timestamp"]),
        price=price,
        size=size,
        side=1 if trade.get("side") == "buy" else 0,
    )


def format_live_trades(frame: Frame, specs: Mapping[str, float]) -> Optional[list[Trade]]:
    """Decode *frame* and normalize its trades, ``None`` if there are none."""
    message = decode_frame(frame)
    if message is None:
        return None

    trades = []
    for raw in message["data"]:
        try:
            trades.append(normalize_trade(raw, specs))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.debug(f"Skipping malformed trade {raw!r}: {exc}")

    return trades or None
