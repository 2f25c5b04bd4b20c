"""
OKEx v3 product catalog: REST client, catalog builder and pair matching.

The catalog is assembled from three instrument lists (spot, swap, futures)
into two maps:

    products   canonical pair name -> instrument id
               "BTCUSD"          -> "BTC-USDT"
               "BTCUSD-SWAP"     -> "BTC-USD-SWAP"
               "BTCUSD-QUARTER"  -> "BTC-USD-200925"
    specs      instrument id -> contract value (derivatives only)

Usage::

    adapter = OkexAdapter()
    catalog = adapter.fetch_catalog()
    classifier = InstrumentClassifier(catalog)
    classifier.match_pair_name("BTCUSD-SWAP")   # "BTC-USD-SWAP"
"""

from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests

from okex_feed.core.models import Catalog, InstrumentType
from okex_feed.exchanges.base import ExchangeAdapter

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
EXCHANGE_ID = "okex"

PRODUCTS_ENDPOINTS = [
    "https://www.okex.com/api/spot/v3/instruments",
    "https://www.okex.com/api/swap/v3/instruments",
    "https://www.okex.com/api/futures/v3/instruments",
]

# Positional: response i of fetch_products() belongs to PRODUCT_TYPES[i].
PRODUCT_TYPES = [InstrumentType.SPOT, InstrumentType.SWAP, InstrumentType.FUTURES]

REQUEST_TIMEOUT = 15
RETRY_ATTEMPTS = 3
RETRY_DELAY = 1

_FUTURES_ID = re.compile(r"\d+$")
_SWAP_ID = re.compile(r"-SWAP$")
_USDT_QUOTE = re.compile(r"usdt$", re.IGNORECASE)
_USDT_ANY = re.compile(r"usdt", re.IGNORECASE)
_USD_QUOTE = re.compile(r"usd$", re.IGNORECASE)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Catalog builder
# ---------------------------------------------------------------------------

def _pair_name(product: dict, product_type: InstrumentType) -> str:
    base = product.get("base_currency") or product["underlying_index"]
    quote = product["quote_currency"]
    if product_type is InstrumentType.SPOT:
        # USDT-quoted spot collapses onto the USD pair
        quote = _USDT_QUOTE.sub("USD", quote)
    return (base + quote).upper()


def build_catalog(responses: list[list[dict]]) -> Catalog:
    """Build a Catalog from the spot, swap and futures instrument lists.

    Entries missing a required field (or with a non-numeric contract value)
    are skipped.
    """
    products: dict[str, str] = {}
    specs: dict[str, float] = {}

    for product_type, data in zip(PRODUCT_TYPES, responses):
        for product in data or []:
            try:
                instrument_id = product["instrument_id"]
                pair = _pair_name(product, product_type)

                if product_type is InstrumentType.SPOT:
                    products[pair] = instrument_id
                elif product_type is InstrumentType.SWAP:
                    contract_val = float(product["contract_val"])
                    products[pair + "-SWAP"] = instrument_id
                    specs[instrument_id] = contract_val
                else:
                    contract_val = float(product["contract_val"])
                    products[pair + "-" + product["alias"].upper()] = instrument_id
                    specs[instrument_id] = contract_val
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.debug(f"Skipping malformed {product_type.value} product {product!r}: {exc}")

    return Catalog(products=products, specs=specs)


# ---------------------------------------------------------------------------
# Instrument classification
# ---------------------------------------------------------------------------

def classify_instrument_id(instrument_id: str) -> InstrumentType:
    """Market type from the id shape: BTC-USD-200925, BTC-USD-SWAP, BTC-USDT."""
    if _FUTURES_ID.search(instrument_id):
        return InstrumentType.FUTURES
    if _SWAP_ID.search(instrument_id):
        return InstrumentType.SWAP
    return InstrumentType.SPOT


class InstrumentClassifier:
    """
    Resolves requested pair names against a catalog and remembers the
    market type of every instrument it resolved.

    Parameters
    ----------
    catalog : Catalog
        Product catalog to match against.
    """

    def __init__(self, catalog: Catalog) -> None:
        self._products = dict(catalog.products)
        self._types: dict[str, InstrumentType] = {}

    def match_pair_name(self, pair: str) -> Optional[str]:
        """
        Resolve *pair* to an instrument id, or ``None`` when nothing matches.

        Tries the exact name, then the name with USDT and USD swapped, then
        accepts *pair* if it already is an instrument id (first match wins).
        """
        instrument_id = self._products.get(pair) or self._products.get(self._swap_stablecoin(pair))

        if not instrument_id:
            for value in self._products.values():
                if value == pair:
                    instrument_id = value
                    break

        if not instrument_id:
            return None

        self._types[instrument_id] = classify_instrument_id(instrument_id)
        return instrument_id

    @staticmethod
    def _swap_stablecoin(pair: str) -> str:
        # BTCUSDT -> BTCUSD, and BTCUSD -> BTCUSDT for catalogs keyed on USDT
        if _USDT_ANY.search(pair):
            return _USDT_ANY.sub("USD", pair, count=1)
        return _USD_QUOTE.sub("USDT", pair)

    def type_of(self, instrument_id: str) -> Optional[InstrumentType]:
        return self._types.get(instrument_id)


# ---------------------------------------------------------------------------
# REST adapter
# ---------------------------------------------------------------------------

class OkexAdapter(ExchangeAdapter):
    """
    Fetches the OKEx instrument lists and turns them into a Catalog.

    Parameters
    ----------
    endpoints : list[str]
        Spot, swap and futures instrument URLs, in that order.
    session : requests.Session, optional
        HTTP session (a new one is created if omitted).
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(
        self,
        endpoints: Optional[list[str]] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.endpoints = list(endpoints or PRODUCTS_ENDPOINTS)
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def _get_json(self, url: str) -> list:
        """GET with retries, return parsed JSON."""
        for attempt in range(1, RETRY_ATTEMPTS + 1):
            try:
                resp = self.session.get(url, timeout=REQUEST_TIMEOUT)
                resp.raise_for_status()
                return resp.json()
            except requests.RequestException as exc:
                if attempt == RETRY_ATTEMPTS:
                    raise
                self.logger.warning(
                    f"GET {url} failed ({exc}), retry {attempt}/{RETRY_ATTEMPTS - 1}"
                )
                time.sleep(RETRY_DELAY * attempt)

    def fetch_products(self) -> list[list]:
        """Fetch the three instrument lists in parallel, order preserved."""
        with ThreadPoolExecutor(max_workers=len(self.endpoints)) as pool:
            return list(pool.map(self._get_json, self.endpoints))

    def format_products(self, responses: list[list]) -> Catalog:
        return build_catalog(responses)

    def fetch_catalog(self) -> Catalog:
        catalog = self.format_products(self.fetch_products())
        self.logger.info(
            f"Loaded {len(catalog.products)} products "
            f"({len(catalog.specs)} with contract specs)"
        )
        return catalog
