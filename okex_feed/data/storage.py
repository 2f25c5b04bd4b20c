"""
Local persistence of the OKEx product catalog.

The catalog is stored as one JSON file::

    {
      "schema_version": 2,
      "exchange": "okex",
      "updated_at": 1572998400000,
      "products": {"BTCUSD": "BTC-USDT", ...},
      "specs": {"BTC-USD-SWAP": 100.0, ...}
    }

``load`` only returns catalogs written with the current schema.  Files
from older versions (version 1 stored ``products`` without ``specs``, so
derivative sizes could not be converted) are discarded and the caller is
expected to fetch a new catalog.

Usage::

    storage = CatalogStorage("data/catalog/okex_catalog.json", max_age_hours=24)
    catalog = storage.load()
    if catalog is None:
        catalog = OkexAdapter().fetch_catalog()
        storage.save(catalog)
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

from okex_feed.core.models import Catalog
from okex_feed.exchanges.okex import EXCHANGE_ID

SCHEMA_VERSION = 2


def _now_ms() -> int:
    return int(time.time() * 1000.0)


class CatalogStorage:
    """
    Parameters
    ----------
    path : str | Path
        JSON file holding the catalog.
    max_age_hours : float, optional
        Stored catalogs older than this are treated as missing.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(
        self,
        path: str | Path,
        max_age_hours: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.path = Path(path)
        self.max_age_hours = max_age_hours
        self.logger = logger or logging.getLogger(__name__)

    def save(self, catalog: Catalog) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump({
                'schema_version': SCHEMA_VERSION,
                'exchange': EXCHANGE_ID,
                'updated_at': _now_ms(),
                'products': catalog.products,
                'specs': catalog.specs,
            }, f, indent=2)
        self.logger.info(f"Saved {len(catalog.products)} products to {self.path}")
        return self.path

    def load(self) -> Optional[Catalog]:
        """Return the stored catalog, or ``None`` if it must be refetched."""
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            self.logger.warning(f"Unreadable catalog {self.path}: {exc}")
            return None

        if not isinstance(data, dict):
            self.logger.warning(f"Discarding catalog {self.path}: not a JSON object")
            return None

        version = data.get('schema_version', 1)
        if version != SCHEMA_VERSION or not isinstance(data.get('specs'), dict):
            self.logger.info(
                f"Discarding catalog {self.path}: schema v{version}, expected v{SCHEMA_VERSION}"
            )
            return None

        if self.max_age_hours is not None:
            updated_at = data.get('updated_at')
            age_ms = _now_ms() - (updated_at if isinstance(updated_at, int) else 0)
            if age_ms > self.max_age_hours * 3_600_000:
                self.logger.info(f"Catalog {self.path} is stale ({age_ms / 3_600_000:.1f}h old)")
                return None

        products = data.get('products')
        if not isinstance(products, dict):
            self.logger.warning(f"Discarding catalog {self.path}: no products")
            return None

        try:
            specs = {str(k): float(v) for k, v in data['specs'].items()}
        except (TypeError, ValueError) as exc:
            self.logger.warning(f"Discarding catalog {self.path}: bad contract value ({exc})")
            return None

        return Catalog(products={str(k): str(v) for k, v in products.items()}, specs=specs)
