"""Products Data Job

This job refreshes the OKEx product catalog (spot, swap and futures
instruments) and stores it for the trades job.

The job:
1. Fetches the three instrument lists from the OKEx v3 REST API
2. Builds the pair-name -> instrument-id map and the contract-value specs
3. Saves the catalog to data/catalog/okex_catalog.json

If the fetch fails the previously stored catalog is left untouched.
Designed to run daily via scheduled task/cron (futures aliases roll weekly).
"""

import sys
from collections import Counter
from datetime import datetime
from typing import Optional

import requests

from okex_feed.core.models import Catalog
from okex_feed.data.storage import CatalogStorage
from okex_feed.exchanges.okex import OkexAdapter, classify_instrument_id

DEFAULT_CATALOG_PATH = "data/catalog/okex_catalog.json"


def refresh_catalog(
    catalog_path: str = DEFAULT_CATALOG_PATH,
    adapter: Optional[OkexAdapter] = None,
) -> Optional[Catalog]:
    """Fetch and store a new catalog.

    Returns:
        The new Catalog, or None if the exchange could not be reached
    """
    adapter = adapter or OkexAdapter()
    try:
        print("Fetching OKEx instruments...")
        catalog = adapter.fetch_catalog()
    except requests.RequestException as e:
        print(f"  ✗ Error fetching instruments: {str(e)}")
        return None

    CatalogStorage(catalog_path).save(catalog)
    print(f"  ✓ Saved {len(catalog.products)} products to {catalog_path}")
    return catalog


def summarize(catalog: Catalog) -> dict[str, int]:
    """Count catalog entries per instrument type."""
    counts = Counter(classify_instrument_id(i).value for i in catalog.products.values())
    return {t: counts.get(t, 0) for t in ("spot", "swap", "futures")}


def main(catalog_path: str = DEFAULT_CATALOG_PATH) -> int:
    """Main entry point for the products data job."""
    print("=" * 60)
    print("Products Data Job - OKEx")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 60)

    catalog = refresh_catalog(catalog_path)

    print("\n" + "=" * 60)
    print("Summary:")
    if catalog is None:
        print("  FAILED (stored catalog kept)")
    else:
        for venue_type, count in summarize(catalog).items():
            print(f"  {venue_type:8s}: {count:5d} instruments")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 60)
    return 0 if catalog is not None else 1


if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
