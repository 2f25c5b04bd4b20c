from abc import ABC, abstractmethod
from typing import List
from okex_feed.core.models import Catalog, Trade

class ExchangeAdapter(ABC):

    # Catalog Methods
    @abstractmethod
    def fetch_products(self) -> List[list]:
        pass

    @abstractmethod
    def format_products(self, responses: List[list]) -> Catalog:
        pass

    @abstractmethod
    def fetch_catalog(self) -> Catalog:
        pass


class ExchangeConnector(ABC):
    """Lifecycle interface driven by the surrounding framework."""

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class TradeFeedListener:
    """Receives everything a connector emits. Override what you need."""

    def on_trades(self, trades: List[Trade]) -> None:
        pass

    def on_open(self) -> None:
        pass

    def on_close(self, code: int | None, reason: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass
