from dataclasses import dataclass, field
from enum import Enum

@dataclass(frozen=True)
class Trade:
    exchange: str   # source id, e.g. "okex"
    ts: int         # UTC timestamp (milliseconds since epoch)
    price: float
    size: float     # base-asset size (contracts already converted)
    side: int       # 1 = buy, 0 = sell

    def to_row(self) -> tuple:
        return (self.exchange, self.ts, self.price, self.size, self.side)

class InstrumentType(Enum):
    SPOT = "spot"
    SWAP = "swap"
    FUTURES = "futures"

@dataclass
class Catalog:
    products: dict[str, str] = field(default_factory=dict)  # pair name -> instrument id
    specs: dict[str, float] = field(default_factory=dict)   # instrument id -> contract value
