from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Optional

import numpy as np

from tickwatch.utils.errors import InvalidSymbol

# ---- symbols ----

SYMBOL_RE = re.compile(r"^[A-Z0-9.\-]{1,8}$")

def normalize_symbol(raw: str) -> str:
    """Trim + uppercase; raise InvalidSymbol if the result is not a ticker."""
    sym = (raw or "").strip().upper()
    if not SYMBOL_RE.match(sym):
        raise InvalidSymbol("Invalid ticker format", {"symbol": raw})
    return sym

# ---- market data primitives ----

@dataclass(slots=True, frozen=True)
class Sample:
    """One quote observation for a symbol."""
    symbol: str
    price: float
    timestamp: float                        # epoch seconds
    volume: Optional[int] = None
    change_pct: Optional[float] = None
    relative_volume: Optional[float] = None

    def as_details(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "change_pct": self.change_pct,
            "volume": self.volume,
            "relative_volume": self.relative_volume,
        }


@dataclass(slots=True, frozen=True, eq=False)
class PriceHistory:
    """
    Closing prices for one symbol, oldest first.
    epochs must be strictly increasing; volumes (if present) aligned with closes.
    """
    symbol: str
    epochs: np.ndarray        # int64
    closes: np.ndarray        # float64
    volumes: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if self.epochs.shape != self.closes.shape:
            raise ValueError("epochs and closes must be the same length")
        if self.volumes is not None and self.volumes.shape != self.closes.shape:
            raise ValueError("volumes must align with closes")
        if self.epochs.size > 1 and not np.all(np.diff(self.epochs) > 0):
            raise ValueError("epochs must be strictly increasing")

    def __len__(self) -> int:
        return int(self.closes.size)

    @classmethod
    def from_points(
        cls,
        symbol: str,
        points: Iterable[tuple[int, float, Optional[float]]],
    ) -> "PriceHistory":
        """
        Build from (epoch, close, volume) tuples in any order.
        Duplicate epochs keep the last one seen.
        """
        by_epoch: dict[int, tuple[float, Optional[float]]] = {}
        for ep, c, v in points:
            by_epoch[int(ep)] = (float(c), v)
        eps = sorted(by_epoch)
        closes = np.array([by_epoch[e][0] for e in eps], dtype=np.float64)
        vols_raw = [by_epoch[e][1] for e in eps]
        volumes = None
        if eps and all(v is not None for v in vols_raw):
            volumes = np.array(vols_raw, dtype=np.float64)
        return cls(symbol, np.array(eps, dtype=np.int64), closes, volumes)

# ---- signal / alert domain ----

CrossEvent = Literal["bullish", "bearish", "none"]
Divergence = Literal["bullish", "bearish"]
IntentKind = Literal["cross", "momentum"]


@dataclass(slots=True, frozen=True)
class NotificationIntent:
    symbol: str
    kind: IntentKind
    timestamp: float
    alert_number: int = 1
    signal_details: dict[str, Any] = field(default_factory=dict)
    sample_details: dict[str, Any] = field(default_factory=dict)
