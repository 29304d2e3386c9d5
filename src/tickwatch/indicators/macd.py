# src/tickwatch/indicators/macd.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from tickwatch.utils.errors import InsufficientHistory
from tickwatch.utils.types import CrossEvent, Divergence, PriceHistory

# ----------------------------
# Parameter presets
# ----------------------------
DEFAULT_MACD      = (12, 26, 9)    # classic MACD in bar units
DEFAULT_LOOKBACK  = 6              # extrema window radius for divergence


# ============================================================
# Batch compute helpers (NaN marks "not yet defined")
# ============================================================

def compute_ema_series(x: np.ndarray, periods: int) -> np.ndarray:
    """
    EMA seeded with the simple mean of the first `periods` values of the
    leading defined run of `x`. Leading NaNs are treated as not-yet-started.
    Output is NaN before the seed index.
    """
    if periods <= 0:
        raise ValueError("periods must be >= 1")
    out = np.full(x.shape, np.nan, dtype=np.float64)
    if x.size == 0:
        return out
    defined = np.flatnonzero(~np.isnan(x))
    if defined.size == 0:
        return out
    start = int(defined[0])
    seed = start + periods - 1
    if seed >= x.size:
        return out

    alpha = 2.0 / (periods + 1.0)
    out[seed] = float(np.mean(x[start:seed + 1]))
    for i in range(seed + 1, x.size):
        out[i] = x[i] * alpha + out[i - 1] * (1.0 - alpha)
    return out


@dataclass(slots=True, eq=False)
class IndicatorFrame:
    """Per-index arrays aligned with the source closes."""
    fast_ema: np.ndarray
    slow_ema: np.ndarray
    macd: np.ndarray
    signal: np.ndarray
    histogram: np.ndarray

    def defined_indices(self) -> np.ndarray:
        """Indices where both MACD and signal hold values."""
        return np.flatnonzero(~np.isnan(self.macd) & ~np.isnan(self.signal))


def compute_macd_frame(c: np.ndarray, fast: int, slow: int, signal: int) -> IndicatorFrame:
    ema_fast = compute_ema_series(c, fast)
    ema_slow = compute_ema_series(c, slow)
    macd = ema_fast - ema_slow                       # NaN until slow is seeded
    signal_line = compute_ema_series(macd, signal)   # seeded on the defined MACD run
    hist = macd - signal_line
    return IndicatorFrame(ema_fast, ema_slow, macd, signal_line, hist)


def detect_cross(frame: IndicatorFrame) -> CrossEvent:
    idxs = frame.defined_indices()
    if idxs.size < 2:
        return "none"
    i, p = int(idxs[-1]), int(idxs[-2])
    m0, s0 = frame.macd[p], frame.signal[p]
    m1, s1 = frame.macd[i], frame.signal[i]
    if m0 < s0 and m1 > s1:
        return "bullish"
    if m0 > s0 and m1 < s1:
        return "bearish"
    return "none"


def find_local_extrema(c: np.ndarray, lookback: int = DEFAULT_LOOKBACK) -> Tuple[List[int], List[int]]:
    """
    Return (highs, lows): interior indices whose value is strictly above
    (below) every other value within +/- lookback.
    """
    highs: List[int] = []
    lows: List[int] = []
    n = c.size
    for i in range(lookback, n - lookback):
        window = np.concatenate((c[i - lookback:i], c[i + 1:i + lookback + 1]))
        if window.size == 0:
            continue
        if c[i] > window.max():
            highs.append(i)
        elif c[i] < window.min():
            lows.append(i)
    return highs, lows


def detect_divergence(c: np.ndarray, macd: np.ndarray, lookback: int = DEFAULT_LOOKBACK) -> Tuple[Divergence, ...]:
    """
    Compare the two most recent local highs (bearish) and lows (bullish)
    against MACD at the same indices. Best-effort heuristic, no confirmation.
    """
    highs, lows = find_local_extrema(c, lookback)
    found: List[Divergence] = []

    if len(highs) >= 2:
        i1, i2 = highs[-2], highs[-1]
        if not (math.isnan(macd[i1]) or math.isnan(macd[i2])):
            if c[i2] > c[i1] and macd[i2] < macd[i1]:
                found.append("bearish")

    if len(lows) >= 2:
        i1, i2 = lows[-2], lows[-1]
        if not (math.isnan(macd[i1]) or math.isnan(macd[i2])):
            if c[i2] < c[i1] and macd[i2] > macd[i1]:
                found.append("bullish")

    return tuple(found)


# ============================================================
# Engine (stateless; one call per fetched history)
# ============================================================

@dataclass(slots=True)
class MacdConfig:
    fast: int = DEFAULT_MACD[0]
    slow: int = DEFAULT_MACD[1]
    signal: int = DEFAULT_MACD[2]
    divergence_lookback: int = DEFAULT_LOOKBACK

    def __post_init__(self) -> None:
        if min(self.fast, self.slow, self.signal) <= 0:
            raise ValueError("MACD periods must be positive")
        if self.fast >= self.slow:
            raise ValueError("fast period must be shorter than slow period")

    @property
    def min_history(self) -> int:
        return self.slow + self.signal + 2


@dataclass(slots=True, eq=False)
class IndicatorReading:
    frame: IndicatorFrame
    cross: CrossEvent
    divergences: Tuple[Divergence, ...]
    histogram_rising: bool
    price_rising: bool
    last_price: float
    prev_price: float
    macd: float
    signal: float
    histogram: float

    def as_details(self) -> dict:
        return {
            "cross": self.cross,
            "divergences": list(self.divergences),
            "macd": round(self.macd, 6),
            "signal": round(self.signal, 6),
            "histogram": round(self.histogram, 6),
            "histogram_rising": self.histogram_rising,
            "price_rising": self.price_rising,
        }


class MacdEngine:
    """
    Computes the MACD frame, last cross and divergence flags for a PriceHistory.
    Raises InsufficientHistory when the history is shorter than slow + signal + 2.
    """

    def __init__(self, cfg: Optional[MacdConfig] = None):
        self.cfg = cfg or MacdConfig()

    def evaluate(self, history: PriceHistory) -> IndicatorReading:
        c = history.closes
        need = self.cfg.min_history
        if c.size < need:
            raise InsufficientHistory(
                "Not enough history for MACD",
                {"symbol": history.symbol, "have": int(c.size), "need": need},
            )

        frame = compute_macd_frame(c, self.cfg.fast, self.cfg.slow, self.cfg.signal)
        idxs = frame.defined_indices()
        i, p = int(idxs[-1]), int(idxs[-2])

        return IndicatorReading(
            frame=frame,
            cross=detect_cross(frame),
            divergences=detect_divergence(c, frame.macd, self.cfg.divergence_lookback),
            histogram_rising=bool(frame.histogram[i] > frame.histogram[p]),
            price_rising=bool(c[-1] > c[-2]),
            last_price=float(c[-1]),
            prev_price=float(c[-2]),
            macd=float(frame.macd[i]),
            signal=float(frame.signal[i]),
            histogram=float(frame.histogram[i]),
        )
