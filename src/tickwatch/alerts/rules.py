# src/tickwatch/alerts/rules.py
from __future__ import annotations
from dataclasses import dataclass

@dataclass(slots=True)
class MomentumRule:
    """
    Thresholds for a single quote snapshot. A sample fires only if every bound holds:
      min_price <= price <= max_price
      volume >= min_volume
      |change_pct| >= min_change_pct        (percent, 5.0 == 5%)
      relative_volume >= min_relative_volume
    """
    max_price: float = 1000.0
    min_price: float = 0.01
    min_volume: int = 500_000
    min_change_pct: float = 5.0
    min_relative_volume: float = 1.3


@dataclass(slots=True)
class CrossRule:
    """
    Confirmation policy for MACD crosses. Bearish crosses never notify;
    the two flags below are the extra confirmations on a bullish cross.
    """
    require_rising_histogram: bool = True
    require_rising_price: bool = True
    include_divergence: bool = True     # report divergence flags in signal details
