from __future__ import annotations

import random
from typing import Iterator

def next_backoff(prev: float, cap: float, *, factor: float = 2.0) -> float:
    """Multiplicative backoff progression with cap (no jitter)."""
    return min(prev * factor, cap)

def jitter(v: float, *, ratio: float = 0.2) -> float:
    """
    Add ±ratio jitter. ratio=0.2 -> multiply by [0.8, 1.2].
    """
    lo = 1.0 - ratio
    hi = 1.0 + ratio
    return v * (lo + (hi - lo) * random.random())

def backoff_iter(initial: float = 5.0, cap: float = 30.0, *, factor: float = 1.5) -> Iterator[float]:
    """
    Deterministic (no jitter) iterator of backoff values:
    5, 7.5, 11.25, ... (capped).
    """
    v = initial
    while True:
        yield v
        v = next_backoff(v, cap, factor=factor)
