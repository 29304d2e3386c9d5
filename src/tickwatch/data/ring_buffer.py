from __future__ import annotations

from typing import Callable, Hashable, Optional

import numpy as np

from tickwatch.utils.types import PriceHistory


class RingView:
    """
    Zero-copy view of last N points.
    - If the buffer hasn't wrapped, slices is [one (epoch, close, volume) tuple].
    - If it has wrapped, slices is [seg1, seg2] in time order.
    """
    __slots__ = ("slices", "length")
    def __init__(self, slices: list[tuple[np.ndarray, ...]] | None, length: int):
        self.slices = slices or []
        self.length = length


class SeriesBuffer:
    """
    Fixed-size circular buffer of (epoch, close, volume) for one symbol.
    Timestamps are kept strictly increasing. append() is the streaming path
    (same epoch replaces, older is dropped); merge() folds in a whole fetched
    window, older epochs included.
    Volume is NaN where the source did not provide one.
    """
    __slots__ = ("symbol", "capacity", "size", "head", "epoch", "c", "v")
    def __init__(self, symbol: str, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be >= 1")
        self.symbol = symbol
        self.capacity = int(capacity)
        self.size = 0
        self.head = 0  # next write index
        self.epoch = np.empty(self.capacity, dtype=np.int64)
        self.c = np.empty(self.capacity, dtype=np.float64)
        self.v = np.empty(self.capacity, dtype=np.float64)

    def __len__(self) -> int:
        return self.size

    def last_epoch(self) -> int | None:
        if self.size == 0:
            return None
        idx = (self.head - 1) % self.capacity
        return int(self.epoch[idx])

    def append(self, epoch: int, close: float, volume: Optional[float] = None) -> bool:
        """Returns False if the point was older than the newest one and dropped."""
        vol = np.nan if volume is None else float(volume)
        last = self.last_epoch()
        if last is not None:
            if epoch < last:
                return False
            if epoch == last:
                i = (self.head - 1) % self.capacity
                self.c[i] = close
                self.v[i] = vol
                return True
        i = self.head
        self.epoch[i] = epoch
        self.c[i] = close
        self.v[i] = vol
        self.head = (i + 1) % self.capacity
        if self.size < self.capacity:
            self.size += 1
        return True

    def clear(self) -> None:
        self.size = 0
        self.head = 0

    def merge(self, history: PriceHistory, bar_key: Optional[Callable[[int], Hashable]] = None) -> int:
        """
        Union of the buffered points and a fetched history, keyed by epoch.
        Fetched values win, including epochs older than the newest buffered one.

        bar_key maps an epoch to the bar it belongs to (e.g. its session day).
        Points sharing a key collapse to one: a fetched point beats a buffered
        one, then the newest epoch wins. The newest `capacity` points are kept.
        Returns the resulting length.
        """
        # epoch -> (fetched, close, volume)
        points: dict[int, tuple[bool, float, Optional[float]]] = {}
        for ep, c, v in self.view_last(self.size).slices:
            for i in range(ep.size):
                vol = None if np.isnan(v[i]) else float(v[i])
                points[int(ep[i])] = (False, float(c[i]), vol)
        vols = history.volumes
        for i in range(len(history)):
            vol = None if vols is None else float(vols[i])
            points[int(history.epochs[i])] = (True, float(history.closes[i]), vol)

        epochs = sorted(points)
        if bar_key is not None:
            chosen: dict[Hashable, int] = {}
            for ep in epochs:
                key = bar_key(ep)
                cur = chosen.get(key)
                if cur is None or points[ep][0] >= points[cur][0]:
                    chosen[key] = ep
            epochs = sorted(chosen.values())

        self.clear()
        for ep in epochs[-self.capacity:]:
            _, c, v = points[ep]
            self.append(ep, c, v)
        return self.size

    def view_last(self, n: int) -> RingView:
        """
        Return up to last n points as zero-copy slices in time order:
          [(epoch_slice, close_slice, volume_slice), ...]
        """
        if self.size == 0:
            return RingView([], 0)
        n = int(n)
        if n <= 0:
            return RingView([], 0)
        n = min(n, self.size)

        end = self.head  # exclusive
        start = (end - n) % self.capacity

        if start < end:
            sl = slice(start, end)
            return RingView([(self.epoch[sl], self.c[sl], self.v[sl])], n)
        # wrapped: [start..cap) + [0..end)
        sl1 = slice(start, self.capacity)
        sl2 = slice(0, end)
        return RingView(
            [
                (self.epoch[sl1], self.c[sl1], self.v[sl1]),
                (self.epoch[sl2], self.c[sl2], self.v[sl2]),
            ],
            n,
        )

    def history(self) -> PriceHistory:
        """Stitch the buffered points into a contiguous PriceHistory copy."""
        view = self.view_last(self.size)
        if view.length == 0:
            empty_i = np.empty(0, dtype=np.int64)
            return PriceHistory(self.symbol, empty_i, np.empty(0, dtype=np.float64))
        ep = np.concatenate([s[0] for s in view.slices]).astype(np.int64)
        c = np.concatenate([s[1] for s in view.slices]).astype(np.float64)
        v = np.concatenate([s[2] for s in view.slices]).astype(np.float64)
        volumes = None if np.isnan(v).any() else v
        return PriceHistory(self.symbol, ep, c, volumes)
