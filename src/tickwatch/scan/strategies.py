from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import structlog

from tickwatch.alerts.rules import CrossRule, MomentumRule
from tickwatch.data.ring_buffer import SeriesBuffer
from tickwatch.indicators.macd import MacdEngine
from tickwatch.indicators.momentum import check_momentum
from tickwatch.ingest.yahoo import DataSource
from tickwatch.utils.time import local_day
from tickwatch.utils.types import IntentKind, PriceHistory, Sample

log = structlog.get_logger("strategy")


@dataclass(slots=True, frozen=True)
class Verdict:
    fire: bool
    reason: str
    signal_details: dict[str, Any] = field(default_factory=dict)
    sample_details: dict[str, Any] = field(default_factory=dict)


class MomentumStrategy:
    """Threshold mode: one quote snapshot per symbol, checked against a MomentumRule."""
    kind: IntentKind = "momentum"

    def __init__(self, rule: Optional[MomentumRule] = None):
        self.rule = rule or MomentumRule()

    async def fetch(self, source: DataSource, symbol: str, now: float) -> Sample:
        return await source.fetch_snapshot(symbol)

    def evaluate(self, symbol: str, sample: Sample) -> Verdict:
        ok, reason = check_momentum(sample, self.rule)
        return Verdict(
            fire=ok,
            reason=reason,
            signal_details={"reason": reason},
            sample_details=sample.as_details(),
        )


class MacdCrossStrategy:
    """
    Cross/divergence mode. Fetched bars are merged into a per-symbol
    SeriesBuffer sized for the slowest indicator, then run through the MACD engine.
    Notifies only on a bullish cross with a rising histogram and a rising last close.
    """
    kind: IntentKind = "cross"

    def __init__(
        self,
        engine: Optional[MacdEngine] = None,
        rule: Optional[CrossRule] = None,
        *,
        interval: str = "1d",
        lookback_seconds: float = 120 * 86_400,
        margin: Optional[int] = None,
        session_tz: str = "America/New_York",
    ):
        self.engine = engine or MacdEngine()
        self.rule = rule or CrossRule()
        self.interval = interval
        self.lookback_seconds = lookback_seconds
        self.session_tz = session_tz
        cfg = self.engine.cfg
        # room for two extrema windows on top of the MACD warmup
        self.margin = margin if margin is not None else 2 * cfg.divergence_lookback + 2
        self.capacity = cfg.min_history + self.margin
        self.buffers: dict[str, SeriesBuffer] = {}

    def buffer_for(self, symbol: str) -> SeriesBuffer:
        buf = self.buffers.get(symbol)
        if buf is None:
            buf = SeriesBuffer(symbol, self.capacity)
            self.buffers[symbol] = buf
        return buf

    def _session_day(self, epoch: int) -> date:
        return local_day(epoch, self.session_tz)

    async def fetch(self, source: DataSource, symbol: str, now: float) -> PriceHistory:
        return await source.fetch_history(symbol, self.interval, now - self.lookback_seconds, now)

    def evaluate(self, symbol: str, history: PriceHistory) -> Verdict:
        buf = self.buffer_for(symbol)
        # daily bars: a re-stamped in-progress bar is still the same session
        buf.merge(history, self._session_day if self.interval == "1d" else None)
        series = buf.history()
        reading = self.engine.evaluate(series)   # may raise InsufficientHistory

        signal = reading.as_details()
        if not self.rule.include_divergence:
            signal.pop("divergences", None)
        sample = {
            "price": reading.last_price,
            "prev_price": reading.prev_price,
            "bars": len(series),
            "last_epoch": int(series.epochs[-1]),
        }

        if reading.cross == "bearish":
            log.info("bearish_cross_suppressed", symbol=symbol, macd=signal["macd"], signal=signal["signal"])
            return Verdict(False, "Bearish cross (suppressed)", signal, sample)
        if reading.cross != "bullish":
            return Verdict(False, "No cross", signal, sample)
        if self.rule.require_rising_histogram and not reading.histogram_rising:
            return Verdict(False, "Histogram not rising", signal, sample)
        if self.rule.require_rising_price and not reading.price_rising:
            return Verdict(False, "Price not rising", signal, sample)
        return Verdict(True, "Bullish MACD cross", signal, sample)
