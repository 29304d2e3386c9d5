from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from typing import Optional, Protocol, Union

import structlog

from tickwatch.alerts.gate import AlertGate
from tickwatch.alerts.notifiers import Notifier
from tickwatch.fetch.gate import FetchGate
from tickwatch.fetch.retry import RetryPolicy, fetch_with_retry
from tickwatch.ingest.yahoo import DataSource
from tickwatch.scan.strategies import MacdCrossStrategy, MomentumStrategy, Verdict
from tickwatch.utils.errors import (
    DataUnavailable,
    DeliveryFailed,
    InsufficientHistory,
    InvalidSymbol,
    Throttled,
    WatchlistError,
)
from tickwatch.utils.time import Clock, SleepFn, SystemClock, real_sleep
from tickwatch.utils.types import NotificationIntent, normalize_symbol

log = structlog.get_logger("scanner")

Strategy = Union[MomentumStrategy, MacdCrossStrategy]


class WatchlistSource(Protocol):
    def load(self) -> list[str]: ...


@dataclass(slots=True)
class ScanConfig:
    """
    interval_s:               timer period between scan starts
    batch_size:               symbols per batch
    delay_between_items_s:    pause after every symbol
    delay_between_batches_s:  extra pause between batches (not after the last)
    """
    interval_s: float = 5 * 60
    batch_size: int = 5
    delay_between_items_s: float = 2.0
    delay_between_batches_s: float = 10.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be >= 1")


@dataclass(slots=True)
class ScanReport:
    scan_number: int
    trigger: str
    started_at: float
    finished_at: Optional[float] = None
    scanned: int = 0
    alerted: int = 0
    skipped: int = 0          # evaluated, no signal
    suppressed: int = 0       # signal, but alert gate denied
    failed: int = 0           # fetch / history / evaluation errors
    delivery_failed: int = 0


class ScanOrchestrator:
    """
    One pass = watchlist → batches → per symbol:
        gate.acquire + fetch (bounded retry) → strategy.evaluate
        → alert_gate.can_alert → notifier.send → alert_gate.record_alert

    At most one pass runs at a time. Timer ticks and manual triggers that
    arrive while a pass is in flight are coalesced (logged and dropped).
    Per-symbol errors are logged and never abort the pass.
    """

    def __init__(
        self,
        *,
        watchlist: WatchlistSource,
        source: DataSource,
        strategy: Strategy,
        gate: FetchGate,
        alert_gate: AlertGate,
        notifier: Notifier,
        cfg: Optional[ScanConfig] = None,
        clock: Optional[Clock] = None,
        sleep: SleepFn = real_sleep,
    ):
        self.watchlist = watchlist
        self.source = source
        self.strategy = strategy
        self.gate = gate
        self.alert_gate = alert_gate
        self.notifier = notifier
        self.cfg = cfg or ScanConfig()
        self.clock = clock or SystemClock()
        self._sleep = sleep

        self.scan_count = 0
        self.coalesced = 0
        self.last_report: Optional[ScanReport] = None
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    # -------------------------------------------------------------------------
    # triggers
    # -------------------------------------------------------------------------

    async def scan_once(self, trigger: str = "manual") -> Optional[ScanReport]:
        """Run a full pass now; returns None if another pass is in flight."""
        if self._lock.locked():
            self.coalesced += 1
            log.info("scan_coalesced", trigger=trigger, scan_number=self.scan_count)
            return None
        async with self._lock:
            return await self._scan(trigger)

    def trigger_now(self, trigger: str = "manual") -> bool:
        """Schedule a pass in the background. False if one is already running."""
        if self.running:
            self.coalesced += 1
            log.info("scan_coalesced", trigger=trigger, scan_number=self.scan_count)
            return False
        task = asyncio.create_task(self.scan_once(trigger), name=f"scan-{trigger}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def run_forever(self) -> None:
        """Start a pass immediately, then every interval_s until stop()."""
        self._stop.clear()
        log.info("scanner_timer_started", interval_s=self.cfg.interval_s)
        while not self._stop.is_set():
            self.trigger_now("timer")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.cfg.interval_s)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        """Stop the timer and wait for any in-flight pass to finish."""
        self._stop.set()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def status(self) -> dict:
        return {
            "scan_count": self.scan_count,
            "running": self.running,
            "mode": self.strategy.kind,
            "interval_s": self.cfg.interval_s,
            "coalesced": self.coalesced,
            "last_report": asdict(self.last_report) if self.last_report else None,
        }

    # -------------------------------------------------------------------------
    # scan pass
    # -------------------------------------------------------------------------

    def _load_symbols(self) -> list[str]:
        symbols: list[str] = []
        for raw in self.watchlist.load():
            try:
                symbols.append(normalize_symbol(raw))
            except InvalidSymbol:
                log.warning("watchlist_invalid_symbol", symbol=raw)
        return list(dict.fromkeys(symbols))

    async def _scan(self, trigger: str) -> ScanReport:
        self.scan_count += 1
        report = ScanReport(scan_number=self.scan_count, trigger=trigger, started_at=self.clock.now())
        self.last_report = report
        try:
            symbols = self._load_symbols()
        except WatchlistError as e:
            log.error("scan_watchlist_unavailable", err=str(e))
            symbols = []

        log.info("scan_started", scan_number=report.scan_number, trigger=trigger,
                 symbols=len(symbols), mode=self.strategy.kind)

        bs = self.cfg.batch_size
        for b in range(0, len(symbols), bs):
            batch = symbols[b:b + bs]
            log.info("scan_batch", scan_number=report.scan_number, batch=batch)
            for symbol in batch:
                await self._scan_symbol(symbol, report)
                await self._sleep(self.cfg.delay_between_items_s)
            if b + bs < len(symbols):
                log.debug("scan_batch_pause", wait_s=self.cfg.delay_between_batches_s)
                await self._sleep(self.cfg.delay_between_batches_s)

        report.finished_at = self.clock.now()
        log.info("scan_complete", scan_number=report.scan_number, scanned=report.scanned,
                 alerted=report.alerted, suppressed=report.suppressed,
                 skipped=report.skipped, failed=report.failed)
        return report

    async def _evaluate(self, symbol: str) -> Verdict:
        data = await fetch_with_retry(
            lambda: self.strategy.fetch(self.source, symbol, self.clock.now()),
            gate=self.gate,
            policy=self.cfg.retry,
            symbol=symbol,
            sleep=self._sleep,
        )
        return self.strategy.evaluate(symbol, data)

    async def _deliver(self, intent: NotificationIntent) -> None:
        try:
            ok = await self.notifier.send(intent)
        except Exception as e:
            raise DeliveryFailed("Notifier raised", {"symbol": intent.symbol}, original_error=e)
        if not ok:
            raise DeliveryFailed("Notifier rejected alert", {"symbol": intent.symbol})

    async def _scan_symbol(self, symbol: str, report: ScanReport) -> None:
        report.scanned += 1
        try:
            verdict = await self._evaluate(symbol)
        except InsufficientHistory as e:
            report.failed += 1
            log.info("symbol_insufficient_history", symbol=symbol,
                     have=e.context.get("have"), need=e.context.get("need"))
            return
        except (DataUnavailable, Throttled) as e:
            report.failed += 1
            log.warning("symbol_no_data", symbol=symbol, kind=type(e).__name__, err=e.message)
            return
        except Exception as e:
            report.failed += 1
            log.error("symbol_eval_error", symbol=symbol, err=repr(e))
            return

        if not verdict.fire:
            report.skipped += 1
            log.info("no_alert", symbol=symbol, reason=verdict.reason)
            return

        now = self.clock.now()
        decision = self.alert_gate.can_alert(symbol, now)
        if not decision:
            report.suppressed += 1
            log.info("alert_suppressed", symbol=symbol, reason=decision.reason)
            return

        intent = NotificationIntent(
            symbol=symbol,
            kind=self.strategy.kind,
            timestamp=now,
            alert_number=self.alert_gate.alert_number(symbol),
            signal_details=dict(verdict.signal_details),
            sample_details=dict(verdict.sample_details),
        )
        try:
            await self._deliver(intent)
        except DeliveryFailed as e:
            report.delivery_failed += 1
            log.warning("alert_delivery_failed", symbol=symbol, err=str(e))
            return

        self.alert_gate.record_alert(symbol, now)
        report.alerted += 1
        log.info("alert_sent", symbol=symbol, reason=verdict.reason, alert_number=intent.alert_number)
