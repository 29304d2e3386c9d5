# src/tickwatch/alerts/notifiers.py
from __future__ import annotations
import structlog
from typing import Callable, Optional, Protocol

from tickwatch.utils.types import NotificationIntent

log = structlog.get_logger("notifier")


class Notifier(Protocol):
    async def send(self, intent: NotificationIntent) -> bool: ...


class ConsoleNotifier:
    def __init__(self, format_fn: Optional[Callable[[NotificationIntent], str]] = None):
        self._format_fn = format_fn

    async def send(self, intent: NotificationIntent) -> bool:
        if self._format_fn:
            try:
                print(self._format_fn(intent), flush=True)
                return True
            except Exception as e:
                log.warning("console_format_failed", err=str(e))
        # fallback (raw)
        print(f"[ALERT] {intent.symbol} {intent.kind} #{intent.alert_number} "
              f"signal={intent.signal_details} sample={intent.sample_details}", flush=True)
        return True

