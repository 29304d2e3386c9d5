from __future__ import annotations

import asyncio
import time
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Protocol
from zoneinfo import ZoneInfo

SleepFn = Callable[[float], Awaitable[None]]


class Clock(Protocol):
    def now(self) -> float: ...


class SystemClock:
    """Wall clock in epoch seconds. Swap for a fake in tests."""

    def now(self) -> float:
        return time.time()


async def real_sleep(seconds: float) -> None:
    await asyncio.sleep(max(0.0, seconds))

# --- fast time helpers ---

def utc_now_s() -> float:
    """Unix epoch seconds (float)."""
    return time.time()

def utc_dt(ts: float | int) -> datetime:
    """Epoch seconds -> timezone-aware UTC datetime."""
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)

# --- calendar-day helpers (zone-aware) ---

def local_day(ts: float, tz_name: str) -> date:
    """Calendar date of epoch `ts` as seen in zone `tz_name`."""
    return datetime.fromtimestamp(float(ts), ZoneInfo(tz_name)).date()

def fmt_local_time(ts: float, tz_name: str) -> str:
    return datetime.fromtimestamp(float(ts), ZoneInfo(tz_name)).strftime("%-I:%M:%S %p %Z")
