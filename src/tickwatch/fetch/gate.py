from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from tickwatch.utils.backoff import next_backoff
from tickwatch.utils.time import SleepFn, real_sleep

log = structlog.get_logger("fetch_gate")

# --------- common surface ----------

class FetchGate:
    """
    Paces outbound data requests. acquire() may suspend but never fails.
    The throttle/success/reset hooks are no-ops unless a policy uses them.
    """

    async def acquire(self) -> float:
        raise NotImplementedError

    def report_throttled(self) -> None:
        return None

    def report_success(self) -> None:
        return None

    def reset(self) -> None:
        return None

# --------- token bucket ----------

@dataclass(slots=True)
class TokenBucketConfig:
    capacity: int = 60                  # requests per 60s window
    poll_interval_s: float = 0.2

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        if self.poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be positive")


class TokenBucketGate(FetchGate):
    """
    Capacity C, refilled lazily at C/60 tokens per second.
    Waits in fixed poll intervals until a whole token is available.
    """
    def __init__(
        self,
        cfg: Optional[TokenBucketConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = real_sleep,
    ):
        self.cfg = cfg or TokenBucketConfig()
        self.capacity = float(self.cfg.capacity)
        self.rate = self.capacity / 60.0
        self._clock = clock
        self._sleep = sleep
        self.tokens = self.capacity
        self.last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    async def acquire(self) -> float:
        """Returns seconds spent waiting."""
        waited = 0.0
        self._refill()
        if self.tokens < 1.0:
            log.debug("token_bucket_waiting", tokens=round(self.tokens, 3))
        while self.tokens < 1.0:
            await self._sleep(self.cfg.poll_interval_s)
            waited += self.cfg.poll_interval_s
            self._refill()
        self.tokens -= 1.0
        return waited

# --------- backoff on throttle ----------

@dataclass(slots=True)
class BackoffConfig:
    min_delay_s: float = 1.0
    initial_backoff_s: float = 5.0
    backoff_factor: float = 1.5
    max_backoff_s: float = 30.0
    reset_after_successes: Optional[int] = None    # None -> only explicit reset()

    def __post_init__(self) -> None:
        if self.min_delay_s < 0:
            raise ValueError("min_delay_s must be >= 0")
        if self.initial_backoff_s <= 0 or self.backoff_factor < 1:
            raise ValueError("backoff must start positive and never shrink")
        if self.max_backoff_s < self.initial_backoff_s:
            raise ValueError("max_backoff_s must be >= initial_backoff_s")
        if self.reset_after_successes is not None and self.reset_after_successes < 1:
            raise ValueError("reset_after_successes must be >= 1")


class BackoffGate(FetchGate):
    """
    Minimum spacing between requests, plus a growing pause after the caller
    reports a throttled response. The pause does not shrink by itself; call
    reset() (or configure reset_after_successes) to restore the initial delay.
    """
    def __init__(
        self,
        cfg: Optional[BackoffConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = real_sleep,
    ):
        self.cfg = cfg or BackoffConfig()
        self._clock = clock
        self._sleep = sleep
        self.last_request_at: Optional[float] = None
        self.backoff_delay = self.cfg.initial_backoff_s
        self.throttled = False
        self._successes = 0

    async def acquire(self) -> float:
        waited = 0.0
        if self.throttled:
            delay = self.backoff_delay
            log.warning("fetch_backoff_waiting", wait_s=delay)
            await self._sleep(delay)
            waited += delay
            self.throttled = False
            self.backoff_delay = next_backoff(
                delay, self.cfg.max_backoff_s, factor=self.cfg.backoff_factor
            )
        if self.last_request_at is not None:
            elapsed = self._clock() - self.last_request_at
            if elapsed < self.cfg.min_delay_s:
                gap = self.cfg.min_delay_s - elapsed
                await self._sleep(gap)
                waited += gap
        self.last_request_at = self._clock()
        return waited

    def report_throttled(self) -> None:
        self.throttled = True
        self._successes = 0

    def report_success(self) -> None:
        self._successes += 1
        n = self.cfg.reset_after_successes
        if n is not None and self._successes >= n and self.backoff_delay != self.cfg.initial_backoff_s:
            log.info("fetch_backoff_decayed", successes=self._successes)
            self.reset()

    def reset(self) -> None:
        self.backoff_delay = self.cfg.initial_backoff_s
        self.throttled = False
        self._successes = 0
