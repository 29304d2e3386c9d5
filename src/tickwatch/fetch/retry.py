from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import structlog

from tickwatch.fetch.gate import FetchGate
from tickwatch.utils.errors import DataUnavailable, Throttled, TickwatchError
from tickwatch.utils.time import SleepFn, real_sleep

log = structlog.get_logger("fetch_retry")

T = TypeVar("T")


@dataclass(slots=True)
class RetryPolicy:
    attempts: int = 2
    delay_s: float = 2.0        # fixed pause between attempts

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")


async def fetch_with_retry(
    fetch: Callable[[], Awaitable[T]],
    *,
    gate: FetchGate,
    policy: RetryPolicy,
    symbol: str,
    sleep: SleepFn = real_sleep,
) -> T:
    """
    Run `fetch` through the gate with a bounded number of attempts.
    Throttled responses are reported to the gate before the next attempt.
    Raises the last DataUnavailable/Throttled once the budget is spent.
    """
    last_err: TickwatchError | None = None
    for attempt in range(1, policy.attempts + 1):
        await gate.acquire()
        try:
            result = await fetch()
        except Throttled as e:
            gate.report_throttled()
            log.warning("fetch_throttled", symbol=symbol, attempt=attempt)
            last_err = e
        except DataUnavailable as e:
            log.warning("fetch_failed", symbol=symbol, attempt=attempt, err=e.message)
            last_err = e
        else:
            gate.report_success()
            return result

        if attempt < policy.attempts:
            await sleep(policy.delay_s)

    assert last_err is not None
    raise last_err
