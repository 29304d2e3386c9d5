from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

import structlog

from tickwatch.alerts.state import SymbolAlertState
from tickwatch.utils.errors import AlertGateError
from tickwatch.utils.time import local_day

log = structlog.get_logger("alert_gate")

DenyReason = Literal["quota", "cooldown"]


@dataclass(slots=True)
class AlertGateConfig:
    cooldown_seconds: float = 15 * 60
    daily_quota: int = 20
    tz_name: str = "America/New_York"     # calendar day used for the quota

    def __post_init__(self) -> None:
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")
        if self.daily_quota < 1:
            raise ValueError("daily_quota must be >= 1")


@dataclass(slots=True, frozen=True)
class AlertDecision:
    allowed: bool
    reason: Optional[DenyReason] = None

    def __bool__(self) -> bool:
        return self.allowed


class AlertGate:
    """
    Per-symbol cooldown + daily quota.

      can_alert(sym, now)    -> decision; only touches day-rollover bookkeeping
      record_alert(sym, now) -> call after a delivered notification; the only
                                mutator of last_alert_at / count_today

    Each can_alert() replaces the symbol's pending grant; record_alert()
    consumes it and refuses to run without one.
    """
    def __init__(self, cfg: Optional[AlertGateConfig] = None):
        self.cfg = cfg or AlertGateConfig()
        self._states: dict[str, SymbolAlertState] = {}

    def _state_for(self, symbol: str) -> SymbolAlertState:
        st = self._states.get(symbol)
        if st is None:
            st = SymbolAlertState()
            self._states[symbol] = st
        return st

    def _roll_day(self, symbol: str, st: SymbolAlertState, now: float) -> None:
        today = local_day(now, self.cfg.tz_name)
        if st.day_key != today:
            if st.day_key is not None and st.count_today:
                log.info("alert_daily_counter_reset", symbol=symbol, prev_day=str(st.day_key))
            st.count_today = 0
            st.day_key = today

    def can_alert(self, symbol: str, now: float) -> AlertDecision:
        st = self._state_for(symbol)
        self._roll_day(symbol, st, now)

        if st.count_today >= self.cfg.daily_quota:
            decision = AlertDecision(False, "quota")
        elif st.last_alert_at is not None and now - st.last_alert_at < self.cfg.cooldown_seconds:
            decision = AlertDecision(False, "cooldown")
        else:
            decision = AlertDecision(True)

        st.pending_grant = decision.allowed
        return decision

    def record_alert(self, symbol: str, now: float) -> None:
        st = self._states.get(symbol)
        if st is None or not st.pending_grant:
            raise AlertGateError("record_alert without a preceding allow", {"symbol": symbol})
        st.pending_grant = False
        st.last_alert_at = now
        st.count_today += 1

    def alert_number(self, symbol: str) -> int:
        """1-based number the next alert for `symbol` would carry today."""
        st = self._states.get(symbol)
        return (st.count_today if st else 0) + 1

    def snapshot(self) -> dict[str, dict]:
        return {
            sym: {
                "last_alert_at": st.last_alert_at,
                "count_today": st.count_today,
                "day_key": st.day_key.isoformat() if st.day_key else None,
            }
            for sym, st in self._states.items()
        }
