from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Optional

@dataclass(slots=True)
class SymbolAlertState:
    last_alert_at: Optional[float] = None   # epoch seconds of last delivered alert
    count_today: int = 0
    day_key: Optional[date] = None          # calendar day count_today belongs to
    pending_grant: bool = False             # last can_alert() allowed and is unconsumed
