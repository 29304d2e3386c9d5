from __future__ import annotations

from typing import Optional, Tuple

from tickwatch.alerts.rules import MomentumRule
from tickwatch.utils.types import Sample


def check_momentum(sample: Optional[Sample], rule: MomentumRule) -> Tuple[bool, str]:
    """
    Pure threshold check over one snapshot. First failing check wins the reason.
    Missing volume / change count as 0; missing relative volume fails its check.
    """
    if sample is None:
        return False, "No data"
    if sample.price > rule.max_price:
        return False, "Price too high"
    if sample.price < rule.min_price:
        return False, "Price too low"
    if (sample.volume or 0) < rule.min_volume:
        return False, "Volume too low"
    if abs(sample.change_pct or 0.0) < rule.min_change_pct:
        return False, "Move too small"
    if sample.relative_volume is None or sample.relative_volume < rule.min_relative_volume:
        return False, "RelVol too low"
    return True, "Momentum detected!"
