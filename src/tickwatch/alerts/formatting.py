from __future__ import annotations

from tickwatch.utils.time import fmt_local_time, utc_dt
from tickwatch.utils.types import NotificationIntent

GREEN = 0x00FF00
RED = 0xFF0000


def _is_up(intent: NotificationIntent) -> bool:
    if intent.kind == "cross":
        return True     # only bullish crosses notify
    return float(intent.sample_details.get("change_pct") or 0.0) > 0


def _signed_pct(v) -> str:
    v = float(v or 0.0)
    return f"{'+' if v > 0 else ''}{v:.2f}%"


def format_intent_pretty(intent: NotificationIntent, tz_name: str = "America/New_York") -> str:
    sym = intent.symbol
    s = intent.sample_details
    now_s = fmt_local_time(intent.timestamp, tz_name)
    price = float(s.get("price") or 0.0)

    if intent.kind == "cross":
        sig = intent.signal_details
        div = ",".join(sig.get("divergences") or []) or "none"
        return (
            f"[{sym} MACD CROSS #{intent.alert_number}] {now_s} ↑ {price:.2f}  |  "
            f"macd={sig.get('macd')} signal={sig.get('signal')} hist={sig.get('histogram')} "
            f"(divergence: {div})"
        )

    arrow = "↑" if _is_up(intent) else "↓"
    vol = s.get("volume") or 0
    rel = s.get("relative_volume")
    return (
        f"[{sym} MOMENTUM #{intent.alert_number}] {now_s} {arrow} {price:.2f} "
        f"{_signed_pct(s.get('change_pct'))}  |  vol={int(vol):,} relvol={rel}x"
    )


def build_discord_embed(intent: NotificationIntent, tz_name: str = "America/New_York") -> dict:
    """Discord embed object for a webhook payload."""
    up = _is_up(intent)
    emoji = "🟢" if up else "🔴"
    s = intent.sample_details
    price = s.get("price")

    if intent.kind == "cross":
        sig = intent.signal_details
        description = f"**${price}** | bullish MACD cross"
        fields = [
            {"name": "📈 MACD", "value": f"{sig.get('macd')} / {sig.get('signal')}", "inline": True},
            {"name": "📊 Histogram", "value": f"{sig.get('histogram')}", "inline": True},
        ]
        divs = sig.get("divergences") or []
        if divs:
            fields.append({"name": "🔀 Divergence", "value": ", ".join(divs), "inline": True})
    else:
        description = f"**${price}** | {_signed_pct(s.get('change_pct'))}"
        vol = int(s.get("volume") or 0)
        fields = [
            {"name": "📊 Volume", "value": f"{vol:,}\n{s.get('relative_volume')}x RelVol", "inline": True},
        ]

    fields.append({"name": "⏱ Time", "value": fmt_local_time(intent.timestamp, tz_name), "inline": True})
    return {
        "title": f"{emoji} {intent.symbol} | Alert #{intent.alert_number}",
        "description": description,
        "color": GREEN if up else RED,
        "fields": fields,
        "timestamp": utc_dt(intent.timestamp).isoformat(),
    }
