from __future__ import annotations
from typing import Any, Optional

from tickwatch.utils.errors import DataUnavailable
from tickwatch.utils.types import PriceHistory, Sample
from tickwatch.utils.time import utc_now_s


def _chart_result(symbol: str, payload: dict) -> dict:
    """
    Unwrap {"chart": {"result": [..], "error": ..}}.
    Yahoo v8 chart payloads look like:
      {"chart": {"result": [{"meta": {...}, "timestamp": [...],
                             "indicators": {"quote": [{"close": [...], "volume": [...]}]}}],
                 "error": null}}
    """
    chart = (payload or {}).get("chart") or {}
    err = chart.get("error")
    if err:
        raise DataUnavailable(
            str(err.get("description") or err.get("code") or "chart error"),
            {"symbol": symbol, "code": err.get("code")},
        )
    results = chart.get("result") or []
    if not results:
        raise DataUnavailable("Empty chart result", {"symbol": symbol})
    return results[0]


def _quote_columns(res: dict) -> tuple[list, list, list]:
    stamps = res.get("timestamp") or []
    quotes = ((res.get("indicators") or {}).get("quote") or [{}])[0] or {}
    closes = quotes.get("close") or []
    volumes = quotes.get("volume") or []
    return stamps, closes, volumes


def parse_chart_history(symbol: str, payload: dict) -> PriceHistory:
    """Closing-price history; bars with a null close are dropped."""
    res = _chart_result(symbol, payload)
    stamps, closes, volumes = _quote_columns(res)
    points: list[tuple[int, float, Optional[float]]] = []
    for i, ts in enumerate(stamps):
        c = closes[i] if i < len(closes) else None
        if ts is None or c is None:
            continue
        v = volumes[i] if i < len(volumes) else None
        points.append((int(ts), float(c), None if v is None else float(v)))
    if not points:
        raise DataUnavailable("No closing prices in chart", {"symbol": symbol})
    return PriceHistory.from_points(symbol, points)


def parse_chart_snapshot(symbol: str, payload: dict, now: Optional[float] = None) -> Sample:
    """
    Latest quote from a daily chart (range=3mo, interval=1d):
      change_pct      vs the previous daily close
      relative_volume today's volume / mean of prior daily volumes (1.0 if no baseline)
    """
    res = _chart_result(symbol, payload)
    meta: dict[str, Any] = res.get("meta") or {}
    price = meta.get("regularMarketPrice")
    if price is None:
        raise DataUnavailable("No valid data returned", {"symbol": symbol})
    price = float(price)

    _, closes, volumes = _quote_columns(res)
    closes = [float(c) for c in closes if c is not None]
    vols = [float(v) for v in volumes if v is not None]

    prev_close = closes[-2] if len(closes) >= 2 else meta.get("chartPreviousClose")
    change_pct = 0.0
    if prev_close:
        change_pct = round((price - float(prev_close)) / float(prev_close) * 100.0, 2)

    volume = meta.get("regularMarketVolume")
    if volume is None:
        volume = vols[-1] if vols else 0
    volume = int(volume)

    baseline = [v for v in vols[:-1] if v > 0]
    avg = sum(baseline) / len(baseline) if baseline else 0.0
    rel_volume = round(volume / avg, 2) if avg > 0 else 1.0

    ts = meta.get("regularMarketTime")
    return Sample(
        symbol=symbol,
        price=price,
        timestamp=float(ts) if ts else (now if now is not None else utc_now_s()),
        volume=volume,
        change_pct=change_pct,
        relative_volume=rel_volume,
    )
