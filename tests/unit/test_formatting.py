from tickwatch.alerts.formatting import GREEN, RED, build_discord_embed, format_intent_pretty
from tickwatch.utils.types import NotificationIntent

TS = 1_700_000_000.0   # 5:13:20 PM EST


def momentum(change_pct=6.5, n=2):
    return NotificationIntent(
        symbol="ABC", kind="momentum", timestamp=TS, alert_number=n,
        signal_details={"reason": "Momentum detected!"},
        sample_details={"price": 10.0, "change_pct": change_pct, "volume": 1_234_567, "relative_volume": 2.1},
    )


def cross(divs=()):
    return NotificationIntent(
        symbol="XYZ", kind="cross", timestamp=TS,
        signal_details={"cross": "bullish", "macd": 0.12, "signal": 0.1, "histogram": 0.02,
                        "divergences": list(divs)},
        sample_details={"price": 42.5, "prev_price": 41.0},
    )


def test_momentum_embed_up():
    e = build_discord_embed(momentum())
    assert e["title"] == "🟢 ABC | Alert #2"
    assert e["color"] == GREEN
    assert e["description"] == "**$10.0** | +6.50%"
    assert e["fields"][0]["value"].startswith("1,234,567")
    assert e["fields"][-1]["value"] == "5:13:20 PM EST"
    assert e["timestamp"].startswith("2023-11-14T22:13:20")


def test_momentum_embed_down():
    e = build_discord_embed(momentum(change_pct=-8.0))
    assert e["title"].startswith("🔴")
    assert e["color"] == RED
    assert "-8.00%" in e["description"]


def test_cross_embed_with_divergence():
    e = build_discord_embed(cross(("bullish",)))
    assert e["title"] == "🟢 XYZ | Alert #1"
    names = [f["name"] for f in e["fields"]]
    assert "🔀 Divergence" in names
    assert "🔀 Divergence" not in [f["name"] for f in build_discord_embed(cross())["fields"]]


def test_pretty_lines():
    assert format_intent_pretty(momentum()).startswith("[ABC MOMENTUM #2] 5:13:20 PM EST ↑ 10.00 +6.50%")
    line = format_intent_pretty(cross(("bearish",)), "UTC")
    assert line.startswith("[XYZ MACD CROSS #1] 10:13:20 PM UTC ↑ 42.50")
    assert "divergence: bearish" in line
