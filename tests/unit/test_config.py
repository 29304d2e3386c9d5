import pytest

from tickwatch.config import settings_from_env
from tickwatch.utils.errors import ConfigError

ENV_KEYS = [
    "MACD_FAST", "MACD_SLOW", "MACD_SIGNAL", "DIVERGENCE_LOOKBACK", "SCAN_INTERVAL_MINUTES",
    "BATCH_SIZE", "DELAY_BETWEEN_STOCKS", "DELAY_BETWEEN_BATCHES", "FETCH_ATTEMPTS",
    "FETCH_RETRY_DELAY", "BACKOFF_RESET_AFTER", "ALERT_TZ", "SCAN_MODE", "FETCH_GATE",
    "WATCHLIST_FILE", "HISTORY_INTERVAL", "HISTORY_LOOKBACK_DAYS", "MAX_PRICE", "MIN_PRICE",
    "MIN_VOLUME", "MIN_PRICE_CHANGE", "MIN_REL_VOLUME", "ALERT_COOLDOWN_MINUTES",
    "MAX_ALERTS_PER_STOCK", "FETCH_RATE_PER_MIN", "FETCH_MIN_DELAY", "DISCORD_WEBHOOK_URL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for k in ENV_KEYS:
        monkeypatch.delenv(k, raising=False)


def test_defaults():
    s = settings_from_env(dotenv=False)
    assert s.mode == "momentum" and s.gate_kind == "backoff"
    assert s.scan.interval_s == 300.0
    assert s.scan.batch_size == 5
    assert s.scan.delay_between_items_s == 2.0
    assert s.scan.delay_between_batches_s == 10.0
    assert s.scan.retry.attempts == 2 and s.scan.retry.delay_s == 2.0
    assert s.alerts.cooldown_seconds == 900.0
    assert s.alerts.daily_quota == 20
    assert s.alerts.tz_name == "America/New_York"
    assert s.momentum.min_volume == 500_000
    assert (s.macd.fast, s.macd.slow, s.macd.signal) == (12, 26, 9)
    assert s.backoff.min_delay_s == 1.0
    assert s.backoff.reset_after_successes is None
    assert s.discord_webhook_url is None


def test_overrides(monkeypatch):
    monkeypatch.setenv("SCAN_MODE", "Cross")
    monkeypatch.setenv("FETCH_GATE", "token_bucket")
    monkeypatch.setenv("DELAY_BETWEEN_STOCKS", "500")
    monkeypatch.setenv("ALERT_COOLDOWN_MINUTES", "1")
    monkeypatch.setenv("MIN_PRICE_CHANGE", "3.5")
    monkeypatch.setenv("BACKOFF_RESET_AFTER", "10")
    monkeypatch.setenv("FETCH_RATE_PER_MIN", "120")
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://discord.example/hook")
    s = settings_from_env(dotenv=False)
    assert s.mode == "cross" and s.gate_kind == "token_bucket"
    assert s.scan.delay_between_items_s == 0.5
    assert s.alerts.cooldown_seconds == 60.0
    assert s.momentum.min_change_pct == 3.5
    assert s.backoff.reset_after_successes == 10
    assert s.token_bucket.capacity == 120
    assert s.discord_webhook_url == "https://discord.example/hook"


@pytest.mark.parametrize("key,value", [
    ("MIN_VOLUME", "lots"),
    ("SCAN_MODE", "yolo"),
    ("ALERT_TZ", "Mars/Olympus_Mons"),
    ("BATCH_SIZE", "0"),
    ("MACD_FAST", "30"),
    ("FETCH_ATTEMPTS", "0"),
    ("FETCH_RATE_PER_MIN", "0"),
    ("FETCH_MIN_DELAY", "-5"),
    ("BACKOFF_RESET_AFTER", "0"),
    ("MAX_ALERTS_PER_STOCK", "0"),
    ("ALERT_COOLDOWN_MINUTES", "-1"),
])
def test_invalid_values_raise_config_error(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError):
        settings_from_env(dotenv=False)


def test_blank_value_means_default(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE", "  ")
    assert settings_from_env(dotenv=False).scan.batch_size == 5
