from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from tickwatch.alerts.gate import AlertGateConfig
from tickwatch.alerts.rules import CrossRule, MomentumRule
from tickwatch.fetch.gate import BackoffConfig, TokenBucketConfig
from tickwatch.fetch.retry import RetryPolicy
from tickwatch.indicators.macd import MacdConfig
from tickwatch.scan.orchestrator import ScanConfig
from tickwatch.utils.errors import ConfigError

ScanMode = Literal["momentum", "cross"]
GateKind = Literal["backoff", "token_bucket"]


@dataclass(slots=True)
class Settings:
    mode: ScanMode = "momentum"
    gate_kind: GateKind = "backoff"
    watchlist_file: str = "./watchlist.json"
    history_interval: str = "1d"
    history_lookback_days: int = 120
    scan: ScanConfig = field(default_factory=ScanConfig)
    momentum: MomentumRule = field(default_factory=MomentumRule)
    cross: CrossRule = field(default_factory=CrossRule)
    macd: MacdConfig = field(default_factory=MacdConfig)
    alerts: AlertGateConfig = field(default_factory=AlertGateConfig)
    token_bucket: TokenBucketConfig = field(default_factory=TokenBucketConfig)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    discord_webhook_url: Optional[str] = None


def _num(name: str, default, cast=float):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {name}", {"value": raw}, original_error=e)


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    raw = (os.getenv(name) or default).strip().lower()
    if raw not in allowed:
        raise ConfigError(f"Invalid value for {name}", {"value": raw, "allowed": "|".join(allowed)})
    return raw


def settings_from_env(dotenv: bool = True) -> Settings:
    """
    Build Settings from environment (after .env). Delays are in milliseconds
    as in the deployed .env files; intervals and cooldowns in minutes.
    """
    if dotenv:
        load_dotenv()

    try:
        macd = MacdConfig(
            fast=_num("MACD_FAST", 12, int),
            slow=_num("MACD_SLOW", 26, int),
            signal=_num("MACD_SIGNAL", 9, int),
            divergence_lookback=_num("DIVERGENCE_LOOKBACK", 6, int),
        )
        scan = ScanConfig(
            interval_s=_num("SCAN_INTERVAL_MINUTES", 5.0) * 60.0,
            batch_size=_num("BATCH_SIZE", 5, int),
            delay_between_items_s=_num("DELAY_BETWEEN_STOCKS", 2000.0) / 1000.0,
            delay_between_batches_s=_num("DELAY_BETWEEN_BATCHES", 10000.0) / 1000.0,
            retry=RetryPolicy(
                attempts=_num("FETCH_ATTEMPTS", 2, int),
                delay_s=_num("FETCH_RETRY_DELAY", 2000.0) / 1000.0,
            ),
        )
    except ValueError as e:
        raise ConfigError("Invalid scanner settings", original_error=e)

    tz_name = os.getenv("ALERT_TZ", "America/New_York")
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError("Unknown time zone", {"ALERT_TZ": tz_name}, original_error=e)

    try:
        alerts = AlertGateConfig(
            cooldown_seconds=_num("ALERT_COOLDOWN_MINUTES", 15.0) * 60.0,
            daily_quota=_num("MAX_ALERTS_PER_STOCK", 20, int),
            tz_name=tz_name,
        )
        token_bucket = TokenBucketConfig(capacity=_num("FETCH_RATE_PER_MIN", 60, int))
        backoff = BackoffConfig(
            min_delay_s=_num("FETCH_MIN_DELAY", 1000.0) / 1000.0,
            reset_after_successes=_num("BACKOFF_RESET_AFTER", None, int),
        )
    except ValueError as e:
        raise ConfigError("Invalid rate limit or alert settings", original_error=e)

    return Settings(
        mode=_choice("SCAN_MODE", "momentum", ("momentum", "cross")),
        gate_kind=_choice("FETCH_GATE", "backoff", ("backoff", "token_bucket")),
        watchlist_file=os.getenv("WATCHLIST_FILE", "./watchlist.json"),
        history_interval=os.getenv("HISTORY_INTERVAL", "1d"),
        history_lookback_days=_num("HISTORY_LOOKBACK_DAYS", 120, int),
        scan=scan,
        momentum=MomentumRule(
            max_price=_num("MAX_PRICE", 1000.0),
            min_price=_num("MIN_PRICE", 0.01),
            min_volume=_num("MIN_VOLUME", 500_000, int),
            min_change_pct=_num("MIN_PRICE_CHANGE", 5.0),
            min_relative_volume=_num("MIN_REL_VOLUME", 1.3),
        ),
        macd=macd,
        alerts=alerts,
        token_bucket=token_bucket,
        backoff=backoff,
        discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL") or None,
    )
