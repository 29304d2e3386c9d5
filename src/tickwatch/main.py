# src/tickwatch/main.py
import argparse
import asyncio
import json
import signal
import sys
from dataclasses import dataclass

import structlog

from tickwatch.alerts.formatting import format_intent_pretty
from tickwatch.alerts.gate import AlertGate
from tickwatch.alerts.notifiers import ConsoleNotifier, Notifier
from tickwatch.config import Settings, settings_from_env
from tickwatch.data.watchlist import JsonWatchlistStore
from tickwatch.fetch.gate import BackoffGate, FetchGate, TokenBucketGate
from tickwatch.indicators.macd import MacdEngine
from tickwatch.ingest.yahoo import YahooChartSource
from tickwatch.notify.discord import DiscordConfig, DiscordWebhookNotifier
from tickwatch.scan.orchestrator import ScanOrchestrator
from tickwatch.scan.strategies import MacdCrossStrategy, MomentumStrategy
from tickwatch.utils.errors import ConfigError, DataUnavailable, InvalidSymbol, Throttled, WatchlistError
from tickwatch.utils.log import configure_logging
from tickwatch.utils.types import normalize_symbol

log = structlog.get_logger()


# ---------------------------
# Wiring
# ---------------------------

@dataclass(slots=True)
class App:
    settings: Settings
    store: JsonWatchlistStore
    source: YahooChartSource
    notifier: Notifier
    orchestrator: ScanOrchestrator

    async def close(self) -> None:
        await self.source.stop()
        if isinstance(self.notifier, DiscordWebhookNotifier):
            await self.notifier.stop()


def build_gate(settings: Settings) -> FetchGate:
    if settings.gate_kind == "token_bucket":
        return TokenBucketGate(settings.token_bucket)
    return BackoffGate(settings.backoff)


def build_app(settings: Settings) -> App:
    store = JsonWatchlistStore(settings.watchlist_file)
    source = YahooChartSource()

    if settings.mode == "cross":
        strategy = MacdCrossStrategy(
            MacdEngine(settings.macd),
            settings.cross,
            interval=settings.history_interval,
            lookback_seconds=settings.history_lookback_days * 86_400,
        )
    else:
        strategy = MomentumStrategy(settings.momentum)

    tz = settings.alerts.tz_name
    if settings.discord_webhook_url:
        notifier: Notifier = DiscordWebhookNotifier(DiscordConfig(webhook_url=settings.discord_webhook_url, tz_name=tz))
        log.info("discord_enabled")
    else:
        notifier = ConsoleNotifier(format_fn=lambda i: format_intent_pretty(i, tz))
        log.info("discord_disabled_missing_env")

    orchestrator = ScanOrchestrator(
        watchlist=store,
        source=source,
        strategy=strategy,
        gate=build_gate(settings),
        alert_gate=AlertGate(settings.alerts),
        notifier=notifier,
        cfg=settings.scan,
    )
    return App(settings, store, source, notifier, orchestrator)


# ---------------------------
# Commands
# ---------------------------

async def cmd_run(app: App) -> int:
    """Timer-driven scanning; SIGUSR1 requests an immediate pass."""
    loop = asyncio.get_running_loop()
    orch = app.orchestrator
    try:
        loop.add_signal_handler(signal.SIGUSR1, lambda: orch.trigger_now("manual"))
    except (NotImplementedError, AttributeError):
        log.info("scan_now_signal_unavailable")
    # watchlist is read per pass; a bad file is reported there, not fatal here
    log.info("scanner_starting", watchlist_file=app.settings.watchlist_file, mode=app.settings.mode,
             interval_min=app.settings.scan.interval_s / 60)
    try:
        await orch.run_forever()
    finally:
        await orch.stop()
    return 0


async def cmd_scan_once(app: App) -> int:
    report = await app.orchestrator.scan_once("manual")
    print(json.dumps(app.orchestrator.status(), indent=2, default=str))
    return 0 if report is not None else 1


async def cmd_price(app: App, raw: str) -> int:
    symbol = normalize_symbol(raw)
    try:
        s = await app.source.fetch_snapshot(symbol)
    except (DataUnavailable, Throttled) as e:
        print(f"❌ Could not fetch price for {symbol}: {e.message}")
        return 1
    change = s.change_pct or 0.0
    print(f"{symbol}  ${s.price}  ({'+' if change >= 0 else ''}{change:.2f}%)  "
          f"vol={s.volume or 0:,}  relvol={s.relative_volume}x")
    return 0


async def cmd_watchlist(app: App, action: str, raw: str | None) -> int:
    store = app.store
    if action == "list":
        print("📋 Watchlist: " + ", ".join(store.load()))
        return 0

    symbol = normalize_symbol(raw or "")
    if action == "remove":
        if not store.remove(symbol):
            print(f"⚠️ {symbol} is not in the watchlist.")
            return 1
        print(f"🗑️ Removed {symbol} from the watchlist.")
        return 0

    if symbol in store.load():
        print(f"⚠️ {symbol} is already in the watchlist.")
        return 1
    # existence check through the data source
    try:
        await app.source.fetch_snapshot(symbol)
    except (DataUnavailable, Throttled):
        print(f"❌ Could not find data for {symbol}. Not added.")
        return 1
    store.add(symbol)
    print(f"✅ Added {symbol} to the watchlist.")
    return 0


def cmd_status(app: App) -> int:
    s = app.settings
    print(f"📡 Mode: {s.mode}\nWatching {len(app.store.load())} tickers.\n"
          f"Scan interval: {s.scan.interval_s / 60:g} minutes.\n"
          f"Cooldown: {s.alerts.cooldown_seconds / 60:g} min, daily quota: {s.alerts.daily_quota}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tickwatch", description="Momentum / MACD-cross watchlist scanner")
    p.add_argument("--log-level", default=None)
    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="scan on a timer (SIGUSR1 = scan now)")
    sub.add_parser("scan-once", help="run a single pass and exit")
    sub.add_parser("status", help="show scanner settings")
    price = sub.add_parser("price", help="current price for a ticker")
    price.add_argument("symbol")
    wl = sub.add_parser("watchlist", help="view or edit the watchlist")
    wl.add_argument("action", choices=["list", "add", "remove"])
    wl.add_argument("symbol", nargs="?")
    return p


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        settings = settings_from_env()
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2

    app = build_app(settings)
    try:
        if args.command == "run":
            return await cmd_run(app)
        if args.command == "scan-once":
            return await cmd_scan_once(app)
        if args.command == "status":
            return cmd_status(app)
        if args.command == "price":
            return await cmd_price(app, args.symbol)
        if args.command == "watchlist":
            if args.action != "list" and not args.symbol:
                print("symbol is required", file=sys.stderr)
                return 2
            return await cmd_watchlist(app, args.action, args.symbol)
        return 2
    except InvalidSymbol:
        print("⚠️ Invalid ticker format.", file=sys.stderr)
        return 2
    except WatchlistError as e:
        print(f"watchlist error: {e}", file=sys.stderr)
        return 1
    finally:
        await app.close()


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
