from __future__ import annotations

import json
from pathlib import Path

import structlog

from tickwatch.utils.errors import WatchlistError

log = structlog.get_logger("watchlist")

DEFAULT_WATCHLIST = ["AAPL", "TSLA", "NVDA", "AMD", "PLTR", "COIN", "RIVN", "SOFI", "OSCR", "VIVK"]
RECOVERY_WATCHLIST = ["AAPL", "TSLA", "NVDA", "AMD", "PLTR"]


class JsonWatchlistStore:
    """
    Ordered symbol list persisted as a JSON array.
    A missing file is created with the defaults; a corrupt one is reset.
    Symbol validation belongs to the caller.
    """
    def __init__(self, path: str | Path = "watchlist.json"):
        self.path = Path(path)

    def load(self) -> list[str]:
        if not self.path.exists():
            self.save(DEFAULT_WATCHLIST)
            return list(DEFAULT_WATCHLIST)
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise WatchlistError("Failed to read watchlist", {"path": str(self.path)}, original_error=e)
        try:
            data = json.loads(raw)
            if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
                raise ValueError("watchlist must be a JSON array of strings")
        except ValueError as e:
            log.error("watchlist_corrupt_reset", path=str(self.path), err=str(e))
            self.save(RECOVERY_WATCHLIST)
            return list(RECOVERY_WATCHLIST)
        # keep first occurrence, preserve order
        return list(dict.fromkeys(data))

    def save(self, symbols: list[str]) -> None:
        try:
            self.path.write_text(json.dumps(list(symbols), indent=2), encoding="utf-8")
        except OSError as e:
            raise WatchlistError("Failed to save watchlist", {"path": str(self.path)}, original_error=e)

    def add(self, symbol: str) -> bool:
        """Append if absent; returns False if already present."""
        current = self.load()
        if symbol in current:
            return False
        current.append(symbol)
        self.save(current)
        log.info("watchlist_added", symbol=symbol)
        return True

    def remove(self, symbol: str) -> bool:
        current = self.load()
        if symbol not in current:
            return False
        self.save([s for s in current if s != symbol])
        log.info("watchlist_removed", symbol=symbol)
        return True
