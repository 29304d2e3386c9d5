from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

import aiohttp
import structlog

from tickwatch.ingest import parser
from tickwatch.utils.errors import DataUnavailable, Throttled
from tickwatch.utils.types import PriceHistory, Sample


class DataSource(Protocol):
    async def fetch_history(self, symbol: str, interval: str,
                            range_start: float, range_end: float) -> PriceHistory: ...

    async def fetch_snapshot(self, symbol: str) -> Sample: ...


@dataclass(slots=True)
class YahooConfig:
    base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    timeout_s: float = 10.0
    snapshot_range: str = "3mo"
    user_agent: str = "Mozilla/5.0 (compatible; tickwatch/0.1)"


class YahooChartSource:
    """
    Yahoo Finance v8 chart client.
      429                 -> Throttled
      404 / chart error   -> DataUnavailable
      network / timeout   -> DataUnavailable
    """
    def __init__(self, cfg: Optional[YahooConfig] = None):
        self.cfg = cfg or YahooConfig()
        self._session: Optional[aiohttp.ClientSession] = None
        self._log = structlog.get_logger("yahoo")

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.cfg.timeout_s),
                headers={"User-Agent": self.cfg.user_agent},
            )

    async def stop(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def _get_chart(self, symbol: str, params: dict) -> dict:
        await self.start()
        assert self._session is not None
        url = f"{self.cfg.base_url}/{symbol}"
        try:
            async with self._session.get(url, params=params) as resp:
                if resp.status == 429:
                    raise Throttled("Rate limited by Yahoo", {"symbol": symbol, "status": 429})
                if resp.status == 404:
                    raise DataUnavailable("Symbol not found", {"symbol": symbol, "status": 404})
                if resp.status != 200:
                    raise DataUnavailable("Unexpected HTTP status", {"symbol": symbol, "status": resp.status})
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise DataUnavailable("Chart request failed", {"symbol": symbol}, original_error=e)

    async def fetch_history(self, symbol: str, interval: str,
                            range_start: float, range_end: float) -> PriceHistory:
        payload = await self._get_chart(symbol, {
            "period1": int(range_start),
            "period2": int(range_end),
            "interval": interval,
            "includePrePost": "false",
        })
        hist = parser.parse_chart_history(symbol, payload)
        self._log.debug("history_fetched", symbol=symbol, bars=len(hist))
        return hist

    async def fetch_snapshot(self, symbol: str) -> Sample:
        payload = await self._get_chart(symbol, {"range": self.cfg.snapshot_range, "interval": "1d"})
        return parser.parse_chart_snapshot(symbol, payload)
