from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

import aiohttp
import structlog

from tickwatch.alerts.formatting import build_discord_embed
from tickwatch.fetch.gate import TokenBucketConfig, TokenBucketGate
from tickwatch.utils.backoff import backoff_iter, jitter
from tickwatch.utils.types import NotificationIntent

log = structlog.get_logger("discord")

# --------- config & client ----------

@dataclass(slots=True)
class DiscordConfig:
    webhook_url: str
    username: Optional[str] = "Momentum Scanner"
    tz_name: str = "America/New_York"
    timeout_s: float = 8.0
    per_minute: int = 30                # webhook limit is ~30/min per channel
    max_retries: int = 5
    initial_backoff_s: float = 0.5
    max_backoff_s: float = 8.0


class DiscordWebhookNotifier:
    """
    Posts one embed per intent to a Discord webhook with rate limiting and
    retry w/ backoff. send() returns True only when Discord accepted the message.
    """
    def __init__(self, cfg: DiscordConfig, embed_fn: Optional[Callable[[NotificationIntent, str], dict]] = None):
        self.cfg = cfg
        self._session: Optional[aiohttp.ClientSession] = None
        self._rl = TokenBucketGate(TokenBucketConfig(capacity=cfg.per_minute))
        self._embed_fn = embed_fn or build_discord_embed

    async def start(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def stop(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def send(self, intent: NotificationIntent) -> bool:
        await self.start()
        payload: dict = {"embeds": [self._embed_fn(intent, self.cfg.tz_name)]}
        if self.cfg.username:
            payload["username"] = self.cfg.username
        await self._rl.acquire()
        return await self._post(payload)

    async def _post(self, payload: dict) -> bool:
        assert self._session is not None
        delays = backoff_iter(self.cfg.initial_backoff_s, self.cfg.max_backoff_s, factor=2.0)
        for attempt in range(1, self.cfg.max_retries + 1):
            try:
                async with self._session.post(self.cfg.webhook_url, json=payload) as resp:
                    if 200 <= resp.status < 300:
                        return True
                    detail = await _maybe_text(resp)
                    log.warning("discord_send_failed", status=resp.status, body=detail[:200], attempt=attempt)
                    if resp.status == 429:
                        # Discord includes retry_after (seconds) in the body
                        try:
                            data = await resp.json(content_type=None)
                            ra = data.get("retry_after")
                            if ra:
                                await asyncio.sleep(float(ra))
                                continue
                        except (aiohttp.ContentTypeError, ValueError):
                            pass
                    if 500 <= resp.status < 600 or resp.status == 429:
                        await asyncio.sleep(jitter(next(delays)))
                        continue
                    # other 4xx: don't retry
                    return False
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.warning("discord_network_error", err=str(e), attempt=attempt)
                await asyncio.sleep(jitter(next(delays)))
        log.error("discord_give_up_after_retries")
        return False

async def _maybe_text(resp: aiohttp.ClientResponse) -> str:
    try:
        return await resp.text()
    except (aiohttp.ClientError, UnicodeDecodeError):
        return "<no body>"
