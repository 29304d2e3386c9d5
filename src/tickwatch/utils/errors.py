"""Error kinds raised by the scanner core and its collaborators.

Every per-symbol error is contained by the scan orchestrator; none of these is
fatal to the process.
"""
from __future__ import annotations

from typing import Any


class TickwatchError(Exception):
    """Base error with structured context.

    Attributes:
        message: human readable message
        context: extra fields (symbol, attempt, status, ...)
        original_error: wrapped lower-level exception, if any
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None,
                 original_error: Exception | None = None):
        self.message = message
        self.context = context or {}
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg = f"{msg} [{ctx_str}]"
        if self.original_error:
            msg = f"{msg} (caused by: {type(self.original_error).__name__}: {self.original_error})"
        return msg


class InsufficientHistory(TickwatchError):
    """Too few samples for the configured indicator periods. Skip the symbol."""


class DataUnavailable(TickwatchError):
    """The data source returned nothing usable (unknown symbol, empty payload, transport error)."""


class Throttled(TickwatchError):
    """The data source signalled rate limiting (HTTP 429 or equivalent)."""


class DeliveryFailed(TickwatchError):
    """The notifier rejected or could not deliver a message."""


class InvalidSymbol(TickwatchError):
    """Ticker failed format validation."""


class AlertGateError(TickwatchError):
    """record_alert() called without a matching allow from can_alert()."""


class ConfigError(TickwatchError):
    """Environment/config value missing or malformed."""


class WatchlistError(TickwatchError):
    """Watchlist file could not be read or written."""
