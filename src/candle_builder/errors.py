"""Exception hierarchy for the candle build pipeline."""
from __future__ import annotations

from typing import Any


class CandleBuildError(RuntimeError):
    """Base class for failures raised while building candles.

    Keyword arguments are kept as diagnostic context (adapter name, duration,
    cursor value) and rendered after the message.
    """

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = {key: value for key, value in context.items() if value is not None}

    def with_context(self, **context: Any) -> "CandleBuildError":
        """Attach additional context without overwriting existing keys."""

        for key, value in context.items():
            if value is not None:
                self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = " ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class TransportError(CandleBuildError):
    """Network, DNS or timeout failure while talking to the exchange."""


class UpstreamError(CandleBuildError):
    """The exchange answered with a non-2xx status or an error envelope."""

    def __init__(self, message: str, *, status: int | None = None, **context: Any) -> None:
        super().__init__(message, status=status, **context)
        self.status = status


class RateLimited(CandleBuildError):
    """Terminal "no data in range" signal; ends retrieval successfully."""


class MalformedPage(CandleBuildError):
    """A page could not be decoded or failed validation."""


class PersistenceError(CandleBuildError):
    """The candle store failed to drop, save or load a duration."""


__all__ = [
    "CandleBuildError",
    "TransportError",
    "UpstreamError",
    "RateLimited",
    "MalformedPage",
    "PersistenceError",
]
