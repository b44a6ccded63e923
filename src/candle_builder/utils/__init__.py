"""Utility helpers."""

from candle_builder.utils.datetime import Duration, ensure_utc, from_epoch_ms, parse_iso8601

__all__ = ["Duration", "ensure_utc", "from_epoch_ms", "parse_iso8601"]
