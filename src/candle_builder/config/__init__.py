"""Configuration subpackage."""

from candle_builder.config.settings import AppSettings, FeedSettings, load_settings

__all__ = ["AppSettings", "FeedSettings", "load_settings"]
