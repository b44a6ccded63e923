"""Tests for configuration loading."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from candle_builder.config import AppSettings, FeedSettings, load_settings
from candle_builder.data import BinanceKlinesAdapter, TerminationPolicy
from candle_builder.utils import Duration

EXAMPLE = Path(__file__).resolve().parents[1] / "config" / "settings.example.toml"


def test_load_settings_reads_toml(tmp_path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text(
        """
resume = false

[storage]
root = "out/candles"

[retry]
attempts = 2

[[feeds]]
adapter = "binance_klines"
symbol = "ethbtc"
termination = "full"
limit = 500
"""
    )

    settings = load_settings(path)

    assert settings.resume is False
    assert settings.storage.root == Path("out/candles")
    assert settings.retry.attempts == 2
    (feed,) = settings.feeds
    assert feed.key == "binance_klines-ETHBTC"
    assert feed.termination is TerminationPolicy.FULL


def test_example_settings_are_valid() -> None:
    settings = load_settings(EXAMPLE)

    assert [feed.adapter for feed in settings.feeds] == ["binance_aggtrades", "binance_klines"]
    assert settings.feeds[0].durations == [Duration.HOUR, Duration.DAY]


def test_defaults_describe_a_single_aggtrades_feed() -> None:
    settings = AppSettings.model_validate({})

    assert settings.resume is True
    assert settings.retry.attempts == 1
    assert settings.http.timeout_seconds == 15.0
    assert [feed.key for feed in settings.feeds] == ["binance_aggtrades-LSKBTC"]


def test_unknown_adapter_is_rejected() -> None:
    with pytest.raises(ValidationError):
        FeedSettings(adapter="kraken_trades")


@pytest.mark.parametrize("limit", [0, 1001])
def test_page_limit_is_bounded(limit: int) -> None:
    with pytest.raises(ValidationError):
        FeedSettings(limit=limit)


def test_build_adapter_uses_defaults_when_durations_are_empty() -> None:
    adapter = FeedSettings(adapter="binance_klines", symbol="lskbtc").build_adapter()

    assert isinstance(adapter, BinanceKlinesAdapter)
    assert adapter.durations == (Duration.MINUTE,)
    assert adapter.config.storage_key == "binance_klines-LSKBTC"


def test_build_adapter_applies_feed_options() -> None:
    feed = FeedSettings(
        durations=["day"],
        termination="first_last",
        limit=50,
        initial_cursor=7,
        base_url="http://localhost:8080/",
    )

    adapter = feed.build_adapter()

    assert adapter.durations == (Duration.DAY,)
    assert adapter.termination is TerminationPolicy.FIRST_LAST
    assert adapter.first_cursor(None) == 7
    assert adapter.build_request(None) == "http://localhost:8080/api/v3/aggTrades?symbol=LSKBTC&limit=50"
