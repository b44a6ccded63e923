"""Bucket retrieved records into OHLCV candles."""
from __future__ import annotations

from decimal import Decimal
from itertools import groupby
from typing import Dict, Iterable, List, Sequence

from candle_builder.data.models import Candle, RawRecord, format_volume
from candle_builder.utils import Duration


def _chronological(record: RawRecord):
    return (record.timestamp, record.id)


def build_candle(bucket: Sequence[RawRecord], duration: Duration) -> Candle:
    """Compute OHLCV and trade metadata for a chronologically sorted bucket."""

    earliest = bucket[0]
    latest = bucket[-1]
    start = duration.floor(earliest.timestamp)

    base_volume = sum((record.quantity for record in bucket), Decimal(0))
    quote_volume = sum((record.quote_volume for record in bucket), Decimal(0))
    num_trades = sum(record.num_trades if record.num_trades is not None else 1 for record in bucket)

    return Candle(
        timestamp=int(start.timestamp()),
        date=start,
        open=earliest.open_price,
        high=max(record.high_price for record in bucket),
        low=min(record.low_price for record in bucket),
        close=latest.close_price,
        base_volume=format_volume(base_volume),
        quote_volume=format_volume(quote_volume),
        first_trade=earliest.id,
        last_trade=latest.id,
        num_trades=num_trades,
    )


def aggregate(trades: Iterable[RawRecord], duration: Duration) -> List[Candle]:
    """Group ``trades`` into one candle per non-empty ``duration`` bucket."""

    ordered = sorted(trades, key=_chronological)
    return [
        build_candle(list(bucket), duration)
        for _, bucket in groupby(ordered, key=lambda record: duration.floor(record.timestamp))
    ]


class CandleAggregator:
    """Aggregator bound to a single duration."""

    def __init__(self, duration: Duration) -> None:
        self.duration = Duration(duration)

    def aggregate(self, trades: Iterable[RawRecord]) -> List[Candle]:
        return aggregate(trades, self.duration)


def combine_candles(older: Candle, newer: Candle) -> Candle:
    """Merge two partial candles of the same bucket."""

    return Candle(
        timestamp=older.timestamp,
        date=older.date,
        open=older.open,
        high=max(older.high, newer.high),
        low=min(older.low, newer.low),
        close=newer.close,
        base_volume=format_volume(Decimal(older.base_volume) + Decimal(newer.base_volume)),
        quote_volume=format_volume(Decimal(older.quote_volume) + Decimal(newer.quote_volume)),
        first_trade=older.first_trade,
        last_trade=newer.last_trade,
        num_trades=older.num_trades + newer.num_trades,
    )


def merge_candles(existing: Iterable[Candle], fresh: Iterable[Candle]) -> List[Candle]:
    """Fold freshly aggregated candles into a previously stored history."""

    merged: Dict[int, Candle] = {candle.timestamp: candle for candle in existing}
    for candle in fresh:
        previous = merged.get(candle.timestamp)
        merged[candle.timestamp] = candle if previous is None else combine_candles(previous, candle)
    return [merged[key] for key in sorted(merged)]


__all__ = ["CandleAggregator", "aggregate", "build_candle", "combine_candles", "merge_candles"]
