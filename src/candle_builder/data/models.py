"""Record types flowing through the retrieval and aggregation pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from candle_builder.utils import ensure_utc, parse_iso8601

VOLUME_QUANTUM = Decimal("0.00000001")


def format_volume(value: Decimal) -> str:
    """Render a volume as a fixed-point string with eight fractional digits."""

    return f"{value.quantize(VOLUME_QUANTUM):f}"


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One exchange-reported trade or kline row after field mapping.

    Trades only carry ``price``; kline rows also carry ``open``/``high``/``low``
    and use ``price`` for the close.
    """

    id: int
    timestamp: datetime
    price: Decimal
    quantity: Decimal
    quote_quantity: Decimal | None = None
    open: Decimal | None = None
    high: Decimal | None = None
    low: Decimal | None = None
    num_trades: int | None = None

    @property
    def open_price(self) -> Decimal:
        return self.price if self.open is None else self.open

    @property
    def high_price(self) -> Decimal:
        return self.price if self.high is None else self.high

    @property
    def low_price(self) -> Decimal:
        return self.price if self.low is None else self.low

    @property
    def close_price(self) -> Decimal:
        return self.price

    @property
    def quote_volume(self) -> Decimal:
        """Quote-asset volume, derived from price when the feed omits it."""

        if self.quote_quantity is not None:
            return self.quote_quantity
        return self.quantity * self.price


@dataclass(slots=True)
class RetrievalCursor:
    """Mutable pagination state owned by a single retrieval run."""

    next_start: int | None = None
    found: bool = False
    last_seen: int | None = None
    pages: int = 0

    def advance(self, next_start: int) -> None:
        self.next_start = next_start
        self.pages += 1

    def finish(self) -> None:
        self.found = True


@dataclass(slots=True)
class Candle:
    """Aggregated OHLCV record for one bucket of one duration."""

    timestamp: int
    date: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    base_volume: str
    quote_volume: str
    first_trade: int
    last_trade: int
    num_trades: int

    def to_record(self) -> dict[str, Any]:
        """Convert the candle into the flat dictionary used by the stores."""

        return {
            "timestamp": int(self.timestamp),
            "date": self.date,
            "open": str(self.open),
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "base_volume": self.base_volume,
            "quote_volume": self.quote_volume,
            "first_trade": int(self.first_trade),
            "last_trade": int(self.last_trade),
            "num_trades": int(self.num_trades),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Candle":
        """Instantiate a candle from the dictionary format produced by ``to_record``."""

        date = record["date"]
        if isinstance(date, str):
            date = parse_iso8601(date)
        elif hasattr(date, "to_pydatetime"):
            date = date.to_pydatetime()

        return cls(
            timestamp=int(record["timestamp"]),
            date=ensure_utc(date),
            open=Decimal(str(record["open"])),
            high=Decimal(str(record["high"])),
            low=Decimal(str(record["low"])),
            close=Decimal(str(record["close"])),
            base_volume=format_volume(Decimal(str(record["base_volume"]))),
            quote_volume=format_volume(Decimal(str(record["quote_volume"]))),
            first_trade=int(record["first_trade"]),
            last_trade=int(record["last_trade"]),
            num_trades=int(record.get("num_trades", 0) or 0),
        )


__all__ = ["Candle", "RawRecord", "RetrievalCursor", "format_volume", "VOLUME_QUANTUM"]
