"""Exchange adapters describing how to page through and decode a REST feed."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Type
from urllib.parse import urlencode

from candle_builder.data.models import Candle, RawRecord
from candle_builder.data.termination import TerminationPolicy
from candle_builder.data.validation import check_record, is_page_valid
from candle_builder.errors import MalformedPage, RateLimited, UpstreamError
from candle_builder.utils import Duration, from_epoch_ms

BINANCE_API = "https://api.binance.com"
BINANCE_OUT_OF_RANGE = -1104
MAX_RECORDS_PER_REQUEST = 1000

FieldRef = int | str


@dataclass(frozen=True)
class AdapterConfig:
    """Static description of one exchange feed."""

    name: str
    symbol: str
    url: str
    cursor_param: str
    fields: Mapping[str, FieldRef]
    params: Mapping[str, Any] = field(default_factory=dict)
    error_field: str = "error"
    data_key: str | None = None
    validation_key: str = "id"
    termination: TerminationPolicy = TerminationPolicy.MIN_MAX
    durations: Tuple[Duration, ...] = (Duration.HOUR,)
    terminal_status: int = 400
    terminal_code: int = BINANCE_OUT_OF_RANGE
    initial_cursor: int | None = None
    revise_last_bucket: bool = False

    @property
    def storage_key(self) -> str:
        return f"{self.name}-{self.symbol}"


class ExchangeAdapter:
    """Request building, page extraction and record decoding for one feed."""

    def __init__(self, config: AdapterConfig) -> None:
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def durations(self) -> Tuple[Duration, ...]:
        return self.config.durations

    @property
    def termination(self) -> TerminationPolicy:
        return self.config.termination

    def build_request(self, cursor: int | None) -> str:
        """Return the page URL, adding the cursor parameter only when one is set."""

        params: Dict[str, Any] = dict(self.config.params)
        if cursor is not None:
            params[self.config.cursor_param] = cursor
        if not params:
            return self.config.url
        return f"{self.config.url}?{urlencode(params)}"

    def extract_page(self, status: int, body: Any) -> List[Any]:
        """Unwrap the record list from a decoded response body."""

        cfg = self.config
        if status == cfg.terminal_status and isinstance(body, Mapping):
            if str(body.get("code")) == str(cfg.terminal_code):
                raise RateLimited(str(body.get("msg") or "no data in requested range"), status=status)

        if not 200 <= status < 300:
            detail = body.get("msg") if isinstance(body, Mapping) else None
            raise UpstreamError(f"unexpected HTTP status {status}: {detail or 'response was unsuccessful'}", status=status)

        if isinstance(body, Mapping):
            message = body.get(cfg.error_field)
            if message:
                raise UpstreamError(str(message), status=status)
            if cfg.data_key is not None:
                body = body.get(cfg.data_key)

        if not isinstance(body, list):
            raise MalformedPage(f"expected a list of records, received {type(body).__name__}")
        return body

    def normalise(self, row: Any) -> Dict[str, Any]:
        """Map an array or keyed row onto canonical field names."""

        mapped: Dict[str, Any] = {}
        for name, ref in self.config.fields.items():
            if isinstance(row, (list, tuple)) and isinstance(ref, int):
                mapped[name] = row[ref] if -len(row) <= ref < len(row) else None
            elif isinstance(row, Mapping) and isinstance(ref, str):
                mapped[name] = row.get(ref)
            else:
                mapped[name] = None
        return mapped

    def is_page_valid(self, rows: Sequence[Mapping[str, Any]]) -> bool:
        return is_page_valid(rows, self.config.validation_key)

    def parse_record(self, row: Mapping[str, Any]) -> RawRecord:
        """Decode a canonical row into a validated :class:`RawRecord`."""

        try:
            record = RawRecord(
                id=int(row["id"]),
                timestamp=from_epoch_ms(row["date"]),
                price=Decimal(str(row["price"])),
                quantity=Decimal(str(row["amount"])),
                quote_quantity=_optional_decimal(row.get("quote_amount")),
                open=_optional_decimal(row.get("open")),
                high=_optional_decimal(row.get("high")),
                low=_optional_decimal(row.get("low")),
                num_trades=int(row["num_trades"]) if row.get("num_trades") is not None else None,
            )
            return check_record(record)
        except MalformedPage:
            raise
        except (KeyError, TypeError, ValueError, ArithmeticError, OverflowError) as exc:
            raise MalformedPage(f"unreadable record: {exc}", record=row.get("id")) from exc

    def first_cursor(self, high_water: int | None) -> int | None:
        """Cursor for the first request: just past the high-water id when resuming."""

        if high_water is not None:
            return high_water + 1
        return self.config.initial_cursor

    def next_cursor(self, page: Sequence[RawRecord]) -> int:
        """Cursor for the page following ``page``: one past its greatest id."""

        return max(record.id for record in page) + 1

    def resume_mark(self, candles: Sequence[Candle]) -> Tuple[List[Candle], int | None]:
        """Split stored candles into the ones kept as-is and the id to resume after.

        Feeds whose latest row can still change (an open kline) rebuild the
        newest stored bucket in full: it is dropped from the kept history and the
        mark moves to just before its first record.
        """

        if not candles:
            return [], None
        if self.config.revise_last_bucket:
            return list(candles[:-1]), candles[-1].first_trade - 1
        return list(candles), candles[-1].last_trade


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


class BinanceAggTradesAdapter(ExchangeAdapter):
    """Compressed/aggregate trades, paged forward with ``fromId``."""

    kind = "binance_aggtrades"

    @classmethod
    def default_config(
        cls,
        symbol: str,
        *,
        base_url: str | None = None,
        durations: Sequence[Duration] | None = None,
        termination: TerminationPolicy | None = None,
        limit: int | None = None,
        initial_cursor: int | None = None,
    ) -> AdapterConfig:
        return AdapterConfig(
            name="binance_aggtrades",
            symbol=symbol.upper(),
            url=f"{(base_url or BINANCE_API).rstrip('/')}/api/v3/aggTrades",
            params={"symbol": symbol.upper(), "limit": min(limit or MAX_RECORDS_PER_REQUEST, MAX_RECORDS_PER_REQUEST)},
            cursor_param="fromId",
            fields={"id": "a", "date": "T", "price": "p", "amount": "q"},
            validation_key="id",
            termination=termination or TerminationPolicy.MIN_MAX,
            durations=tuple(durations or (Duration.HOUR, Duration.DAY)),
            initial_cursor=initial_cursor,
        )


class BinanceKlinesAdapter(ExchangeAdapter):
    """One-minute klines, paged forward with ``startTime``.

    Row layout: ``[openTime, open, high, low, close, volume, closeTime,
    quoteAssetVolume, numberOfTrades, takerBuyBase, takerBuyQuote, ignore]``.
    The open time doubles as the record id. The newest kline may still be open,
    so a resumed build rebuilds the newest stored bucket of each duration.
    """

    kind = "binance_klines"

    @classmethod
    def default_config(
        cls,
        symbol: str,
        *,
        base_url: str | None = None,
        durations: Sequence[Duration] | None = None,
        termination: TerminationPolicy | None = None,
        limit: int | None = None,
        initial_cursor: int | None = None,
    ) -> AdapterConfig:
        return AdapterConfig(
            name="binance_klines",
            symbol=symbol.upper(),
            url=f"{(base_url or BINANCE_API).rstrip('/')}/api/v3/klines",
            params={
                "symbol": symbol.upper(),
                "interval": "1m",
                "limit": min(limit or MAX_RECORDS_PER_REQUEST, MAX_RECORDS_PER_REQUEST),
            },
            cursor_param="startTime",
            fields={
                "id": 0,
                "date": 0,
                "open": 1,
                "high": 2,
                "low": 3,
                "price": 4,
                "amount": 5,
                "quote_amount": 7,
                "num_trades": 8,
            },
            error_field="msg",
            validation_key="date",
            termination=termination or TerminationPolicy.MIN_MAX,
            durations=tuple(durations or (Duration.MINUTE,)),
            initial_cursor=initial_cursor,
            revise_last_bucket=True,
        )


ADAPTERS: Dict[str, Type[ExchangeAdapter]] = {
    BinanceAggTradesAdapter.kind: BinanceAggTradesAdapter,
    BinanceKlinesAdapter.kind: BinanceKlinesAdapter,
}


def create_adapter(kind: str, symbol: str, **options: Any) -> ExchangeAdapter:
    """Instantiate a registered adapter with its default configuration."""

    try:
        adapter_cls = ADAPTERS[kind]
    except KeyError as exc:
        raise ValueError(f"Unsupported adapter: {kind}") from exc
    return adapter_cls(adapter_cls.default_config(symbol, **options))  # type: ignore[attr-defined]


__all__ = [
    "AdapterConfig",
    "ExchangeAdapter",
    "BinanceAggTradesAdapter",
    "BinanceKlinesAdapter",
    "ADAPTERS",
    "create_adapter",
]
