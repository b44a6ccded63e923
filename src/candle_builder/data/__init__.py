"""Data access layer."""

from candle_builder.data.adapters import (
    ADAPTERS,
    AdapterConfig,
    BinanceAggTradesAdapter,
    BinanceKlinesAdapter,
    ExchangeAdapter,
    create_adapter,
)
from candle_builder.data.aggregator import CandleAggregator, aggregate, merge_candles
from candle_builder.data.models import Candle, RawRecord, RetrievalCursor
from candle_builder.data.retriever import TradeRetriever
from candle_builder.data.storage import CandleStore, MemoryCandleStore, ParquetCandleStore
from candle_builder.data.termination import TerminationPolicy

__all__ = [
	"ADAPTERS",
	"AdapterConfig",
	"ExchangeAdapter",
	"BinanceAggTradesAdapter",
	"BinanceKlinesAdapter",
	"create_adapter",
	"CandleAggregator",
	"aggregate",
	"merge_candles",
	"Candle",
	"RawRecord",
	"RetrievalCursor",
	"TradeRetriever",
	"CandleStore",
	"MemoryCandleStore",
	"ParquetCandleStore",
	"TerminationPolicy",
]
