"""Build OHLCV candles from paginated exchange trade feeds."""

__version__ = "0.1.0"
