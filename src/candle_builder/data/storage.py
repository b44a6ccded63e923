"""Persistence gateways for aggregated candles."""
from __future__ import annotations

import os
import uuid
from contextlib import suppress
from pathlib import Path
from typing import Dict, List, Protocol, Sequence, Tuple

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq
from loguru import logger

from candle_builder.data.models import Candle
from candle_builder.errors import PersistenceError
from candle_builder.utils import Duration

CANDLE_SCHEMA = pa.schema(
    [
        ("timestamp", pa.int64()),
        ("date", pa.timestamp("ms", tz="UTC")),
        ("open", pa.string()),
        ("high", pa.string()),
        ("low", pa.string()),
        ("close", pa.string()),
        ("base_volume", pa.string()),
        ("quote_volume", pa.string()),
        ("first_trade", pa.int64()),
        ("last_trade", pa.int64()),
        ("num_trades", pa.int64()),
    ]
)


class CandleStore(Protocol):
    """Keyed store holding the complete candle history per duration."""

    def drop(self, duration: Duration, key: str) -> None:
        """Remove every stored candle for ``duration`` and ``key``."""
        raise NotImplementedError

    def save(self, duration: Duration, key: str, candles: Sequence[Candle]) -> None:
        """Persist ``candles`` for ``duration`` and ``key``."""
        raise NotImplementedError

    def load(self, duration: Duration, key: str) -> List[Candle]:
        """Return stored candles ordered by timestamp ascending."""
        raise NotImplementedError


class MemoryCandleStore:
    """In-process store; handy for dry runs and tests."""

    def __init__(self) -> None:
        self._items: Dict[Tuple[Duration, str], List[Candle]] = {}

    def drop(self, duration: Duration, key: str) -> None:
        self._items.pop((Duration(duration), key), None)

    def save(self, duration: Duration, key: str, candles: Sequence[Candle]) -> None:
        self._items[(Duration(duration), key)] = sorted(candles, key=lambda candle: candle.timestamp)

    def load(self, duration: Duration, key: str) -> List[Candle]:
        return list(self._items.get((Duration(duration), key), []))


class ParquetCandleStore:
    """Persist each duration's candles as a single Parquet file.

    ``save`` writes a staging file next to the target and swaps it in with
    ``os.replace``; readers observe either no file or a complete one.
    """

    FILE_NAME = "candles.parquet"

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, duration: Duration, key: str) -> Path:
        return self.root_dir / f"key={key}" / f"duration={Duration(duration).value}" / self.FILE_NAME

    def drop(self, duration: Duration, key: str) -> None:
        path = self.path_for(duration, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"failed to drop candles: {exc}", duration=Duration(duration).value, key=key) from exc

    def save(self, duration: Duration, key: str, candles: Sequence[Candle]) -> None:
        target = self.path_for(duration, key)
        staging = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        records = [candle.to_record() for candle in sorted(candles, key=lambda candle: candle.timestamp)]
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            table = pa.Table.from_pylist(records, schema=CANDLE_SCHEMA)
            pq.write_table(table, staging, compression="snappy")
            os.replace(staging, target)
        except (OSError, pa.ArrowException) as exc:
            with suppress(OSError):
                staging.unlink(missing_ok=True)
            raise PersistenceError(f"failed to save candles: {exc}", duration=Duration(duration).value, key=key) from exc

        logger.debug("Wrote {count} candles to {path}", count=len(records), path=target)

    def load(self, duration: Duration, key: str) -> List[Candle]:
        path = self.path_for(duration, key)
        if not path.exists():
            return []
        try:
            frame = pq.read_table(path).to_pandas()
        except (OSError, pa.ArrowException) as exc:
            raise PersistenceError(f"failed to load candles: {exc}", duration=Duration(duration).value, key=key) from exc

        if frame.empty:
            return []
        frame["date"] = pd.to_datetime(frame["date"], utc=True)
        frame = frame.sort_values("timestamp", kind="mergesort").reset_index(drop=True)
        return [Candle.from_record(record) for record in frame.to_dict(orient="records")]


__all__ = ["CandleStore", "MemoryCandleStore", "ParquetCandleStore", "CANDLE_SCHEMA"]
