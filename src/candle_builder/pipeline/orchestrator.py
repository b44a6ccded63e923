"""Sequence retrieval, aggregation and persistence for one feed."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

from loguru import logger
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from candle_builder.data.adapters import ExchangeAdapter
from candle_builder.data.aggregator import aggregate, merge_candles
from candle_builder.data.models import Candle
from candle_builder.data.retriever import TradeRetriever
from candle_builder.data.storage import CandleStore
from candle_builder.errors import CandleBuildError, PersistenceError, TransportError, UpstreamError
from candle_builder.utils import Duration


@dataclass(frozen=True)
class BuildResult:
    """Outcome of one feed build as reported to the runner."""

    feed: str
    ok: bool
    error: str | None = None
    counts: Mapping[Duration, int] = field(default_factory=dict)


class CandleBuilder:
    """Retrieve once, then aggregate and replace each configured duration in turn.

    With ``resume`` enabled the stored history is read first. The adapter turns
    each duration's history into the candles kept as-is and a resume mark; the
    smallest mark becomes the high-water id, and each duration only folds in
    records newer than its own mark.
    """

    def __init__(self, retriever: TradeRetriever, store: CandleStore, *, resume: bool = True) -> None:
        self._retriever = retriever
        self._store = store
        self._resume = resume

    def load_history(self, adapter: ExchangeAdapter) -> Dict[Duration, List[Candle]]:
        if not self._resume:
            return {}
        key = adapter.config.storage_key
        history: Dict[Duration, List[Candle]] = {}
        for duration in adapter.durations:
            try:
                history[duration] = self._store.load(duration, key)
            except CandleBuildError as exc:
                raise exc.with_context(adapter=adapter.name, duration=duration.value)
            except Exception as exc:
                raise PersistenceError(
                    f"failed to load candles: {exc}", adapter=adapter.name, duration=duration.value
                ) from exc
        return history

    @staticmethod
    def high_water_id(marks: Mapping[Duration, int | None]) -> int | None:
        """Lowest resume mark across durations, or None if any duration has none."""

        if not marks or any(mark is None for mark in marks.values()):
            return None
        return min(mark for mark in marks.values() if mark is not None)

    def build(self, adapter: ExchangeAdapter) -> Dict[Duration, int]:
        """Run one build for ``adapter`` and return the stored candle count per duration."""

        history = self.load_history(adapter)
        resume_points = {duration: adapter.resume_mark(candles) for duration, candles in history.items()}
        high_water = self.high_water_id({duration: mark for duration, (_, mark) in resume_points.items()})
        trades = self._retriever.retrieve(adapter, high_water)

        counts: Dict[Duration, int] = {}
        for duration in adapter.durations:
            logger.info("Updating {duration} candles for {adapter}...", duration=duration.value, adapter=adapter.name)
            kept, mark = resume_points.get(duration, ([], None))
            try:
                candles = self._update_candles(adapter, duration, trades, kept, mark)
            except CandleBuildError as exc:
                raise exc.with_context(adapter=adapter.name, duration=duration.value)
            counts[duration] = len(candles)
        return counts

    def _update_candles(
        self,
        adapter: ExchangeAdapter,
        duration: Duration,
        trades: List,
        kept: List[Candle],
        mark: int | None,
    ) -> List[Candle]:
        if mark is not None:
            trades = [trade for trade in trades if trade.id > mark]
        candles = merge_candles(kept, aggregate(trades, duration))

        key = adapter.config.storage_key
        try:
            self._store.drop(duration, key)
            self._store.save(duration, key, candles)
        except CandleBuildError:
            raise
        except Exception as exc:
            raise PersistenceError(f"failed to store candles: {exc}") from exc

        logger.info(
            "{adapter}: stored {count} {duration} candles ({new} new records)",
            adapter=adapter.name,
            count=len(candles),
            duration=duration.value,
            new=len(trades),
        )
        return candles


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome is not None else None
    logger.warning(
        "Build attempt {attempt} failed: {error}; retrying",
        attempt=state.attempt_number,
        error=error,
    )


def run_build(
    builder: CandleBuilder,
    adapter: ExchangeAdapter,
    *,
    attempts: int = 1,
    max_wait: float = 30.0,
) -> BuildResult:
    """Build one feed, rerunning the whole build on transport or upstream failures."""

    retrying = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=1, max=max_wait),
        retry=retry_if_exception_type((TransportError, UpstreamError)),
        before_sleep=_log_retry,
        reraise=True,
    )
    feed = adapter.config.storage_key
    try:
        counts = retrying(builder.build, adapter)
    except CandleBuildError as exc:
        logger.error("Build failed for {feed}: {error}", feed=feed, error=exc)
        return BuildResult(feed=feed, ok=False, error=str(exc))

    return BuildResult(feed=feed, ok=True, counts=counts)


def build_all(
    builder: CandleBuilder,
    adapters: Iterable[ExchangeAdapter],
    *,
    attempts: int = 1,
    max_wait: float = 30.0,
) -> List[BuildResult]:
    """Build each feed in turn; one feed failing does not stop the others."""

    return [run_build(builder, adapter, attempts=attempts, max_wait=max_wait) for adapter in adapters]


__all__ = ["BuildResult", "CandleBuilder", "run_build", "build_all"]
