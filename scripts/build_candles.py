"""CLI entrypoint for building candles from the configured exchange feeds."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from candle_builder.config import load_settings
from candle_builder.data import MemoryCandleStore, ParquetCandleStore, TradeRetriever
from candle_builder.pipeline import CandleBuilder, build_all
from candle_builder.utils import Duration

app = typer.Typer(help="Candle build operations")


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@app.command()
def build(
    config: Optional[Path] = typer.Option(None, help="Settings TOML file (default: config/settings.toml)."),
    feed: Optional[List[str]] = typer.Option(None, help="Only build these feeds (adapter-SYMBOL)."),
    full_rebuild: bool = typer.Option(False, help="Ignore stored candles and rebuild from retrieved records only."),
    dry_run: bool = typer.Option(False, help="Keep candles in memory instead of writing the store."),
    log_level: str = typer.Option("INFO", help="Log level for stderr output."),
) -> None:
    """Retrieve new records for each feed, aggregate them and replace stored candles."""

    _configure_logging(log_level)
    settings = load_settings(config)

    feeds = settings.feeds
    if feed:
        wanted = {name.upper() for name in feed}
        feeds = [item for item in feeds if item.key.upper() in wanted]
    if not feeds:
        typer.echo("No matching feeds configured.", err=True)
        raise typer.Exit(code=1)

    store = MemoryCandleStore() if dry_run else ParquetCandleStore(settings.storage.root)
    adapters = [item.build_adapter() for item in feeds]

    with TradeRetriever(timeout=settings.http.timeout_seconds, user_agent=settings.http.user_agent) as retriever:
        builder = CandleBuilder(retriever, store, resume=settings.resume and not full_rebuild)
        results = build_all(
            builder,
            adapters,
            attempts=settings.retry.attempts,
            max_wait=settings.retry.max_wait_seconds,
        )

    for result in results:
        if result.ok:
            summary = ", ".join(f"{duration.value}={count}" for duration, count in result.counts.items())
            typer.echo(f"{result.feed}: ok ({summary or 'no durations'})")
        else:
            typer.echo(f"{result.feed}: failed ({result.error})", err=True)

    if not all(result.ok for result in results):
        raise typer.Exit(code=1)


@app.command()
def show(
    feed: str = typer.Option(..., help="Feed key (adapter-SYMBOL)."),
    duration: Duration = typer.Option(Duration.HOUR, help="Candle duration to display."),
    limit: int = typer.Option(20, min=1, help="Number of most recent candles to print."),
    config: Optional[Path] = typer.Option(None, help="Settings TOML file (default: config/settings.toml)."),
) -> None:
    """Print the most recent stored candles for a feed."""

    settings = load_settings(config)
    store = ParquetCandleStore(settings.storage.root)
    candles = store.load(duration, feed)
    if not candles:
        typer.echo(f"No {duration.value} candles stored for {feed}.")
        return

    for candle in candles[-limit:]:
        typer.echo(
            "{date} o={open} h={high} l={low} c={close} v={volume} qv={quote} trades={trades}".format(
                date=candle.date.isoformat(),
                open=candle.open,
                high=candle.high,
                low=candle.low,
                close=candle.close,
                volume=candle.base_volume,
                quote=candle.quote_volume,
                trades=candle.num_trades,
            )
        )


if __name__ == "__main__":  # pragma: no cover
    app()
