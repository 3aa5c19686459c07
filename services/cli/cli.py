"""
Main CLI application for the live charting engine.

Commands load candle history, compose a chart with indicators, manage saved
annotations and run a live streaming session.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from core.annotations import (
    AnnotationManager,
    AnnotationStoreError,
    Fibonacci,
    HorizontalLine,
    JsonFileAnnotationStore,
    TextNote,
    TrendLine,
)
from core.chart import ChartComposer, ChartFrame, DisplayMode, IndicatorSet
from core.entities import ConnectionState
from core.indicators import DerivedSeries
from core.series_store import TimeSeriesStore

from ..config import ChartSettings, load_settings
from ..data_loader import load_candles
from ..session import ChartSession

app = typer.Typer(
    name="livechart",
    help="Real-time charting engine: indicators, live merge and annotations",
    add_completion=False,
)

annotations_app = typer.Typer(help="Inspect and clear saved annotations", add_completion=False)
app.add_typer(annotations_app, name="annotations")


def _configure_logging(verbose: bool, level: str = "INFO") -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def _settings(config: str | None, overrides: list[str] | None) -> ChartSettings:
    try:
        return load_settings(config, overrides or [])
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1) from e


def _last_value(series: DerivedSeries) -> str:
    for point in reversed(series):
        if point.is_present:
            return f"{point.value:.4f}"
    return "-"


def _print_frame(frame: ChartFrame) -> None:
    typer.echo(
        f"{frame.symbol}  mode={frame.display_mode.value}  "
        f"candles={len(frame.main_series)}  panes={frame.pane_count}"
    )
    if frame.main_series:
        last = frame.main_series[-1]
        typer.echo(
            f"  last {last.ts:%Y-%m-%d %H:%M}  O={last.open:.2f} H={last.high:.2f} "
            f"L={last.low:.2f} C={last.close:.2f} V={last.volume:.0f}"
        )
    for overlay in frame.overlays.values():
        values = ", ".join(f"{k}={_last_value(v)}" for k, v in overlay.lines.items())
        typer.echo(f"  [overlay] {overlay.name}: {values}")
    for pane in frame.oscillators.values():
        values = ", ".join(f"{k}={_last_value(v)}" for k, v in pane.lines.items())
        typer.echo(
            f"  [pane {pane.region.top:.2f}-{pane.region.bottom:.2f}] {pane.name}: {values}"
        )


@app.command()
def compose(
    data: str = typer.Argument(..., help="Path to a CSV/Parquet candle file"),
    symbol: str = typer.Option("DATA", "--symbol", "-s", help="Symbol label"),
    timeframe: str = typer.Option("1d", "--timeframe", "-t", help="Candle interval"),
    indicator: list[str] = typer.Option(
        ["sma20"], "--indicator", "-i", help="Indicator id (repeatable)"
    ),
    mode: DisplayMode = typer.Option(
        DisplayMode.CANDLESTICK, "--mode", "-m", help="Display mode"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Load a candle file, apply indicators and print the latest values.

    Examples:
        livechart compose data/AAPL.csv -t 1d -i sma20 -i rsi -i macd
        livechart compose data/BTC_1m.csv -t 15m --mode heikin_ashi
    """
    _configure_logging(verbose)

    data_path = Path(data)
    if not data_path.exists():
        typer.echo(f"Error: Data file not found: {data_path}", err=True)
        raise typer.Exit(1)

    try:
        candles = load_candles(data_path, timeframe)
        store = TimeSeriesStore(symbol.upper(), timeframe)
        store.replace(candles)
        composer = ChartComposer(store, IndicatorSet(enabled=indicator), display_mode=mode)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    _print_frame(composer.compose())
    if store.stats.seed_rows_dropped:
        typer.echo(f"  ({store.stats.seed_rows_dropped} invalid rows dropped)")


@annotations_app.command("list")
def list_annotations(
    symbol: str | None = typer.Argument(None, help="Symbol; all symbols if omitted"),
    config: str | None = typer.Option(None, "--config", "-c", help="Configuration file"),
) -> None:
    """List saved annotations."""
    settings = _settings(config, None)
    store = JsonFileAnnotationStore(settings.annotation_store_path)
    manager = AnnotationManager(store)

    try:
        symbols = [symbol.upper()] if symbol else store.symbols()
        for sym in symbols:
            annotations = manager.activate(sym)
            typer.echo(f"{sym}: {len(annotations)} annotation(s)")
            for ann in annotations:
                match ann:
                    case HorizontalLine(price=price, label=label):
                        detail = f"price={price}" + (f" label={label!r}" if label else "")
                    case TrendLine(point_a=a, point_b=b) | Fibonacci(point_a=a, point_b=b):
                        detail = f"{a.ts:%Y-%m-%d} {a.price} -> {b.ts:%Y-%m-%d} {b.price}"
                    case TextNote(point=p, label=label):
                        detail = f"{p.ts:%Y-%m-%d} {p.price} {label!r}"
                    case _:
                        detail = ""
                typer.echo(f"  {ann.id}  {ann.kind:<16} {ann.color}  {detail}")
    except AnnotationStoreError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


@annotations_app.command("clear")
def clear_annotations(
    symbol: str = typer.Argument(..., help="Symbol whose annotations are removed"),
    config: str | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Remove every saved annotation of one symbol."""
    settings = _settings(config, None)
    manager = AnnotationManager(JsonFileAnnotationStore(settings.annotation_store_path))

    try:
        manager.activate(symbol.upper())
        if not manager.annotations:
            typer.echo(f"{symbol.upper()}: nothing to clear")
            return
        if not yes:
            typer.confirm(
                f"Delete {len(manager.annotations)} annotation(s) for {symbol.upper()}?",
                abort=True,
            )
        removed = manager.clear_all()
    except AnnotationStoreError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    typer.echo(f"{symbol.upper()}: cleared {removed} annotation(s)")


async def _run_stream(session: ChartSession, symbol: str, duration: float) -> None:
    def on_state(state: ConnectionState) -> None:
        typer.echo(f"connection: {state.value}")

    if session.adapter is not None:
        session.adapter.add_listener(on_state)

    async with session:
        frame = await session.activate_symbol(symbol)
        _print_frame(frame)
        recomputes = await session.run(duration)

        typer.echo(f"{recomputes} recompute(s), last drain: {session.last_drain}")
        if session.frame is not None:
            _print_frame(session.frame)


@app.command()
def stream(
    symbol: str = typer.Argument(..., help="Symbol to stream"),
    duration: float = typer.Option(30.0, "--duration", "-d", help="Seconds to run"),
    config: str | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    override: list[str] | None = typer.Option(
        None, "--set", help="Config override, e.g. chart.timeframe=1m (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Seed history, stream live ticks for a while and print the chart.

    Example:
        livechart stream AAPL -c configs/chart.yaml --set chart.timeframe=1m -d 60
    """
    settings = _settings(config, override)
    _configure_logging(verbose, settings.log_level)

    session = ChartSession.from_settings(settings)
    try:
        asyncio.run(_run_stream(session, symbol, duration))
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        typer.echo("Interrupted")


if __name__ == "__main__":
    app()
