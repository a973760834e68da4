"""CLI command that runs the clearing engine for one topic.

Load the topic's tracked orders, bind the topic to its YES/NO tokens on
Polymarket, and poll until interrupted: every filled tracked buy gets a
reverse sell at a safe clearing price.
"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from auto_clear.apps.clearing.cli._helpers import (
    build_authenticated_client,
    configure_logging,
    format_event_row,
    load_clearing_config,
    open_registry,
)
from auto_clear.apps.clearing.driver import ReconciliationDriver
from auto_clear.apps.clearing.events import EventDispatcher, EventHistory, LoggingSubscriber
from auto_clear.apps.clearing.exceptions import MarketDataError
from auto_clear.apps.clearing.exchange import PolymarketExchange
from auto_clear.apps.clearing.models import ClearingConfig
from auto_clear.apps.clearing.notifier import TelegramNotifier
from auto_clear.apps.clearing.registry import TrackedOrderRegistry
from auto_clear.apps.clearing.store import CancelledOrderLog
from auto_clear.apps.clearing.submitter import ReverseOrderSubmitter
from auto_clear.core.config import get_config


def run(  # noqa: PLR0913
    topic: Annotated[str, typer.Option(help="Market condition ID (hex string)")],
    interval: Annotated[
        float | None, typer.Option(help="Seconds between reconciliation cycles")
    ] = None,
    max_cycles: Annotated[
        int | None, typer.Option(help="Stop after this many cycles (default: run until Ctrl-C)")
    ] = None,
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding tracked-order files")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Run the automated clearing engine for a topic.

    Poll open orders, order books and balance on a fixed interval, detect
    fully filled tracked buys, and place their reverse sell orders.

    Args:
        topic: Market condition ID.
        interval: Seconds between cycles (overrides settings).
        max_cycles: Optional cycle limit.
        data_dir: Directory for tracked-order files (overrides settings).
        verbose: Enable debug logging.

    """
    configure_logging(verbose=verbose)
    config = load_clearing_config(data_dir, interval)
    registry = open_registry(topic, config)
    asyncio.run(_run(topic=topic, config=config, registry=registry, max_cycles=max_cycles))

    stats = registry.get_stats()
    typer.echo(
        f"\nTracked orders: {stats['total']} "
        f"(pending {stats['pending']}, cleared {stats['cleared']}, error {stats['error']})"
    )


async def _run(
    *,
    topic: str,
    config: ClearingConfig,
    registry: TrackedOrderRegistry,
    max_cycles: int | None,
) -> None:
    """Wire the engine together and run the reconciliation loop.

    Args:
        topic: Market condition ID.
        config: Engine configuration.
        registry: Tracked orders loaded from disk.
        max_cycles: Optional cycle limit.

    """
    client = build_authenticated_client()
    try:
        async with client:
            exchange = await PolymarketExchange.for_topic(client, topic, config.tick_size)
            typer.echo(f"Topic: {exchange.market.question}")
            typer.echo(f"Tracking {len(registry.get_tracked_orders())} order(s)")

            notifier = TelegramNotifier.from_settings(
                get_config().get_section("telegram"),
                exchange.market.question,
                CancelledOrderLog(topic, config.data_dir),
            )
            history = EventHistory(config.history_size)
            dispatcher = EventDispatcher([LoggingSubscriber(), history, notifier])
            submitter = ReverseOrderSubmitter(registry, exchange, exchange, config)
            driver = ReconciliationDriver(
                registry,
                submitter,
                orders=exchange,
                books=exchange,
                balances=exchange,
                dispatcher=dispatcher,
                config=config,
            )
            try:
                await driver.run(max_cycles=max_cycles)
            finally:
                await notifier.close()
            _echo_history(history)
    except MarketDataError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo_history(history: EventHistory) -> None:
    """Print the order events seen during the run, oldest first."""
    events = history.recent()
    if not events:
        return
    typer.echo(f"\nRecent events ({len(events)}):")
    for event in events:
        typer.echo(f"  {format_event_row(event)}")
