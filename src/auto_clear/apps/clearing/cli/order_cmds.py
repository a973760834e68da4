"""CLI commands that opt orders in for automatic clearing.

``buy`` places a limit buy on the topic and, with ``--auto-clear``,
starts tracking it straight away at the price actually submitted.
``track`` opts in an order that was placed some other way.  ``cancel``
withdraws a resting order and marks it so the running engine does not
announce its removal.
"""

import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import typer

from auto_clear.apps.clearing.cli._helpers import (
    build_authenticated_client,
    load_clearing_config,
    open_registry,
    parse_decimal,
    parse_position,
)
from auto_clear.apps.clearing.exceptions import (
    MarketDataError,
    PersistenceError,
    SubmissionError,
    ValidationError,
)
from auto_clear.apps.clearing.exchange import PolymarketExchange
from auto_clear.apps.clearing.models import ClearingConfig, PlacedOrder
from auto_clear.apps.clearing.store import CancelledOrderLog
from auto_clear.core.models import HUNDRED, Outcome, Side

_MIN_PRICE_PCT = Decimal(1)
_MAX_PRICE_PCT = Decimal(99)


def buy(  # noqa: PLR0913
    topic: Annotated[str, typer.Option(help="Market condition ID (hex string)")],
    position: Annotated[str, typer.Option(help="Outcome to buy: yes or no")],
    price: Annotated[str, typer.Option(help="Limit price in percent (1-99)")],
    shares: Annotated[str, typer.Option(help="Number of shares to buy")],
    auto_clear: Annotated[  # noqa: FBT002
        bool, typer.Option("--auto-clear", help="Track the order for automatic clearing")
    ] = False,
    no_confirm: Annotated[  # noqa: FBT002
        bool, typer.Option("--no-confirm", help="Skip confirmation prompt")
    ] = False,
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding tracked-order files")
    ] = None,
) -> None:
    """Place a limit buy, optionally tracking it for automatic clearing.

    Args:
        topic: Market condition ID.
        position: Outcome token to buy.
        price: Limit price on the 0-100 percentage scale.
        shares: Number of shares.
        auto_clear: Track the order once it is accepted.
        no_confirm: Skip the confirmation prompt.
        data_dir: Directory for tracked-order files.

    """
    outcome = parse_position(position)
    price_pct = parse_decimal("price", price)
    if not (_MIN_PRICE_PCT <= price_pct <= _MAX_PRICE_PCT):
        typer.echo(
            f"Error: Price must be {_MIN_PRICE_PCT}-{_MAX_PRICE_PCT} percent, got {price_pct}.",
            err=True,
        )
        raise typer.Exit(code=1)
    size = parse_decimal("shares", shares)
    config = load_clearing_config(data_dir)
    registry = open_registry(topic, config) if auto_clear else None

    typer.echo("\n--- Order Preview ---")
    typer.echo(f"Side: BUY {outcome.value}")
    typer.echo(f"Price: {price_pct}%")
    typer.echo(f"Size: {size} shares")
    typer.echo(f"Estimated cost: ${price_pct / HUNDRED * size:.2f}")
    typer.echo(f"Auto-clear: {'on' if auto_clear else 'off'}")
    if not no_confirm and not typer.confirm("\nPlace this order?"):
        typer.echo("Order cancelled.")
        raise typer.Exit(code=0)

    placed = asyncio.run(
        _buy(topic=topic, position=outcome, price_pct=price_pct, size=size, config=config)
    )
    typer.echo(f"\nOrder ID: {placed.order_id}")
    if placed.price_pct != price_pct:
        typer.echo(f"Submitted at {placed.price_pct}% (tick {config.tick_size})")

    if registry is not None:
        registry.track(placed.order_id, topic, outcome, Side.BUY, placed.price_pct, placed.shares)
        typer.echo("Order tracked for automatic clearing.")


async def _buy(
    *,
    topic: str,
    position: Outcome,
    price_pct: Decimal,
    size: Decimal,
    config: ClearingConfig,
) -> PlacedOrder:
    """Submit the buy and return it as placed.

    Args:
        topic: Market condition ID.
        position: Outcome token to buy.
        price_pct: Limit price on the 0-100 percentage scale.
        size: Number of shares.
        config: Engine configuration with the tick size.

    Returns:
        The accepted order with its tick-rounded price.

    """
    client = build_authenticated_client()
    try:
        async with client:
            exchange = await PolymarketExchange.for_topic(client, topic, config.tick_size)
            return await exchange.buy(position, price_pct, size)
    except (MarketDataError, SubmissionError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def track(  # noqa: PLR0913
    topic: Annotated[str, typer.Option(help="Market condition ID (hex string)")],
    order_id: Annotated[str, typer.Option(help="Exchange order ID to track")],
    position: Annotated[str, typer.Option(help="Outcome the order trades: yes or no")],
    price: Annotated[str, typer.Option(help="Order price in percent (0-100)")],
    amount: Annotated[str, typer.Option(help="Order size")],
    side: Annotated[str, typer.Option(help="Order side: buy or sell")] = "buy",
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding tracked-order files")
    ] = None,
) -> None:
    """Track an existing order for automatic clearing.

    Args:
        topic: Market condition ID.
        order_id: Exchange order ID.
        position: Outcome token.
        price: Order price on the 0-100 percentage scale.
        amount: Order size.
        side: Order side.
        data_dir: Directory for tracked-order files.

    """
    config = load_clearing_config(data_dir)
    registry = open_registry(topic, config)
    try:
        order = registry.track(order_id, topic, position, side, price, amount)
    except ValidationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(
        f"Tracking order {order.order_id}: {order.side.value} {order.position.value} "
        f"@ {order.cost_price}% x {order.amount} ({order.status.value})"
    )


def cancel(
    order_id: Annotated[str, typer.Argument(help="Exchange order ID to cancel")],
    topic: Annotated[str, typer.Option(help="Market condition ID (hex string)")],
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding tracked-order files")
    ] = None,
) -> None:
    """Cancel a resting order without a removal notification.

    The order is marked as cancelled by hand before the request is sent,
    so an engine polling the topic cannot see it leave the book first.

    Args:
        order_id: Exchange order ID.
        topic: Market condition ID.
        data_dir: Directory for tracked-order files.

    """
    config = load_clearing_config(data_dir)
    marks = CancelledOrderLog(topic, config.data_dir)
    try:
        marks.add(order_id)
    except PersistenceError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    try:
        asyncio.run(_cancel(topic=topic, order_id=order_id, config=config))
    except typer.Exit:
        marks.consume(order_id)
        raise
    typer.echo(f"Cancelled order {order_id}.")


async def _cancel(*, topic: str, order_id: str, config: ClearingConfig) -> None:
    """Send the cancellation, aborting with exit code 1 on failure."""
    client = build_authenticated_client()
    try:
        async with client:
            exchange = await PolymarketExchange.for_topic(client, topic, config.tick_size)
            await exchange.cancel(order_id)
    except (MarketDataError, SubmissionError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
