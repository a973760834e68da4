"""CLI commands that inspect and administer a topic's tracked orders.

These commands only touch the topic's JSON file and never contact the
exchange, so they are safe to run while the engine is stopped.
"""

from pathlib import Path
from typing import Annotated

import typer

from auto_clear.apps.clearing.cli._helpers import (
    format_order_row,
    load_clearing_config,
    open_registry,
)
from auto_clear.apps.clearing.models import OrderStatus

_STATUS_NAMES = ", ".join(status.value for status in OrderStatus)

TopicOption = Annotated[str, typer.Option(help="Market condition ID (hex string)")]
DataDirOption = Annotated[
    Path | None, typer.Option(help="Directory holding tracked-order files")
]


def tracked(
    topic: TopicOption,
    status: Annotated[
        str | None, typer.Option(help=f"Only show orders in this status ({_STATUS_NAMES})")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """List tracked orders, with error messages for failed clearings.

    Args:
        topic: Market condition ID.
        status: Optional status filter.
        data_dir: Directory for tracked-order files.

    """
    registry = open_registry(topic, load_clearing_config(data_dir))
    if status is None:
        orders = registry.get_tracked_orders()
    else:
        try:
            orders = registry.get_orders_by_status(status)
        except ValueError:
            typer.echo(f"Error: Status must be one of {_STATUS_NAMES}, got '{status}'.", err=True)
            raise typer.Exit(code=1) from None

    if not orders:
        typer.echo("\nNo tracked orders.")
        return

    typer.echo(f"\nTracked Orders ({len(orders)}):")
    typer.echo(
        f"{'ID':<24} {'Pos':<4} {'Side':<5} {'Cost%':>8} {'Amount':>10} {'Status':<9} Reverse"
    )
    typer.echo("-" * 86)
    for order in orders:
        typer.echo(format_order_row(order))
        if order.error_message:
            typer.echo(f"    error: {order.error_message}")


def stats(topic: TopicOption, data_dir: DataDirOption = None) -> None:
    """Show how many tracked orders are in each status.

    Args:
        topic: Market condition ID.
        data_dir: Directory for tracked-order files.

    """
    counts = open_registry(topic, load_clearing_config(data_dir)).get_stats()
    typer.echo(f"\nTotal:    {counts.pop('total')}")
    for name, count in counts.items():
        typer.echo(f"{name.capitalize() + ':':<9} {count}")


def remove(
    order_id: Annotated[str, typer.Argument(help="Tracked order ID to remove")],
    topic: TopicOption,
    data_dir: DataDirOption = None,
) -> None:
    """Stop tracking one order.

    Args:
        order_id: Tracked order ID.
        topic: Market condition ID.
        data_dir: Directory for tracked-order files.

    """
    registry = open_registry(topic, load_clearing_config(data_dir))
    if not registry.remove_tracked_order(order_id):
        typer.echo(f"Error: Order {order_id} is not tracked.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Removed tracked order {order_id}.")


def clear(
    topic: TopicOption,
    yes: Annotated[  # noqa: FBT002
        bool, typer.Option("--yes", help="Skip confirmation prompt")
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Remove every tracked order of a topic.

    Args:
        topic: Market condition ID.
        yes: Skip the confirmation prompt.
        data_dir: Directory for tracked-order files.

    """
    registry = open_registry(topic, load_clearing_config(data_dir))
    total = len(registry.get_tracked_orders())
    if total == 0:
        typer.echo("No tracked orders.")
        return
    if not yes and not typer.confirm(f"Remove all {total} tracked order(s)?"):
        typer.echo("Cancelled.")
        raise typer.Exit(code=0)
    removed = registry.clear_all()
    typer.echo(f"Removed {removed} tracked order(s).")
