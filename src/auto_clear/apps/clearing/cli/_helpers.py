"""Shared helpers for auto-clear CLI commands.

Centralise the pieces reused across command modules: logging setup,
settings and client construction, registry loading, and argument parsing.
"""

import logging
import os
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer

from auto_clear.apps.clearing.exceptions import PersistenceError
from auto_clear.apps.clearing.fill_classifier import FillClassifier
from auto_clear.apps.clearing.models import ClearingConfig, OrderEvent, TrackedOrder
from auto_clear.apps.clearing.registry import TrackedOrderRegistry
from auto_clear.apps.clearing.store import TrackedOrderStore
from auto_clear.clients.polymarket.client import PolymarketClient
from auto_clear.core.config import ConfigError, get_config
from auto_clear.core.models import Outcome


def configure_logging(*, verbose: bool = False) -> None:
    """Enable INFO-level logging, or DEBUG when ``verbose`` is set."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_clearing_config(
    data_dir: Path | None = None, refresh_seconds: float | None = None
) -> ClearingConfig:
    """Build the engine configuration from settings, with CLI overrides.

    Args:
        data_dir: Overrides ``clearing.data_dir``.
        refresh_seconds: Overrides ``clearing.refresh_seconds``.

    Returns:
        Engine configuration.

    """
    try:
        settings = get_config()
        config = ClearingConfig.from_settings(
            settings.get_section("clearing"), settings.get_section("polymarket")
        )
        if data_dir is not None:
            config = replace(config, data_dir=data_dir)
        if refresh_seconds is not None:
            config = replace(config, refresh_seconds=refresh_seconds)
    except (ConfigError, ValueError, InvalidOperation) as exc:
        typer.echo(f"Error: Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    return config


def polymarket_host() -> str:
    """Return the configured CLOB host."""
    return str(get_config().get("polymarket.host", PolymarketClient.CLOB_HOST))


def build_authenticated_client() -> PolymarketClient:
    """Build an authenticated PolymarketClient from environment variables.

    Read the private key and optional API credentials from the environment.
    Abort with an error if the private key is not set.

    Returns:
        Authenticated PolymarketClient ready for trading.

    """
    private_key = os.environ.get("POLYMARKET_PRIVATE_KEY", "")
    if not private_key:
        typer.echo("Error: POLYMARKET_PRIVATE_KEY environment variable is required.", err=True)
        raise typer.Exit(code=1)

    api_key = os.environ.get("POLYMARKET_API_KEY") or None
    api_secret = os.environ.get("POLYMARKET_API_SECRET") or None
    api_passphrase = os.environ.get("POLYMARKET_API_PASSPHRASE") or None
    funder_address = os.environ.get("POLYMARKET_FUNDER_ADDRESS") or None

    return PolymarketClient(
        host=polymarket_host(),
        private_key=private_key,
        api_key=api_key,
        api_secret=api_secret,
        api_passphrase=api_passphrase,
        funder_address=funder_address,
    )


def open_registry(topic: str, config: ClearingConfig) -> TrackedOrderRegistry:
    """Load the tracked orders of ``topic``.

    Abort with exit code 1 if the saved file is corrupt, rather than
    starting from an empty map that would overwrite it.

    Args:
        topic: Topic (condition ID) whose orders to load.
        config: Engine configuration with the data directory.

    Returns:
        Registry populated from disk.

    """
    registry = TrackedOrderRegistry(
        TrackedOrderStore(topic, config.data_dir),
        FillClassifier(config.usdt_fill_tolerance),
    )
    try:
        registry.load()
    except PersistenceError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    return registry


def parse_position(value: str) -> Outcome:
    """Parse a YES/NO option, aborting on anything else."""
    try:
        return Outcome.parse(value)
    except ValueError:
        typer.echo(f"Error: Position must be 'yes' or 'no', got '{value}'.", err=True)
        raise typer.Exit(code=1) from None


def parse_decimal(name: str, value: str) -> Decimal:
    """Parse a numeric option, aborting if it is malformed or not positive."""
    try:
        result = Decimal(value)
    except InvalidOperation:
        typer.echo(f"Error: Invalid {name} '{value}'.", err=True)
        raise typer.Exit(code=1) from None
    if not result.is_finite() or result <= 0:
        typer.echo(f"Error: {name.capitalize()} must be positive, got {value}.", err=True)
        raise typer.Exit(code=1)
    return result


def format_order_row(order: TrackedOrder) -> str:
    """Render one tracked order as a fixed-width table row."""
    reverse = ""
    if order.reverse_price is not None:
        reverse = f"{order.reverse_shares} @ {order.reverse_price}"
    return (
        f"{order.order_id[:24]:<24} {order.position.value:<4} {order.side.value:<5} "
        f"{order.cost_price:>8} {order.amount:>10} {order.status.value:<9} {reverse}"
    )


def format_event_row(event: OrderEvent) -> str:
    """Render one order event as a fixed-width log line."""
    return (
        f"{event.timestamp:%H:%M:%S} {event.type.value:<16} {event.order_id[:24]:<24} "
        f"{event.side.value:<4} {event.outcome.value:<3} @ {event.price} "
        f"filled {event.filled}/{event.amount}"
    )
