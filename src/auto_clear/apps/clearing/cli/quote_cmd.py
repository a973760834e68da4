"""CLI command that previews the clearing price for a position.

Read-only: fetch the live book for one outcome and show the price the
engine would place a clearing order at for a given cost.
"""

import asyncio
from decimal import Decimal
from typing import Annotated

import typer

from auto_clear.apps.clearing.cli._helpers import (
    load_clearing_config,
    parse_decimal,
    parse_position,
    polymarket_host,
)
from auto_clear.apps.clearing.exceptions import MarketDataError
from auto_clear.apps.clearing.exchange import PolymarketExchange
from auto_clear.apps.clearing.models import ClearingConfig
from auto_clear.apps.clearing.pricing import ClearingQuote, quote_clearing_price
from auto_clear.clients.polymarket.client import PolymarketClient
from auto_clear.core.models import HUNDRED, Outcome


def quote(
    topic: Annotated[str, typer.Option(help="Market condition ID (hex string)")],
    position: Annotated[str, typer.Option(help="Outcome held: yes or no")],
    cost: Annotated[str, typer.Option(help="Cost price in percent (0-100)")],
) -> None:
    """Show the clearing price the engine would use right now.

    Args:
        topic: Market condition ID.
        position: Outcome token held.
        cost: Cost price on the 0-100 percentage scale.

    """
    outcome = parse_position(position)
    cost_pct = parse_decimal("cost", cost)
    config = load_clearing_config()
    result = asyncio.run(
        _quote(topic=topic, position=outcome, cost=cost_pct / HUNDRED, config=config)
    )

    typer.echo(f"\n{outcome.value} order book")
    typer.echo(f"  Best bid: {result.best_bid if result.best_bid is not None else '-'}")
    typer.echo(f"  Best ask: {result.best_ask if result.best_ask is not None else '-'}")
    if result.spread is not None:
        typer.echo(f"  Spread:   {result.spread}")
    typer.echo(f"Cost:     {result.cost_price}")
    if result.price is None:
        typer.echo("Clearing price: none (no safe price on the current book)")
    else:
        typer.echo(f"Clearing price: {result.price} ({result.price * HUNDRED}%)")


async def _quote(
    *, topic: str, position: Outcome, cost: Decimal, config: ClearingConfig
) -> ClearingQuote:
    """Fetch the book and run the calculator.

    Args:
        topic: Market condition ID.
        position: Outcome token held.
        cost: Cost price as a probability.
        config: Engine configuration with tick size and pricing steps.

    Returns:
        Quote with the top of book and the clearing price.

    """
    client = PolymarketClient(host=polymarket_host())
    try:
        async with client:
            exchange = await PolymarketExchange.for_topic(client, topic, config.tick_size)
            book = await exchange.get_order_book(position)
    except MarketDataError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    return quote_clearing_price(
        cost, book, spread_step=config.spread_step, places=config.price_places
    )
