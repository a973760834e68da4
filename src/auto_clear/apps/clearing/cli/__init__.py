"""CLI subpackage for the automated clearing engine.

Create the Typer application and register all command modules.
"""

import typer

from auto_clear.apps.clearing.cli.order_cmds import buy, cancel, track
from auto_clear.apps.clearing.cli.quote_cmd import quote
from auto_clear.apps.clearing.cli.registry_cmds import clear, remove, stats, tracked
from auto_clear.apps.clearing.cli.run_cmd import run

app = typer.Typer(help="Automated clearing of filled Polymarket orders")

app.command()(run)
app.command()(buy)
app.command()(track)
app.command()(cancel)
app.command()(tracked)
app.command()(stats)
app.command()(remove)
app.command()(clear)
app.command()(quote)

__all__ = ["app"]
