"""CLI entry point for the automated clearing engine.

All command logic lives in the cli subpackage.
"""

from auto_clear.apps.clearing.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the auto-clear CLI application."""
    app()


if __name__ == "__main__":
    main()
