"""Automated inventory clearing for binary-outcome prediction markets."""

__version__ = "0.1.0"
