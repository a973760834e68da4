"""Core value types shared across the auto-clear application.

Define the decimal constants and the small enums (order side, binary
outcome) that flow between the exchange adapter, the clearing engine,
and the CLI.
"""

from decimal import Decimal
from enum import Enum

ZERO = Decimal(0)
ONE = Decimal(1)
HUNDRED = Decimal(100)

_SIDE_CODES = {1: "BUY", 2: "SELL"}


class Side(Enum):
    """Direction of an order: BUY adds inventory, SELL releases it."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: "str | int | Side") -> "Side":
        """Parse a side from its name or the exchange's numeric code.

        Accept ``"BUY"``/``"SELL"`` in any case, or ``1`` (BUY) and
        ``2`` (SELL) as used by the order-query endpoints.

        Args:
            value: Side name, numeric code, or an existing ``Side``.

        Returns:
            The matching ``Side`` member.

        Raises:
            ValueError: If the value does not name a side.

        """
        if isinstance(value, Side):
            return value
        if isinstance(value, int):
            name = _SIDE_CODES.get(value)
            if name is None:
                msg = f"Unknown side code: {value}"
                raise ValueError(msg)
            return cls(name)
        return cls(value.strip().upper())


class Outcome(Enum):
    """One of the two outcome tokens of a binary market."""

    YES = "YES"
    NO = "NO"

    @classmethod
    def parse(cls, value: "str | Outcome") -> "Outcome":
        """Parse an outcome label case-insensitively.

        Args:
            value: ``"YES"``/``"NO"`` (any case) or an existing ``Outcome``.

        Returns:
            The matching ``Outcome`` member.

        Raises:
            ValueError: If the label is neither YES nor NO.

        """
        if isinstance(value, Outcome):
            return value
        return cls(value.strip().upper())
