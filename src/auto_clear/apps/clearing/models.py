"""Data models for the clearing engine.

Define the value objects that flow through one reconciliation cycle: open
and closed order views from the exchange, the events the snapshot differ
emits, the persisted ``TrackedOrder`` record with its state machine, and
the engine configuration.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any

from auto_clear.clients.polymarket.models import OrderBook
from auto_clear.core.models import HUNDRED, ONE, ZERO, Outcome, Side
from auto_clear.core.timestamps import utc_now

_DEFAULT_REFRESH_SECONDS = 5.0
_DEFAULT_DATA_DIR = Path(".autoclear_data")
_DEFAULT_FILL_TOLERANCE = Decimal("0.99")
_DEFAULT_USDT_FILL_TOLERANCE = Decimal("0.999")
_DEFAULT_SPREAD_STEP = Decimal("0.1")
_DEFAULT_PRICE_PLACES = 3
_DEFAULT_SHARE_PLACES = 4
_DEFAULT_HISTORY_SIZE = 50
_DEFAULT_TICK_SIZE = "0.01"


class OrderStatus(Enum):
    """Lifecycle state of a tracked order.

    Orders only move forward: ``pending -> filled -> clearing`` and then to
    one of the terminal states ``cleared`` or ``error``.
    """

    PENDING = "pending"
    FILLED = "filled"
    CLEARING = "clearing"
    CLEARED = "cleared"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transition is possible."""
        return self in (OrderStatus.CLEARED, OrderStatus.ERROR)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Return whether moving from this status to ``target`` is allowed.

        Args:
            target: Desired next status.

        Returns:
            ``True`` if the state machine permits the move.

        """
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.FILLED}),
    OrderStatus.FILLED: frozenset({OrderStatus.CLEARING}),
    OrderStatus.CLEARING: frozenset({OrderStatus.CLEARED, OrderStatus.ERROR}),
    OrderStatus.CLEARED: frozenset(),
    OrderStatus.ERROR: frozenset(),
}


class ClosedOrderStatus(IntEnum):
    """Terminal status codes reported by the closed-order feed."""

    FILLED = 2
    CANCELLED = 3
    FAILED = 6


class EventType(Enum):
    """Kind of change the snapshot differ observed for an open order."""

    CREATED = "created"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    REMOVED = "removed"


@dataclass(frozen=True)
class OpenOrder:
    """One resting order as seen in an open-order snapshot.

    Args:
        order_id: Exchange-assigned order identifier.
        side: BUY or SELL.
        outcome: Outcome token the order trades.
        price: Limit price as a probability between 0 and 1.
        amount: Requested size in shares.
        filled: Shares matched so far.

    """

    order_id: str
    side: Side
    outcome: Outcome
    price: Decimal
    amount: Decimal
    filled: Decimal = ZERO


OrderSnapshot = dict[str, OpenOrder]


def build_snapshot(orders: list[OpenOrder]) -> OrderSnapshot:
    """Index open orders by ID, preserving the order the exchange returned.

    Args:
        orders: Open orders from a single poll.

    Returns:
        Mapping of order ID to open order.

    """
    return {order.order_id: order for order in orders}


@dataclass(frozen=True)
class ClosedOrder:
    """An order that has left the book, with its notional fill.

    Args:
        order_id: Exchange-assigned order identifier.
        status: Terminal status reported by the exchange.
        filled_usdt: Notional value matched, in USDT.
        total_usdt: Notional value originally requested, in USDT.

    """

    order_id: str
    status: ClosedOrderStatus
    filled_usdt: Decimal
    total_usdt: Decimal

    @property
    def fill_ratio(self) -> Decimal:
        """Fraction of the requested notional that was matched."""
        if self.total_usdt <= ZERO:
            return ZERO
        return self.filled_usdt / self.total_usdt

    @classmethod
    def from_filled_field(
        cls, order_id: str, status: int | ClosedOrderStatus, filled: str
    ) -> "ClosedOrder":
        """Build a closed order from the feed's ``"filled/total"`` string.

        Args:
            order_id: Exchange-assigned order identifier.
            status: Numeric status code (2 filled, 3 cancelled, 6 failed).
            filled: Notional fill written as ``"x/y"``.

        Returns:
            Parsed closed order.

        Raises:
            ValueError: If the filled string or status code is malformed.

        """
        parts = filled.split("/")
        if len(parts) != 2:  # noqa: PLR2004
            msg = f"Expected 'filled/total', got {filled!r}"
            raise ValueError(msg)
        try:
            filled_usdt = Decimal(parts[0].strip())
            total_usdt = Decimal(parts[1].strip())
        except InvalidOperation as exc:
            msg = f"Non-numeric fill amounts in {filled!r}"
            raise ValueError(msg) from exc
        return cls(
            order_id=order_id,
            status=ClosedOrderStatus(status),
            filled_usdt=filled_usdt,
            total_usdt=total_usdt,
        )


@dataclass(frozen=True)
class PlacedOrder:
    """A limit order accepted by the exchange, as it was actually submitted.

    Args:
        order_id: Exchange-assigned order identifier.
        price: Submitted limit price between 0 and 1, on the tick grid.
        shares: Submitted size in shares.

    """

    order_id: str
    price: Decimal
    shares: Decimal

    @property
    def price_pct(self) -> Decimal:
        """Submitted price on the 0-100 percentage scale."""
        return self.price * HUNDRED


@dataclass(frozen=True)
class OrderEvent:
    """A typed change emitted by the snapshot differ.

    Args:
        type: What happened to the order.
        order_id: Exchange-assigned order identifier.
        side: BUY or SELL.
        outcome: Outcome token the order trades.
        price: Limit price as a probability between 0 and 1.
        amount: Requested size in shares.
        filled: Shares matched at the time of the event.
        filled_delta: Shares matched since the previous snapshot.
        timestamp: When the event was emitted.

    """

    type: EventType
    order_id: str
    side: Side
    outcome: Outcome
    price: Decimal
    amount: Decimal
    filled: Decimal
    filled_delta: Decimal = ZERO
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class TrackedOrder:
    """A buy order the trader opted in for automatic clearing.

    Mutable on purpose: the registry advances ``status`` and fills in the
    fill and reverse-order fields as the order moves through its lifecycle.

    Args:
        order_id: Exchange-assigned order identifier (unique key).
        topic_id: Market the order belongs to.
        position: Outcome token bought.
        side: BUY or SELL; only BUY orders get a reverse order.
        cost_price: Fill price on the 0-100 percentage scale.
        amount: Requested size.
        tracked_at: When the order was opted in.
        status: Current lifecycle state.

    """

    order_id: str
    topic_id: str
    position: Outcome
    side: Side
    cost_price: Decimal
    amount: Decimal
    tracked_at: datetime = field(default_factory=utc_now)
    status: OrderStatus = OrderStatus.PENDING
    filled_at: datetime | None = None
    filled_shares: Decimal | None = None
    filled_usdt: Decimal | None = None
    reverse_order_id: str | None = None
    reverse_price: Decimal | None = None
    reverse_shares: Decimal | None = None
    cleared_at: datetime | None = None
    error_message: str | None = None

    @property
    def cost_fraction(self) -> Decimal:
        """Cost price as a probability between 0 and 1."""
        return self.cost_price / HUNDRED


@dataclass(frozen=True)
class ClearingConfig:
    """Tunables of the clearing engine.

    Args:
        refresh_seconds: Interval between reconciliation cycles.
        data_dir: Directory holding one JSON file per topic.
        fill_tolerance: Share-fill ratio at which a vanished order counts
            as fully filled.
        usdt_fill_tolerance: Notional-fill ratio at which a closed order
            counts as fully filled.
        spread_step: Amount stepped inside the ask when the spread is wider
            than this value.
        price_places: Decimal places of the clearing price.
        share_places: Decimal places of the reverse order size.
        history_size: Number of recent events kept in memory.
        tick_size: Minimum price increment of the market.

    Raises:
        ValueError: If an interval or tolerance is out of range.

    """

    refresh_seconds: float = _DEFAULT_REFRESH_SECONDS
    data_dir: Path = _DEFAULT_DATA_DIR
    fill_tolerance: Decimal = _DEFAULT_FILL_TOLERANCE
    usdt_fill_tolerance: Decimal = _DEFAULT_USDT_FILL_TOLERANCE
    spread_step: Decimal = _DEFAULT_SPREAD_STEP
    price_places: int = _DEFAULT_PRICE_PLACES
    share_places: int = _DEFAULT_SHARE_PLACES
    history_size: int = _DEFAULT_HISTORY_SIZE
    tick_size: str = _DEFAULT_TICK_SIZE

    def __post_init__(self) -> None:
        """Validate intervals and tolerance bands."""
        if self.refresh_seconds <= 0:
            msg = f"refresh_seconds must be positive, got {self.refresh_seconds}"
            raise ValueError(msg)
        for name in ("fill_tolerance", "usdt_fill_tolerance"):
            value: Decimal = getattr(self, name)
            if not (ZERO < value <= ONE):
                msg = f"{name} must be in (0, 1], got {value}"
                raise ValueError(msg)
        if self.history_size < 1:
            msg = f"history_size must be at least 1, got {self.history_size}"
            raise ValueError(msg)

    @classmethod
    def from_settings(
        cls, clearing: dict[str, Any], polymarket: dict[str, Any] | None = None
    ) -> "ClearingConfig":
        """Build a config from the ``clearing`` and ``polymarket`` settings sections.

        Values substituted from the environment arrive as strings, so each
        one is converted to its field type here.

        Args:
            clearing: The ``clearing`` section of the settings file.
            polymarket: The ``polymarket`` section, for the tick size.

        Returns:
            Engine configuration with defaults for missing keys.

        """
        polymarket = polymarket or {}
        return cls(
            refresh_seconds=float(clearing.get("refresh_seconds", _DEFAULT_REFRESH_SECONDS)),
            data_dir=Path(str(clearing.get("data_dir", _DEFAULT_DATA_DIR))),
            fill_tolerance=Decimal(str(clearing.get("fill_tolerance", _DEFAULT_FILL_TOLERANCE))),
            usdt_fill_tolerance=Decimal(
                str(clearing.get("usdt_fill_tolerance", _DEFAULT_USDT_FILL_TOLERANCE))
            ),
            spread_step=Decimal(str(clearing.get("spread_step", _DEFAULT_SPREAD_STEP))),
            history_size=int(clearing.get("history_size", _DEFAULT_HISTORY_SIZE)),
            tick_size=str(polymarket.get("tick_size", _DEFAULT_TICK_SIZE)),
        )


@dataclass(frozen=True)
class CycleResult:
    """Summary of one reconciliation cycle.

    Args:
        cycle: One-based cycle number.
        events: Events emitted by the snapshot differ.
        newly_filled: Tracked orders detected as filled this cycle.
        balance: USDC balance, or ``None`` if the fetch failed.
        yes_book: YES order book, or ``None`` if the fetch failed.
        no_book: NO order book, or ``None`` if the fetch failed.

    """

    cycle: int
    events: tuple[OrderEvent, ...] = ()
    newly_filled: tuple[TrackedOrder, ...] = ()
    balance: Decimal | None = None
    yes_book: OrderBook | None = None
    no_book: OrderBook | None = None
