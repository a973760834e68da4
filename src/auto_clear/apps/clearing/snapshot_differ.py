"""Turn consecutive open-order snapshots into discrete order events.

Polling the exchange only ever yields the current set of resting orders.
Comparing each poll with the previous one recovers what happened in
between: an order appeared, matched some shares, or left the book (either
fully filled or cancelled).
"""

import logging
from decimal import Decimal

from auto_clear.apps.clearing.models import (
    EventType,
    OpenOrder,
    OrderEvent,
    OrderSnapshot,
    build_snapshot,
)
from auto_clear.core.models import ZERO

logger = logging.getLogger(__name__)

_DEFAULT_FILL_TOLERANCE = Decimal("0.99")


def is_fully_filled(order: OpenOrder, tolerance: Decimal = _DEFAULT_FILL_TOLERANCE) -> bool:
    """Return whether an order's matched size is within the fill tolerance band.

    Exchange rounding rarely lands on exact equality, so an order counts as
    fully filled once ``filled >= amount * tolerance``.

    Args:
        order: Last known state of the order.
        tolerance: Fraction of the amount that must be matched.

    Returns:
        ``True`` if the order should be treated as fully filled.

    """
    return order.filled >= order.amount * tolerance


class SnapshotDiffer:
    """Compare the previous and current open-order snapshots.

    Hold exactly two snapshots: the previous one kept on the instance and
    the current one passed to ``diff()``.  Older snapshots are discarded.

    Args:
        fill_tolerance: Fraction of the amount at which a vanished order
            counts as filled rather than removed.

    """

    def __init__(self, fill_tolerance: Decimal = _DEFAULT_FILL_TOLERANCE) -> None:
        """Initialize the differ with an empty baseline."""
        self._fill_tolerance = fill_tolerance
        self._previous: OrderSnapshot = {}

    @property
    def previous(self) -> OrderSnapshot:
        """Snapshot captured by the last ``diff()`` call."""
        return dict(self._previous)

    def reset(self) -> None:
        """Drop the baseline so the next snapshot is reported as all-new."""
        self._previous = {}

    def diff(self, current_orders: list[OpenOrder]) -> list[OrderEvent]:
        """Classify the changes between the stored snapshot and ``current_orders``.

        Orders only in the previous snapshot have left the book and are
        reported as ``filled`` or ``removed``; orders in both whose matched
        size grew are ``partially_filled``; orders only in the current
        snapshot are ``created``.  Unchanged orders produce no event.  The
        current snapshot then becomes the baseline for the next call.

        Args:
            current_orders: Open orders from this poll.

        Returns:
            Events in the order: departures and progress (previous snapshot
            order), then creations (current snapshot order).

        """
        current = build_snapshot(current_orders)
        events: list[OrderEvent] = []

        for order_id, previous in self._previous.items():
            now = current.get(order_id)
            if now is None:
                event_type = (
                    EventType.FILLED
                    if is_fully_filled(previous, self._fill_tolerance)
                    else EventType.REMOVED
                )
                events.append(_event(event_type, previous))
            elif now.filled > previous.filled:
                events.append(
                    _event(
                        EventType.PARTIALLY_FILLED,
                        now,
                        filled_delta=now.filled - previous.filled,
                    )
                )

        events.extend(
            _event(EventType.CREATED, order)
            for order_id, order in current.items()
            if order_id not in self._previous
        )

        self._previous = current
        if events:
            logger.debug("Snapshot diff produced %d event(s)", len(events))
        return events


def _event(event_type: EventType, order: OpenOrder, *, filled_delta: Decimal = ZERO) -> OrderEvent:
    """Build an event from an order's last known state."""
    return OrderEvent(
        type=event_type,
        order_id=order.order_id,
        side=order.side,
        outcome=order.outcome,
        price=order.price,
        amount=order.amount,
        filled=order.filled,
        filled_delta=filled_delta,
    )
