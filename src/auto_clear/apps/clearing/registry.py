"""Registry of tracked orders and their lifecycle state machine.

Own the in-memory map of tracked orders for one topic and its persisted
mirror.  Every mutation goes through a transition check and is followed by
a full save; a failed save is logged and the in-memory map stays
authoritative until the next successful write.
"""

import logging
from decimal import Decimal, InvalidOperation

from auto_clear.apps.clearing.exceptions import (
    InvalidTransitionError,
    PersistenceError,
    ValidationError,
)
from auto_clear.apps.clearing.fill_classifier import FillClassifier, FillVerdict
from auto_clear.apps.clearing.models import ClosedOrder, OrderStatus, TrackedOrder
from auto_clear.apps.clearing.protocols import OrderClearer
from auto_clear.apps.clearing.store import TrackedOrderStore
from auto_clear.core.models import HUNDRED, ZERO, Outcome, Side
from auto_clear.core.timestamps import utc_now

logger = logging.getLogger(__name__)


class TrackedOrderRegistry:
    """Tracked orders of one topic, keyed by order ID.

    Mutations are not locked: the reconciliation driver runs its steps
    sequentially on a single event loop, so no two mutations interleave.

    Args:
        store: Persistence backend for the topic's file.
        classifier: Decides whether a closed order was fully filled.

    """

    def __init__(self, store: TrackedOrderStore, classifier: FillClassifier | None = None) -> None:
        """Initialize an empty registry; call ``load()`` to restore saved orders."""
        self._store = store
        self._classifier = classifier or FillClassifier()
        self._orders: dict[str, TrackedOrder] = {}
        self._closed_unfilled: set[str] = set()

    def load(self) -> int:
        """Replace the in-memory map with the orders saved on disk.

        Returns:
            Number of orders loaded.

        Raises:
            PersistenceError: If the saved file is corrupt.

        """
        self._orders = self._store.load()
        self._closed_unfilled.clear()
        return len(self._orders)

    def track(  # noqa: PLR0913
        self,
        order_id: str,
        topic_id: str,
        position: Outcome | str,
        side: Side | str | int,
        price: Decimal | str | float,
        amount: Decimal | str | float,
    ) -> TrackedOrder:
        """Start tracking an order for automatic clearing.

        Tracking the same order ID twice returns the existing record
        unchanged.

        Args:
            order_id: Exchange-assigned order identifier.
            topic_id: Topic the order belongs to.
            position: Outcome token (YES or NO).
            side: BUY or SELL (or the numeric codes 1 and 2).
            price: Limit price on the 0-100 percentage scale.
            amount: Requested size.

        Returns:
            The new ``pending`` record, or the existing one.

        Raises:
            ValidationError: If any parameter is missing or invalid.  The
                registry is left untouched.

        """
        order_id = str(order_id).strip()
        topic_id = str(topic_id).strip()
        if not order_id:
            msg = "order_id is required"
            raise ValidationError(msg)
        if not topic_id:
            msg = "topic_id is required"
            raise ValidationError(msg)
        try:
            parsed_position = Outcome.parse(position)
            parsed_side = Side.parse(side)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        cost_price = _parse_decimal("price", price)
        if not (ZERO < cost_price < HUNDRED):
            msg = f"price must be between 0 and 100 (exclusive), got {cost_price}"
            raise ValidationError(msg)
        size = _parse_decimal("amount", amount)
        if size <= ZERO:
            msg = f"amount must be positive, got {size}"
            raise ValidationError(msg)

        existing = self._orders.get(order_id)
        if existing is not None:
            logger.info("Order %s is already tracked (%s)", order_id, existing.status.value)
            return existing

        order = TrackedOrder(
            order_id=order_id,
            topic_id=topic_id,
            position=parsed_position,
            side=parsed_side,
            cost_price=cost_price,
            amount=size,
        )
        self._orders[order_id] = order
        self._persist()
        logger.info(
            "Tracking order %s (%s %s @ %s, amount %s)",
            order_id,
            parsed_side.value,
            parsed_position.value,
            cost_price,
            size,
        )
        return order

    async def reconcile_closed_orders(
        self, closed_orders: list[ClosedOrder], clearer: OrderClearer
    ) -> list[TrackedOrder]:
        """Match closed orders against pending tracked orders and clear fills.

        For each closed order whose ID belongs to a ``pending`` tracked
        order, a full fill moves the order to ``filled``, converts the
        matched USDT into shares at the cost price, and hands the order to
        ``clearer``.  Anything else is treated as a cancellation: the order
        stays ``pending`` and the fact is logged.

        Args:
            closed_orders: Records from the closed-order feed.
            clearer: Places the reverse order for a filled order.

        Returns:
            Tracked orders that were detected as filled in this call.

        """
        newly_filled: list[TrackedOrder] = []
        for closed in closed_orders:
            order = self._orders.get(closed.order_id)
            if order is None or order.status is not OrderStatus.PENDING:
                continue

            if self._classifier.classify(closed) is FillVerdict.CANCELLED:
                self._closed_unfilled.add(closed.order_id)
                logger.info(
                    "Order %s closed without a full fill (%s/%s USDT, status %s), not clearing",
                    closed.order_id,
                    closed.filled_usdt,
                    closed.total_usdt,
                    closed.status.name,
                )
                continue

            shares = self._classifier.filled_shares(closed, order.cost_price)
            self.mark_filled(order, filled_usdt=closed.filled_usdt, filled_shares=shares)
            logger.info(
                "Order %s fully filled: %s shares (%s USDT @ %s)",
                order.order_id,
                shares,
                closed.filled_usdt,
                order.cost_fraction,
            )
            newly_filled.append(order)
            await clearer.clear(order)
        return newly_filled

    def mark_filled(
        self, order: TrackedOrder, *, filled_usdt: Decimal, filled_shares: Decimal
    ) -> None:
        """Move a pending order to ``filled`` and record the fill."""
        self._transition(order, OrderStatus.FILLED)
        order.filled_at = utc_now()
        order.filled_usdt = filled_usdt
        order.filled_shares = filled_shares
        self._persist()

    def begin_clearing(self, order: TrackedOrder) -> None:
        """Move a filled order to ``clearing`` and persist before any submission."""
        self._transition(order, OrderStatus.CLEARING)
        self._persist()

    def mark_cleared(
        self,
        order: TrackedOrder,
        *,
        reverse_order_id: str | None = None,
        reverse_price: Decimal | None = None,
        reverse_shares: Decimal | None = None,
    ) -> None:
        """Move a clearing order to ``cleared`` and record the reverse order.

        Sell-side orders are cleared without a reverse order, so every
        reverse field is optional.
        """
        self._transition(order, OrderStatus.CLEARED)
        order.reverse_order_id = reverse_order_id
        order.reverse_price = reverse_price
        order.reverse_shares = reverse_shares
        order.cleared_at = utc_now()
        self._persist()

    def mark_error(self, order: TrackedOrder, message: str) -> None:
        """Move a clearing order to the terminal ``error`` state."""
        self._transition(order, OrderStatus.ERROR)
        order.error_message = message
        self._persist()

    def get(self, order_id: str) -> TrackedOrder | None:
        """Return the tracked order with ``order_id``, if any."""
        return self._orders.get(order_id)

    def get_tracked_orders(self) -> list[TrackedOrder]:
        """Return every tracked order in tracking order."""
        return list(self._orders.values())

    def get_orders_by_status(self, status: OrderStatus | str) -> list[TrackedOrder]:
        """Return tracked orders currently in ``status``.

        Raises:
            ValueError: If ``status`` is not a known status name.

        """
        wanted = status if isinstance(status, OrderStatus) else OrderStatus(status.lower())
        return [order for order in self._orders.values() if order.status is wanted]

    def pending_order_ids(self) -> set[str]:
        """Return the IDs of orders still waiting for their fill."""
        return {oid for oid, order in self._orders.items() if order.status is OrderStatus.PENDING}

    def awaiting_fill_ids(self) -> set[str]:
        """Return pending IDs not yet seen closing without a full fill.

        An order found cancelled stays ``pending`` until an operator removes
        it, but looking it up again every cycle would only repeat the answer.
        """
        return self.pending_order_ids() - self._closed_unfilled

    def remove_tracked_order(self, order_id: str) -> bool:
        """Stop tracking an order.

        Returns:
            ``True`` if the order was tracked and has been removed.

        """
        if self._orders.pop(order_id, None) is None:
            return False
        self._closed_unfilled.discard(order_id)
        self._persist()
        logger.info("Removed tracked order %s", order_id)
        return True

    def clear_all(self) -> int:
        """Remove every tracked order of the topic.

        Returns:
            Number of orders removed.

        """
        count = len(self._orders)
        self._orders.clear()
        self._closed_unfilled.clear()
        self._persist()
        logger.info("Cleared %d tracked order(s)", count)
        return count

    def get_stats(self) -> dict[str, int]:
        """Count tracked orders in total and per status."""
        stats: dict[str, int] = {"total": len(self._orders)}
        for status in OrderStatus:
            stats[status.value] = 0
        for order in self._orders.values():
            stats[order.status.value] += 1
        return stats

    def _transition(self, order: TrackedOrder, target: OrderStatus) -> None:
        """Advance ``order`` to ``target`` if the state machine allows it.

        Raises:
            InvalidTransitionError: If the move is not allowed.

        """
        if not order.status.can_transition_to(target):
            raise InvalidTransitionError(order.order_id, order.status.value, target.value)
        logger.debug("Order %s: %s -> %s", order.order_id, order.status.value, target.value)
        order.status = target

    def _persist(self) -> None:
        """Save the whole map, logging rather than raising on failure."""
        try:
            self._store.save(self._orders)
        except PersistenceError:
            logger.exception("Failed to save tracked orders; keeping in-memory state")


def _parse_decimal(name: str, value: Decimal | str | float) -> Decimal:
    """Convert a tracking parameter to Decimal.

    Raises:
        ValidationError: If the value is not a finite number.

    """
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        msg = f"{name} must be a number, got {value!r}"
        raise ValidationError(msg) from exc
    if not result.is_finite():
        msg = f"{name} must be finite, got {value!r}"
        raise ValidationError(msg)
    return result
