"""Decide whether a closed tracked order was filled or cancelled.

An order that vanishes from the open-order list has either matched in full
or been cancelled (possibly after a partial match).  The closed-order feed
reports the notional matched as ``filled/total`` USDT; only a near-total
match with a FILLED status makes the order eligible for clearing.
"""

from collections.abc import Iterable
from decimal import Decimal
from enum import Enum

from auto_clear.apps.clearing.models import ClosedOrder, ClosedOrderStatus, OpenOrder
from auto_clear.core.models import HUNDRED, ZERO

_DEFAULT_USDT_FILL_TOLERANCE = Decimal("0.999")


class FillVerdict(Enum):
    """Outcome of inspecting a closed order."""

    FILLED = "filled"
    CANCELLED = "cancelled"


def select_candidates(pending_ids: Iterable[str], open_orders: list[OpenOrder]) -> list[str]:
    """Return pending order IDs that are no longer resting on the book.

    An order still in the open-order snapshot cannot have completed, so
    only departed orders are worth looking up in the closed-order feed.

    Args:
        pending_ids: IDs of tracked orders in ``pending`` state.
        open_orders: Open orders from this poll.

    Returns:
        Sorted IDs absent from ``open_orders``.

    """
    resting = {order.order_id for order in open_orders}
    return sorted(set(pending_ids) - resting)


class FillClassifier:
    """Classify closed orders using the USDT tolerance band.

    Args:
        usdt_tolerance: Fraction of the requested notional that must be
            matched for the order to count as fully filled.

    """

    def __init__(self, usdt_tolerance: Decimal = _DEFAULT_USDT_FILL_TOLERANCE) -> None:
        """Initialize the classifier."""
        self._usdt_tolerance = usdt_tolerance

    def classify(self, closed: ClosedOrder) -> FillVerdict:
        """Classify a closed order as fully filled or cancelled.

        Args:
            closed: Record from the closed-order feed.

        Returns:
            ``FILLED`` when the status is FILLED and
            ``filled_usdt >= total_usdt * tolerance``, else ``CANCELLED``.

        """
        if closed.status is not ClosedOrderStatus.FILLED:
            return FillVerdict.CANCELLED
        if closed.total_usdt <= ZERO:
            return FillVerdict.CANCELLED
        if closed.filled_usdt >= closed.total_usdt * self._usdt_tolerance:
            return FillVerdict.FILLED
        return FillVerdict.CANCELLED

    @staticmethod
    def filled_shares(closed: ClosedOrder, cost_price_pct: Decimal) -> Decimal:
        """Convert the matched notional into shares at the cost price.

        Args:
            closed: Record from the closed-order feed.
            cost_price_pct: Cost price on the 0-100 percentage scale.

        Returns:
            ``filled_usdt / (cost_price_pct / 100)``, or zero for a
            non-positive cost price.

        """
        if cost_price_pct <= ZERO:
            return ZERO
        return closed.filled_usdt / (cost_price_pct / HUNDRED)
