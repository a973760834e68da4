"""Exception hierarchy for the clearing engine.

Follow the same pattern as the Polymarket client: a base exception class
with specialised errors for each failure category.  The reconciliation
loop catches these per step, so none of them stops polling.
"""


class ClearingError(Exception):
    """Base exception for all clearing engine errors."""


class ValidationError(ClearingError):
    """Raise when tracking parameters are missing or invalid.

    Raised before any registry mutation, so a rejected request leaves no
    trace in memory or on disk.
    """


class MarketDataError(ClearingError):
    """Raise when an order book or order list cannot be fetched."""


class PricingError(ClearingError):
    """Raise when no safe clearing price exists for the current book."""


class SubmissionError(ClearingError):
    """Raise when the exchange rejects a submitted order."""


class PersistenceError(ClearingError):
    """Raise when tracked orders cannot be written to or read from disk."""


class InvalidTransitionError(ClearingError):
    """Raise when a tracked order is moved against its state machine.

    Args:
        order_id: Identifier of the tracked order.
        current: Status the order is currently in.
        target: Status the caller attempted to move it to.

    """

    def __init__(self, order_id: str, current: str, target: str) -> None:
        """Initialize the transition error.

        Args:
            order_id: Identifier of the tracked order.
            current: Status the order is currently in.
            target: Status the caller attempted to move it to.

        """
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")
        self.order_id = order_id
        self.current = current
        self.target = target
