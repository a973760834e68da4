"""Compute a safe price for the reverse (clearing) sell order.

The clearing price rests on the ask side close to the touch, never below
the cost of the filled buy, and never at or below the best bid, where it
would match immediately as a taker.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from auto_clear.clients.polymarket.models import OrderBook
from auto_clear.core.models import ONE

logger = logging.getLogger(__name__)

_DEFAULT_SPREAD_STEP = Decimal("0.1")
_DEFAULT_PRICE_PLACES = 3


@dataclass(frozen=True)
class ClearingQuote:
    """Inputs and result of one clearing price calculation.

    Args:
        cost_price: Cost of the filled buy as a probability.
        best_bid: Highest bid, or ``None`` for an empty bid side.
        best_ask: Lowest ask, or ``None`` for an empty ask side.
        price: Clearing price, or ``None`` when no safe price exists.

    """

    cost_price: Decimal
    best_bid: Decimal | None
    best_ask: Decimal | None
    price: Decimal | None

    @property
    def spread(self) -> Decimal | None:
        """Best ask minus best bid, when both sides are present."""
        if self.best_bid is None or self.best_ask is None:
            return None
        return self.best_ask - self.best_bid


def calculate_clearing_price(
    cost_price: Decimal,
    order_book: OrderBook,
    *,
    spread_step: Decimal = _DEFAULT_SPREAD_STEP,
    places: int = _DEFAULT_PRICE_PLACES,
) -> Decimal | None:
    """Return the clearing price for a position bought at ``cost_price``.

    Steps:
    1. No safe price if either side of the book is empty.
    2. Target the best ask, or ``spread_step`` inside it when the spread is
       wider than ``spread_step``.
    3. Floor the target at ``cost_price``.
    4. No safe price if the target is at or below the best bid.
    5. Round to ``places`` decimals, half-up, rounding up instead whenever
       half-up would fall below cost, and re-check against the best bid.

    Pure and deterministic: the same inputs always give the same output.

    Args:
        cost_price: Cost of the filled buy as a probability (0-1).
        order_book: Book with bids sorted descending and asks ascending.
        spread_step: Step inside the ask applied on wide spreads.
        places: Decimal places of the returned price.

    Returns:
        The clearing price, or ``None`` when no safe price exists.

    """
    if not order_book.bids or not order_book.asks:
        logger.warning("Cannot price clearing order: one side of the book is empty")
        return None

    best_bid = order_book.bids[0].price
    best_ask = order_book.asks[0].price
    spread = best_ask - best_bid

    target = best_ask - spread_step if spread > spread_step else best_ask
    target = max(target, cost_price)

    if target <= best_bid:
        logger.warning(
            "Clearing price %s would cross best bid %s (cost %s)", target, best_bid, cost_price
        )
        return None

    quantum = ONE.scaleb(-places)
    price = target.quantize(quantum, rounding=ROUND_HALF_UP)
    if price < cost_price:
        price = target.quantize(quantum, rounding=ROUND_CEILING)
    if price <= best_bid:
        logger.warning("Rounded clearing price %s would cross best bid %s", price, best_bid)
        return None
    return price


def quote_clearing_price(
    cost_price: Decimal,
    order_book: OrderBook,
    *,
    spread_step: Decimal = _DEFAULT_SPREAD_STEP,
    places: int = _DEFAULT_PRICE_PLACES,
) -> ClearingQuote:
    """Run the calculator and return its inputs alongside the result.

    Args:
        cost_price: Cost of the filled buy as a probability (0-1).
        order_book: Book with bids sorted descending and asks ascending.
        spread_step: Step inside the ask applied on wide spreads.
        places: Decimal places of the returned price.

    Returns:
        Quote carrying the top of book and the clearing price.

    """
    return ClearingQuote(
        cost_price=cost_price,
        best_bid=order_book.bids[0].price if order_book.bids else None,
        best_ask=order_book.asks[0].price if order_book.asks else None,
        price=calculate_clearing_price(
            cost_price, order_book, spread_step=spread_step, places=places
        ),
    )
