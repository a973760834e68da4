"""Place the reverse (clearing) sell order for a filled tracked order.

The order is moved to ``clearing`` and saved before anything is sent to
the exchange, so a restart mid-submission finds it in ``clearing`` rather
than losing it.  Every failure ends in the terminal ``error`` state with a
descriptive message; nothing is retried automatically.
"""

import logging
from decimal import ROUND_DOWN

from auto_clear.apps.clearing.exceptions import (
    MarketDataError,
    PricingError,
    SubmissionError,
)
from auto_clear.apps.clearing.models import ClearingConfig, PlacedOrder, TrackedOrder
from auto_clear.apps.clearing.pricing import calculate_clearing_price
from auto_clear.apps.clearing.protocols import ExchangeClient, OrderBookSource
from auto_clear.apps.clearing.registry import TrackedOrderRegistry
from auto_clear.core.models import HUNDRED, ONE, ZERO, Side

logger = logging.getLogger(__name__)


class ReverseOrderSubmitter:
    """Drive a ``filled`` tracked order to ``cleared`` or ``error``.

    Args:
        registry: Registry owning the order's state.
        book_source: Live order books for the topic.
        exchange: Client that submits the sell.
        config: Engine configuration (spread step and precision).

    """

    def __init__(
        self,
        registry: TrackedOrderRegistry,
        book_source: OrderBookSource,
        exchange: ExchangeClient,
        config: ClearingConfig | None = None,
    ) -> None:
        """Initialize the submitter."""
        self._registry = registry
        self._book_source = book_source
        self._exchange = exchange
        self._config = config or ClearingConfig()

    async def clear(self, order: TrackedOrder) -> TrackedOrder:
        """Place the reverse order for ``order``.

        Sell-side orders need no clearing and are marked ``cleared``
        straight away.  For buys, fetch the live book for the position, run
        the clearing price calculator and sell exactly the filled shares.

        Args:
            order: Tracked order in ``filled`` state.

        Returns:
            The same order, now ``cleared`` or ``error``.

        Raises:
            InvalidTransitionError: If ``order`` is not in ``filled`` state.

        """
        self._registry.begin_clearing(order)

        if order.side is Side.SELL:
            logger.info("Order %s is a sell; no clearing order needed", order.order_id)
            self._registry.mark_cleared(order)
            return order

        try:
            placed = await self._submit(order)
        except (MarketDataError, PricingError, SubmissionError) as exc:
            logger.error("Clearing order for %s failed: %s", order.order_id, exc)  # noqa: TRY400
            self._registry.mark_error(order, str(exc))
            return order
        except Exception as exc:
            logger.exception("Unexpected error clearing %s", order.order_id)
            self._registry.mark_error(order, f"Unexpected error: {exc!r}")
            return order

        self._registry.mark_cleared(
            order,
            reverse_order_id=placed.order_id,
            reverse_price=placed.price,
            reverse_shares=placed.shares,
        )
        logger.info(
            "Clearing order %s placed for %s: %s shares @ %s",
            placed.order_id,
            order.order_id,
            placed.shares,
            placed.price,
        )
        return order

    async def _submit(self, order: TrackedOrder) -> PlacedOrder:
        """Price and submit the reverse sell.

        Returns:
            The sell as the exchange accepted it, at the tick-rounded price.

        Raises:
            PricingError: If the share count is invalid or no safe price exists.
            MarketDataError: If the order book cannot be fetched.
            SubmissionError: If the exchange rejects the sell.

        """
        quantum = ONE.scaleb(-self._config.share_places)
        shares = (order.filled_shares or ZERO).quantize(quantum, rounding=ROUND_DOWN)
        if shares <= ZERO:
            msg = f"Invalid filled share count: {order.filled_shares}"
            raise PricingError(msg)

        book = await self._book_source.get_order_book(order.position)
        price = calculate_clearing_price(
            order.cost_fraction,
            book,
            spread_step=self._config.spread_step,
            places=self._config.price_places,
        )
        if price is None:
            best_bid = book.bids[0].price if book.bids else None
            best_ask = book.asks[0].price if book.asks else None
            msg = (
                f"No safe clearing price (cost {order.cost_fraction}, "
                f"bid {best_bid}, ask {best_ask})"
            )
            raise PricingError(msg)

        logger.info(
            "Clearing price for %s: cost=%s bid=%s ask=%s -> %s",
            order.order_id,
            order.cost_fraction,
            book.bids[0].price,
            book.asks[0].price,
            price,
        )
        return await self._exchange.sell(order.position, price * HUNDRED, shares)
