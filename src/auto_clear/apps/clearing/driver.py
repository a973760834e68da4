"""Reconciliation driver: one poll cycle at a fixed interval.

Each cycle fetches the YES and NO order books, the USDC balance and the
open orders concurrently, then runs the differ, event dispatch, fill
classification, pricing and submission strictly in sequence.  A new cycle
starts only after the previous one has finished, so the tracked-order map
is never mutated by two steps at once.

A failed fetch only skips the steps that depend on it; the loop keeps
polling until it is stopped by SIGINT/SIGTERM or reaches ``max_cycles``.
"""

import asyncio
import contextlib
import logging
import signal
from decimal import Decimal
from typing import TypeVar

from auto_clear.apps.clearing.events import EventDispatcher
from auto_clear.apps.clearing.exceptions import ClearingError, MarketDataError
from auto_clear.apps.clearing.fill_classifier import select_candidates
from auto_clear.apps.clearing.models import (
    ClearingConfig,
    CycleResult,
    OpenOrder,
    OrderEvent,
    TrackedOrder,
)
from auto_clear.apps.clearing.protocols import (
    BalanceSource,
    OrderBookSource,
    OrderClearer,
    OrderQuerySource,
)
from auto_clear.apps.clearing.registry import TrackedOrderRegistry
from auto_clear.apps.clearing.snapshot_differ import SnapshotDiffer
from auto_clear.clients.polymarket.models import OrderBook
from auto_clear.core.models import Outcome

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def _unwrap(label: str, result: _T | BaseException) -> _T | None:
    """Return a gathered result, or ``None`` after logging a fetch failure.

    Raises:
        BaseException: Anything other than a ``MarketDataError`` is re-raised.

    """
    if isinstance(result, MarketDataError):
        logger.warning("Skipping %s this cycle: %s", label, result)
        return None
    if isinstance(result, BaseException):
        raise result
    return result


class ReconciliationDriver:
    """Poll the exchange and reconcile tracked orders on a fixed interval.

    Args:
        registry: Tracked orders of the topic.
        clearer: Places reverse orders for filled tracked orders.
        orders: Open orders and the closed-order feed.
        books: Live order books.
        balances: USDC balance.
        dispatcher: Delivers differ events to subscribers.
        config: Engine configuration (interval and tolerances).

    """

    def __init__(  # noqa: PLR0913
        self,
        registry: TrackedOrderRegistry,
        clearer: OrderClearer,
        orders: OrderQuerySource,
        books: OrderBookSource,
        balances: BalanceSource,
        dispatcher: EventDispatcher | None = None,
        config: ClearingConfig | None = None,
    ) -> None:
        """Initialize the driver."""
        self._config = config or ClearingConfig()
        self._registry = registry
        self._clearer = clearer
        self._orders = orders
        self._books = books
        self._balances = balances
        self._dispatcher = dispatcher or EventDispatcher()
        self._differ = SnapshotDiffer(self._config.fill_tolerance)
        self._cycle = 0
        self._last_balance: Decimal | None = None
        self._stop = asyncio.Event()

    @property
    def cycle_count(self) -> int:
        """Number of cycles run so far."""
        return self._cycle

    @property
    def last_balance(self) -> Decimal | None:
        """Most recently fetched USDC balance."""
        return self._last_balance

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        if not self._stop.is_set():
            logger.info("Shutdown requested, finishing current cycle")
        self._stop.set()

    async def run_cycle(self) -> CycleResult:
        """Run one fetch and reconciliation cycle.

        Returns:
            Summary of the cycle's events, fills, balance and books.

        """
        self._cycle += 1
        yes_raw, no_raw, balance_raw, open_raw = await asyncio.gather(
            self._books.get_order_book(Outcome.YES),
            self._books.get_order_book(Outcome.NO),
            self._balances.get_balance(),
            self._orders.get_open_orders(),
            return_exceptions=True,
        )
        yes_book: OrderBook | None = _unwrap("YES order book", yes_raw)
        no_book: OrderBook | None = _unwrap("NO order book", no_raw)
        balance: Decimal | None = _unwrap("balance", balance_raw)
        open_orders: list[OpenOrder] | None = _unwrap("open orders", open_raw)

        self._track_balance(balance)

        events: list[OrderEvent] = []
        newly_filled: list[TrackedOrder] = []
        if open_orders is not None:
            events = self._differ.diff(open_orders)
            self._dispatcher.dispatch(events)
            newly_filled = await self._reconcile(open_orders)

        return CycleResult(
            cycle=self._cycle,
            events=tuple(events),
            newly_filled=tuple(newly_filled),
            balance=balance,
            yes_book=yes_book,
            no_book=no_book,
        )

    async def run(self, *, max_cycles: int | None = None, handle_signals: bool = True) -> int:
        """Run cycles until stopped or ``max_cycles`` is reached.

        Install SIGINT/SIGTERM handlers for graceful shutdown.  In-flight
        calls are allowed to finish; the loop exits before the next cycle.

        Args:
            max_cycles: Stop after this many cycles (``None`` for no limit).
            handle_signals: Install signal handlers on the running loop.

        Returns:
            Number of cycles run.

        """
        loop = asyncio.get_running_loop()
        if handle_signals:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.stop)

        interval = self._config.refresh_seconds
        logger.info("Reconciliation loop started (interval %.1fs)", interval)
        ran = 0
        try:
            while not self._stop.is_set():
                started = loop.time()
                try:
                    await self.run_cycle()
                except ClearingError:
                    logger.exception("Reconciliation cycle %d failed", self._cycle)
                ran += 1
                if max_cycles is not None and ran >= max_cycles:
                    break
                delay = max(0.0, interval - (loop.time() - started))
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop.wait(), timeout=delay)
        finally:
            if handle_signals:
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)
            await self._dispatcher.drain()
        logger.info("Reconciliation loop stopped after %d cycle(s)", ran)
        return ran

    async def _reconcile(self, open_orders: list[OpenOrder]) -> list[TrackedOrder]:
        """Check departed pending orders against the closed feed and clear fills."""
        candidates = select_candidates(self._registry.awaiting_fill_ids(), open_orders)
        if not candidates:
            return []
        try:
            closed = await self._orders.get_closed_orders(candidates)
        except MarketDataError as exc:
            logger.warning("Skipping fill reconciliation this cycle: %s", exc)
            return []
        return await self._registry.reconcile_closed_orders(closed, self._clearer)

    def _track_balance(self, balance: Decimal | None) -> None:
        """Log balance changes between cycles."""
        if balance is None:
            return
        if self._last_balance is None:
            logger.info("USDC balance: %s", balance)
        elif balance != self._last_balance:
            logger.info(
                "USDC balance changed: %s -> %s (%+f)",
                self._last_balance,
                balance,
                balance - self._last_balance,
            )
        self._last_balance = balance
