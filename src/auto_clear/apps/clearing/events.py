"""Fan order events out to subscribers without blocking reconciliation.

The snapshot differ only emits typed events.  ``EventDispatcher`` hands
each event to every subscriber in a background task; a failing subscriber
is logged by the task's done callback and never reaches the polling loop.
"""

import asyncio
import logging
from collections import deque
from typing import Any

from auto_clear.apps.clearing.models import EventType, OrderEvent
from auto_clear.apps.clearing.protocols import EventSubscriber

logger = logging.getLogger(__name__)

_DEFAULT_HISTORY_SIZE = 50


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    """Log unhandled exceptions from subscriber tasks.

    Attach as a ``done_callback`` so that a crashed notification is
    surfaced in the logs rather than silently swallowed.

    Args:
        task: The completed asyncio task.

    """
    if not task.cancelled() and task.exception() is not None:
        logger.error(
            "Event subscriber task %s failed: %s",
            task.get_name(),
            task.exception(),
            exc_info=task.exception(),
        )


class EventDispatcher:
    """Deliver events to subscribers, fire-and-forget.

    Args:
        subscribers: Initial subscribers.

    """

    def __init__(self, subscribers: list[EventSubscriber] | None = None) -> None:
        """Initialize the dispatcher."""
        self._subscribers: list[EventSubscriber] = list(subscribers or [])
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, subscriber: EventSubscriber) -> None:
        """Add a subscriber for all future events."""
        self._subscribers.append(subscriber)

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        return len(self._pending)

    def dispatch(self, events: list[OrderEvent]) -> None:
        """Schedule delivery of ``events`` to every subscriber and return at once.

        Must be called from a running event loop.

        Args:
            events: Events in the order they were emitted.

        """
        for event in events:
            for subscriber in self._subscribers:
                task = asyncio.create_task(
                    subscriber.handle(event),
                    name=f"{type(subscriber).__name__}:{event.type.value}:{event.order_id}",
                )
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
                task.add_done_callback(_log_task_exception)

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish.

        Failures have already been logged by the done callback, so they
        are collected here rather than raised.
        """
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


class LoggingSubscriber:
    """Write each event to the application log."""

    async def handle(self, event: OrderEvent) -> None:
        """Log one event at INFO level."""
        if event.type is EventType.PARTIALLY_FILLED:
            logger.info(
                "Order %s partially filled: +%s (%s/%s) %s %s @ %s",
                event.order_id,
                event.filled_delta,
                event.filled,
                event.amount,
                event.side.value,
                event.outcome.value,
                event.price,
            )
            return
        logger.info(
            "Order %s %s: %s %s @ %s, filled %s/%s",
            event.order_id,
            event.type.value,
            event.side.value,
            event.outcome.value,
            event.price,
            event.filled,
            event.amount,
        )


class EventHistory:
    """Keep the most recent events in memory, newest last.

    Args:
        max_size: Number of events retained.

    """

    def __init__(self, max_size: int = _DEFAULT_HISTORY_SIZE) -> None:
        """Initialize an empty history."""
        self._events: deque[OrderEvent] = deque(maxlen=max_size)

    async def handle(self, event: OrderEvent) -> None:
        """Record one event."""
        self._events.append(event)

    def recent(self, limit: int | None = None) -> list[OrderEvent]:
        """Return up to ``limit`` most recent events, oldest first."""
        events = list(self._events)
        if limit is not None:
            return events[-limit:] if limit > 0 else []
        return events

    def __len__(self) -> int:
        """Return the number of retained events."""
        return len(self._events)
