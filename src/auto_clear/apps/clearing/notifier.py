"""Push order events to a Telegram chat.

Fully filled, removed and partially filled orders each get a short
Markdown message.  Creations are not announced, and neither is the removal
of an order the trader cancelled by hand.  Without a bot token and chat ID
the notifier is disabled and every event is ignored.
"""

import logging
from decimal import Decimal
from typing import Any

from auto_clear.apps.clearing.exceptions import PersistenceError
from auto_clear.apps.clearing.models import EventType, OrderEvent
from auto_clear.apps.clearing.store import CancelledOrderLog
from auto_clear.clients.telegram.client import TelegramClient
from auto_clear.clients.telegram.exceptions import TelegramError
from auto_clear.core.models import HUNDRED, ZERO

logger = logging.getLogger(__name__)

_FOUR_PLACES = Decimal("0.0001")
_ONE_PLACE = Decimal("0.1")


def _fmt(value: Decimal) -> str:
    """Format a price or size with four decimal places."""
    return str(value.quantize(_FOUR_PLACES))


def _header(title: str, topic: str | None) -> str:
    """Build the bold title line, with the topic name when known."""
    return f"*{title}*\n\n_{topic}_\n" if topic else f"*{title}*\n"


def format_filled(event: OrderEvent, topic: str | None = None) -> str:
    """Render the message for an order that left the book fully filled."""
    return (
        f"{_header('Order filled', topic)}\n"
        f"Order ID: `{event.order_id}`\n"
        f"Side: *{event.side.value}*\n"
        f"Position: *{event.outcome.value}*\n"
        f"Price: `{_fmt(event.price)}`\n"
        f"Amount: `{_fmt(event.amount)}`\n"
        f"Filled: `{_fmt(event.filled)}`\n\n"
        "The order has been completely filled."
    )


def format_removed(event: OrderEvent, topic: str | None = None) -> str:
    """Render the message for an order that left the book without filling."""
    return (
        f"{_header('Order removed', topic)}\n"
        f"Order ID: `{event.order_id}`\n"
        f"Side: *{event.side.value}*\n"
        f"Position: *{event.outcome.value}*\n"
        f"Price: `{_fmt(event.price)}`\n"
        f"Amount: `{_fmt(event.amount)}`\n"
        f"Filled: `{_fmt(event.filled)}`\n\n"
        "The order is no longer on the book."
    )


def format_partially_filled(event: OrderEvent, topic: str | None = None) -> str:
    """Render the message for an order that matched more shares while resting."""
    percentage = ZERO
    if event.amount > ZERO:
        percentage = (event.filled / event.amount * HUNDRED).quantize(_ONE_PLACE)
    return (
        f"{_header('Order partially filled', topic)}\n"
        f"Order ID: `{event.order_id}`\n"
        f"Side: *{event.side.value}*\n"
        f"Position: *{event.outcome.value}*\n"
        f"Price: `{_fmt(event.price)}`\n\n"
        f"This fill: `{_fmt(event.filled_delta)}`\n"
        f"Total filled: `{_fmt(event.filled)}` / `{_fmt(event.amount)}` ({percentage}%)\n\n"
        "The order is still resting."
    )


_FORMATTERS = {
    EventType.FILLED: format_filled,
    EventType.REMOVED: format_removed,
    EventType.PARTIALLY_FILLED: format_partially_filled,
}
_DEPARTURES = frozenset({EventType.FILLED, EventType.REMOVED})


class TelegramNotifier:
    """Event subscriber that forwards order events to Telegram.

    Args:
        client: Telegram client, or ``None`` to disable notifications.
        chat_id: Target chat, or ``None`` to disable notifications.
        topic: Optional human-readable market title added to messages.
        cancelled: Marks left by the ``cancel`` command; removals of those
            orders are not announced.

    """

    def __init__(
        self,
        client: TelegramClient | None,
        chat_id: str | None,
        topic: str | None = None,
        cancelled: CancelledOrderLog | None = None,
    ) -> None:
        """Initialize the notifier, logging once if it is disabled."""
        self._client = client
        self._chat_id = chat_id
        self.topic = topic
        self._cancelled = cancelled
        if not self.enabled:
            logger.warning("Telegram notifications are not configured and are disabled")

    @classmethod
    def from_settings(
        cls,
        telegram: dict[str, Any],
        topic: str | None = None,
        cancelled: CancelledOrderLog | None = None,
    ) -> "TelegramNotifier":
        """Build a notifier from the ``telegram`` settings section.

        Args:
            telegram: Section with ``bot_token``, ``chat_id`` and ``base_url``.
            topic: Optional market title added to messages.
            cancelled: Marks left by the ``cancel`` command.

        Returns:
            A notifier, disabled when the token or chat ID is empty.

        """
        token = str(telegram.get("bot_token") or "")
        chat_id = str(telegram.get("chat_id") or "")
        if not token or not chat_id:
            return cls(None, None, topic, cancelled)
        base_url = str(telegram.get("base_url") or TelegramClient.BASE_URL)
        return cls(TelegramClient(token, base_url=base_url), chat_id, topic, cancelled)

    @property
    def enabled(self) -> bool:
        """Whether messages will actually be sent."""
        return self._client is not None and bool(self._chat_id)

    async def handle(self, event: OrderEvent) -> None:
        """Send the message for ``event`` if its type is announced."""
        cancelled_by_hand = self._consume_cancel_mark(event)
        formatter = _FORMATTERS.get(event.type)
        if formatter is None or not self.enabled:
            return
        if cancelled_by_hand and event.type is EventType.REMOVED:
            logger.debug("Not announcing manually cancelled order %s", event.order_id)
            return
        await self.send(formatter(event, self.topic))

    async def send(self, text: str) -> bool:
        """Send a raw Markdown message.

        Returns:
            ``True`` if Telegram accepted the message.

        """
        if self._client is None or not self._chat_id:
            return False
        try:
            await self._client.send_message(self._chat_id, text)
        except TelegramError as exc:
            logger.warning("Telegram notification failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        """Close the underlying Telegram client, if any."""
        if self._client is not None:
            await self._client.close()

    def _consume_cancel_mark(self, event: OrderEvent) -> bool:
        """Drop the manual-cancel mark of a departed order, if it has one."""
        if self._cancelled is None or event.type not in _DEPARTURES:
            return False
        try:
            return self._cancelled.consume(event.order_id)
        except PersistenceError as exc:
            logger.warning("Cannot check manual cancellations: %s", exc)
            return False
