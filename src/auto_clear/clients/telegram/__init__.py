"""Telegram Bot API client used for order notifications."""

from auto_clear.clients.telegram.client import TelegramClient
from auto_clear.clients.telegram.exceptions import TelegramAPIError, TelegramError

__all__ = ["TelegramAPIError", "TelegramClient", "TelegramError"]
