"""Exception hierarchy for Telegram client errors.

Follow the same pattern as the Polymarket client: a base exception class
with a specialised API error that carries status code and message
attributes.
"""


class TelegramError(Exception):
    """Base exception for all Telegram client errors."""


class TelegramAPIError(TelegramError):
    """Error returned by the Telegram Bot API.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code or Telegram ``error_code``.

    """

    def __init__(self, msg: str, status_code: int) -> None:
        """Initialize Telegram API error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code or Telegram ``error_code``.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code
