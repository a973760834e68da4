"""Async HTTP client for the Telegram Bot API.

Only ``sendMessage`` is needed to push order notifications to a chat.
The client is an async context manager over ``httpx.AsyncClient`` and
raises ``TelegramAPIError`` for transport and API failures.
"""

from typing import Any

import httpx

from auto_clear.clients.telegram.exceptions import TelegramAPIError

_HTTP_BAD_REQUEST = 400
_DEFAULT_PARSE_MODE = "Markdown"


class TelegramClient:
    """Async client that sends messages through a Telegram bot.

    Args:
        bot_token: Token issued by BotFather.
        base_url: Base URL for the Bot API.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://api.telegram.org"

    def __init__(
        self,
        bot_token: str,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the Telegram client.

        Args:
            bot_token: Token issued by BotFather.
            base_url: Base URL for the Bot API.
            timeout: Request timeout in seconds.

        """
        self.base_url = base_url.rstrip("/")
        self._bot_token = bot_token
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        parse_mode: str = _DEFAULT_PARSE_MODE,
        disable_preview: bool = True,
    ) -> dict[str, Any]:
        """Send a text message to a chat.

        Args:
            chat_id: Target chat identifier.
            text: Message body.
            parse_mode: ``"Markdown"`` or ``"HTML"``.
            disable_preview: Suppress link previews.

        Returns:
            The sent message as returned in the API ``result`` field.

        Raises:
            TelegramAPIError: When the request fails or the API reports an error.

        """
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": disable_preview,
        }
        result: dict[str, Any] = await self._post("sendMessage", payload)
        return result

    async def _post(self, method: str, payload: dict[str, Any]) -> Any:
        """Call a Bot API method and return its ``result``.

        Args:
            method: Bot API method name.
            payload: JSON body.

        Returns:
            The ``result`` field of the response.

        Raises:
            TelegramAPIError: When the request fails or ``ok`` is false.

        """
        url = f"{self.base_url}/bot{self._bot_token}/{method}"
        try:
            response = await self._http_client.request("POST", url, json=payload)
        except httpx.HTTPError as exc:
            raise TelegramAPIError(
                msg=f"HTTP request failed: {exc}",
                status_code=_HTTP_BAD_REQUEST,
            ) from exc

        if response.status_code >= _HTTP_BAD_REQUEST:
            self._handle_error(response)

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise TelegramAPIError(
                msg=f"Response is not JSON: {response.text[:200]!r}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise TelegramAPIError(
                msg=f"Unexpected response body: {data!r}",
                status_code=response.status_code,
            )
        if not data.get("ok", False):
            raise TelegramAPIError(
                msg=str(data.get("description", "request not ok")),
                status_code=int(data.get("error_code", response.status_code)),
            )
        return data.get("result", {})

    @staticmethod
    def _handle_error(response: httpx.Response) -> None:
        """Raise a TelegramAPIError from an error response.

        Args:
            response: HTTP response with a non-2xx status code.

        Raises:
            TelegramAPIError: Always raised with status code and message.

        """
        try:
            data = response.json()
            msg: str = data.get("description", f"HTTP {response.status_code}")
        except ValueError:
            msg = f"HTTP {response.status_code}"
        raise TelegramAPIError(msg=msg, status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "TelegramClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
