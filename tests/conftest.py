"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

import auto_clear.core.config as config_module

_ISOLATED_ENV_VARS = (
    "AUTO_CLEAR_CONFIG_DIR",
    "AUTO_CLEAR_DATA_DIR",
    "AUTO_CLEAR_REFRESH_SECONDS",
    "POLYMARKET_HOST",
    "POLYMARKET_TICK_SIZE",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
)


@pytest.fixture(autouse=True)
def _isolate_settings() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Load the packaged settings without the developer's overrides.

    ``settings.yaml`` reads its data directory, host and Telegram
    credentials from the environment.  Strip those variables so a local
    ``.env`` cannot point tests at a real chat or data directory, and reset
    the ``get_config()`` singleton around each test.
    """
    clean = {k: v for k, v in os.environ.items() if k not in _ISOLATED_ENV_VARS}
    config_module._config = None
    with (
        patch.dict(os.environ, clean, clear=True),
        patch("auto_clear.core.config.load_dotenv"),
    ):
        yield
    config_module._config = None
