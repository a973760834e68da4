"""Configuration management for auto-clear.

Read layered YAML settings and resolve ``${VAR}`` / ``${VAR:default}``
references from the environment, which is itself seeded from a ``.env``
file.  Layers, lowest priority first:

1. ``settings.yaml`` shipped inside the package (or the directory named
   by ``AUTO_CLEAR_CONFIG_DIR``).
2. ``settings.local.yaml`` next to it, for machine-specific overrides.
3. Environment variables referenced from either file.
"""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

CONFIG_DIR_ENV_VAR = "AUTO_CLEAR_CONFIG_DIR"
_SETTINGS_FILES = ("settings.yaml", "settings.local.yaml")
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<default>[^}]*))?\}")


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


def _default_config_dir() -> Path:
    """Return the configured settings directory, or the packaged one."""
    override = os.environ.get(CONFIG_DIR_ENV_VAR)
    if override:
        return Path(override)
    return Path(__file__).parent.parent / "config"


def _read_yaml(path: Path) -> dict[str, Any]:
    """Parse one settings file; a missing or empty file yields ``{}``.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.

    """
    if not path.exists():
        return {}
    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Cannot parse {path}: {exc}"
        raise ConfigError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    return cast("dict[str, Any]", data)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place, recursing into nested mappings."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(cast("dict[str, Any]", current), cast("dict[str, Any]", value))
        else:
            base[key] = value


def _expand(match: "re.Match[str]") -> str:
    """Replace one ``${VAR[:default]}`` reference with its value.

    Raises:
        ConfigError: If the variable is unset and the reference has no default.

    """
    name = match.group("name")
    value = os.getenv(name, match.group("default"))
    if value is None:
        msg = f"Required environment variable ${{{name}}} is not set and has no default"
        raise ConfigError(msg)
    return value


def _resolve(value: Any) -> Any:
    """Substitute environment references throughout a parsed settings tree.

    A reference may make up the whole string (``${TELEGRAM_BOT_TOKEN:}``)
    or be embedded in it (``https://${HOST:localhost}/api``).

    Raises:
        ConfigError: If a referenced variable is unset and has no default.

    """
    if isinstance(value, dict):
        mapping = cast("dict[str, Any]", value)
        return {key: _resolve(item) for key, item in mapping.items()}
    if isinstance(value, list):
        return [_resolve(item) for item in cast("list[Any]", value)]
    if isinstance(value, str) and "${" in value:
        if _ENV_REFERENCE.search(value) is None:
            msg = f"Malformed environment variable reference in: {value}"
            raise ConfigError(msg)
        return _ENV_REFERENCE.sub(_expand, value)
    return value


class ConfigLoader:
    """Layered YAML settings with environment variable substitution.

    Args:
        config_dir: Directory holding ``settings.yaml`` and the optional
            ``settings.local.yaml``.  Defaults to ``$AUTO_CLEAR_CONFIG_DIR``
            or the ``config`` directory shipped inside the package.

    Raises:
        ConfigError: If a settings file is malformed or references an unset
            variable without a default.

    """

    def __init__(self, config_dir: Path | None = None) -> None:
        """Load ``.env`` into the environment, then read and resolve the settings."""
        load_dotenv()
        self.config_dir = Path(config_dir) if config_dir is not None else _default_config_dir()
        merged: dict[str, Any] = {}
        for filename in _SETTINGS_FILES:
            _merge(merged, _read_yaml(self.config_dir / filename))
        self._config: dict[str, Any] = _resolve(merged)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a value by dot-notation key.

        Args:
            key: Key such as ``clearing.refresh_seconds``.
            default: Returned when any part of the path is missing.

        Returns:
            The configured value, or ``default``.

        """
        current: Any = self._config
        for part in key.split("."):
            if not isinstance(current, dict):
                return default
            current = cast("dict[str, Any]", current).get(part)
            if current is None:
                return default
        return current

    def get_section(self, name: str) -> dict[str, Any]:
        """Return a configuration section as a dictionary.

        Args:
            name: Section key, e.g. ``"clearing"`` or ``"telegram"``; dot
                notation reaches nested sections.

        Returns:
            The section's settings, or an empty dict when absent.

        Raises:
            ConfigError: If the key exists but does not hold a mapping.

        """
        result: Any = self.get(name, {})
        if isinstance(result, dict):
            return cast("dict[str, Any]", result)
        msg = f"{name} config must be a dict, got {type(result).__name__}"
        raise ConfigError(msg)


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the shared ``ConfigLoader``, creating it on first use.

    Lazy so that importing a module never reads files or ``.env``.
    """
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
