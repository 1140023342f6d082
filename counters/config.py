"""
Typed settings for the counter bot.

Settings are read once at startup from config.yaml plus the TOKEN
environment variable (populated from .env). Everything is validated in
one pass so a broken config reports all of its problems at once.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

CONFIG_PATH = "config.yaml"

DEFAULT_COOLDOWN_SECONDS = 10.0
DEFAULT_RENAME_TIMEOUT_SECONDS = 30.0
DEFAULT_OFF_LABEL = "Off"


class ConfigError(Exception):
    """Raised when the configuration cannot be used to start the bot."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


@dataclass(frozen=True)
class ChannelConfig:
    id: Optional[int]
    name: str


@dataclass(frozen=True)
class Settings:
    token: str
    server_id: int
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS
    rename_timeout_seconds: float = DEFAULT_RENAME_TIMEOUT_SECONDS
    off_label: str = DEFAULT_OFF_LABEL
    total_channel: ChannelConfig = field(
        default_factory=lambda: ChannelConfig(None, "Total members")
    )
    online_channel: ChannelConfig = field(
        default_factory=lambda: ChannelConfig(None, "Online users")
    )
    bot_channel: ChannelConfig = field(
        default_factory=lambda: ChannelConfig(None, "Bots")
    )


def _parse_id(value: Any) -> Optional[int]:
    """Discord snowflakes may be written as ints or quoted strings."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def normalise_cooldown(value: Any) -> float:
    """
    Cooldown in seconds. Negative or non-numeric values disable debouncing
    instead of failing startup.
    """
    if isinstance(value, bool):
        value = None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        logging.warning(f"Invalid cooldown value {value!r}. Debouncing disabled.")
        return 0.0
    if math.isnan(seconds) or seconds < 0:
        logging.warning(f"Invalid cooldown value {value!r}. Debouncing disabled.")
        return 0.0
    return seconds


def _positive_float(value: Any, default: float) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(seconds) or seconds <= 0:
        return default
    return seconds


def _channel(raw: Dict[str, Any], key: str, default_name: str) -> ChannelConfig:
    section = raw.get(key) or {}
    if not isinstance(section, dict):
        logging.warning(f"'{key}' should be a mapping with 'id' and 'name'. Ignoring it.")
        section = {}
    channel_id = _parse_id(section.get("id"))
    if channel_id is None:
        logging.warning(f"'{key}.id' is missing or invalid. That counter will be skipped.")
    name = str(section.get("name") or default_name)
    return ChannelConfig(id=channel_id, name=name)


def settings_from_mapping(
    raw: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Settings:
    environ = os.environ if environ is None else environ
    problems: List[str] = []

    token = (environ.get("TOKEN") or str(raw.get("token") or "")).strip()
    if not token:
        problems.append("token (set TOKEN in .env)")

    server_id = _parse_id(raw.get("server_id"))
    if server_id is None:
        problems.append("server_id")

    if problems:
        raise ConfigError(problems)

    return Settings(
        token=token,
        server_id=server_id,
        cooldown_seconds=normalise_cooldown(
            raw.get("cooldown_seconds", DEFAULT_COOLDOWN_SECONDS)
        ),
        rename_timeout_seconds=_positive_float(
            raw.get("rename_timeout_seconds"), DEFAULT_RENAME_TIMEOUT_SECONDS
        ),
        off_label=str(raw.get("off_label") or DEFAULT_OFF_LABEL),
        total_channel=_channel(raw, "total_channel", "Total members"),
        online_channel=_channel(raw, "online_channel", "Online users"),
        bot_channel=_channel(raw, "bot_channel", "Bots"),
    )


def load_settings(
    path: str = CONFIG_PATH, environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """Load and validate config.yaml. Never writes or creates the file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError([f"{path} not found"])
    except yaml.YAMLError as e:
        raise ConfigError([f"{path} could not be parsed: {e}"])

    if not isinstance(raw, dict):
        raise ConfigError([f"{path} did not parse to a mapping"])

    return settings_from_mapping(raw, environ)
