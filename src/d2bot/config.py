from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import json5

from .constants import DEFAULT_POLLING_INTERVAL, DEFAULT_RENDER_TIMEOUT_S


class ConfigError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class InfisicalSettings:
    client_id: str
    client_secret: str
    project_id: str
    environment: str
    bot_token_key_path: str
    secret_type: str = "shared"


@dataclass(frozen=True, slots=True)
class BotConfig:
    allowed_ids: frozenset[str]
    monitor_interval: int
    bot_token: str
    theme_id: int = 0
    sketch: bool = False
    is_verbose: bool = False
    d2_cmd: str = "d2"
    render_timeout_s: float = DEFAULT_RENDER_TIMEOUT_S


TokenResolver = Callable[[InfisicalSettings], str]


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    try:
        data = json5.loads(text)
    except ValueError as e:
        raise ConfigError(f"Malformed config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file {path}; expected a JSON object.")
    return data


def parse_allowed_ids(value: Any, *, config_path: Path) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(item, str) for item in value
    ):
        raise ConfigError(
            f"Invalid `allowed_ids` in {config_path}; expected a list of usernames."
        )
    return frozenset(item for item in value if item)


def resolve_interval(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return DEFAULT_POLLING_INTERVAL
    return value


def _get_typed(
    config: Dict[str, Any], key: str, expected: type, default: Any, config_path: Path
) -> Any:
    value = config.get(key)
    if value is None:
        return default
    if expected is int and isinstance(value, bool):
        raise ConfigError(f"Invalid `{key}` in {config_path}; expected an integer.")
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        value = float(value)
    if not isinstance(value, expected):
        raise ConfigError(
            f"Invalid `{key}` in {config_path}; expected {expected.__name__}."
        )
    return value


def parse_infisical(value: Any, *, config_path: Path) -> Optional[InfisicalSettings]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid `infisical` in {config_path}; expected an object.")
    fields: Dict[str, str] = {}
    for key in (
        "client_id",
        "client_secret",
        "project_id",
        "environment",
        "bot_token_key_path",
    ):
        item = value.get(key)
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(
                f"Missing `infisical.{key}` in {config_path}; expected a string."
            )
        fields[key] = item.strip()
    secret_type = value.get("secret_type") or "shared"
    if not isinstance(secret_type, str):
        raise ConfigError(
            f"Invalid `infisical.secret_type` in {config_path}; expected a string."
        )
    return InfisicalSettings(secret_type=secret_type, **fields)


def _resolve_d2_cmd(value: Any, *, config_path: Path) -> str:
    if value is not None:
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"Invalid `d2_path` in {config_path}; expected a string.")
        return value
    return shutil.which("d2") or "d2"


def load_config(
    path: str | Path,
    *,
    resolve_token: Optional[TokenResolver] = None,
) -> BotConfig:
    """Load the bot configuration, fetching the token from Infisical if needed.

    ``resolve_token`` is only called when the file has no inline ``bot_token``
    but carries an ``infisical`` block.
    """
    config_path = Path(path)
    raw = _read_config(config_path)

    token = raw.get("bot_token") or ""
    if not isinstance(token, str):
        raise ConfigError(f"Invalid `bot_token` in {config_path}; expected a string.")
    token = token.strip()
    if not token:
        infisical = parse_infisical(raw.get("infisical"), config_path=config_path)
        if infisical is not None:
            if resolve_token is None:
                from .secret_store import fetch_bot_token

                resolve_token = fetch_bot_token
            token = resolve_token(infisical).strip()
    if not token:
        raise ConfigError(
            f"No bot token in {config_path}; set `bot_token` or an `infisical` block."
        )

    render_timeout_s = _get_typed(
        raw,
        "render_timeout_seconds",
        float,
        DEFAULT_RENDER_TIMEOUT_S,
        config_path,
    )
    if render_timeout_s <= 0:
        render_timeout_s = DEFAULT_RENDER_TIMEOUT_S

    return BotConfig(
        allowed_ids=parse_allowed_ids(raw.get("allowed_ids"), config_path=config_path),
        monitor_interval=resolve_interval(raw.get("monitor_interval")),
        bot_token=token,
        theme_id=_get_typed(raw, "theme_id", int, 0, config_path),
        sketch=_get_typed(raw, "sketch", bool, False, config_path),
        is_verbose=_get_typed(raw, "is_verbose", bool, False, config_path),
        d2_cmd=_resolve_d2_cmd(raw.get("d2_path"), config_path=config_path),
        render_timeout_s=render_timeout_s,
    )
