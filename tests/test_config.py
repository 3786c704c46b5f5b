import json
from pathlib import Path

import pytest

from d2bot.config import ConfigError, InfisicalSettings, load_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.json"
    path.write_text(text, encoding="utf-8")
    return path


def test_inline_token_and_default_interval(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        json.dumps(
            {"allowed_ids": ["alice"], "monitor_interval": 0, "bot_token": "123:abc"}
        ),
    )
    cfg = load_config(path)

    assert cfg.monitor_interval == 5
    assert cfg.bot_token == "123:abc"
    assert cfg.allowed_ids == frozenset({"alice"})
    assert cfg.theme_id == 0
    assert cfg.sketch is False
    assert cfg.is_verbose is False


@pytest.mark.parametrize("interval,expected", [(-3, 5), (0, 5), (None, 5), (12, 12)])
def test_monitor_interval(tmp_path: Path, interval, expected) -> None:
    raw = {"bot_token": "t", "monitor_interval": interval}
    cfg = load_config(_write(tmp_path, json.dumps(raw)))
    assert cfg.monitor_interval == expected


def test_json_with_comments(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """{
  // who may use the bot
  "allowed_ids": ["alice", "bob"],
  "monitor_interval": 3,
  "theme_id": 200, // dark mauve
  "sketch": true,
  "is_verbose": true,
  "bot_token": "123:abc",
  "d2_path": "/opt/d2/bin/d2",
}
""",
    )
    cfg = load_config(path)
    assert cfg.allowed_ids == frozenset({"alice", "bob"})
    assert cfg.monitor_interval == 3
    assert cfg.theme_id == 200
    assert cfg.sketch is True
    assert cfg.is_verbose is True
    assert cfg.d2_cmd == "/opt/d2/bin/d2"


def test_missing_token_without_infisical_fails(tmp_path: Path) -> None:
    path = _write(tmp_path, json.dumps({"allowed_ids": ["alice"]}))
    with pytest.raises(ConfigError, match="No bot token"):
        load_config(path)


def test_token_resolved_from_infisical(tmp_path: Path) -> None:
    raw = {
        "allowed_ids": ["alice"],
        "infisical": {
            "client_id": "cid",
            "client_secret": "secret",
            "project_id": "proj",
            "environment": "prod",
            "bot_token_key_path": "/telegram/BOT_TOKEN",
        },
    }
    seen: list[InfisicalSettings] = []

    def resolver(settings: InfisicalSettings) -> str:
        seen.append(settings)
        return "999:xyz"

    cfg = load_config(_write(tmp_path, json.dumps(raw)), resolve_token=resolver)
    assert cfg.bot_token == "999:xyz"
    assert seen[0].secret_type == "shared"
    assert seen[0].bot_token_key_path == "/telegram/BOT_TOKEN"


def test_inline_token_skips_infisical(tmp_path: Path) -> None:
    raw = {"bot_token": "inline", "infisical": {"client_id": "cid"}}

    def resolver(_settings: InfisicalSettings) -> str:
        raise AssertionError("should not be called")

    cfg = load_config(_write(tmp_path, json.dumps(raw)), resolve_token=resolver)
    assert cfg.bot_token == "inline"


def test_incomplete_infisical_block(tmp_path: Path) -> None:
    raw = {"infisical": {"client_id": "cid"}}
    with pytest.raises(ConfigError, match="infisical.client_secret"):
        load_config(_write(tmp_path, json.dumps(raw)))


def test_unreadable_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Failed to read config file"):
        load_config(tmp_path / "missing.json")


def test_malformed_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Malformed"):
        load_config(_write(tmp_path, "{not json"))


@pytest.mark.parametrize(
    "raw",
    [
        {"bot_token": "t", "allowed_ids": [1, 2]},
        {"bot_token": "t", "theme_id": "dark"},
        {"bot_token": "t", "sketch": "yes"},
        {"bot_token": 123},
    ],
)
def test_invalid_field_types(tmp_path: Path, raw) -> None:
    with pytest.raises(ConfigError, match="Invalid"):
        load_config(_write(tmp_path, json.dumps(raw)))
