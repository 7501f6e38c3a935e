"""Tests for ServerConfig and the config stores."""

import base64
import json
import os
import stat

import pytest
from pydantic import ValidationError
from opencode_remote.config_store import JsonConfigStore, MemoryConfigStore
from opencode_remote.models.config import ServerConfig


def test_defaults_are_not_valid() -> None:
    config = ServerConfig()
    assert config.port == 4096
    assert config.username == "opencode"
    assert config.is_valid is False


@pytest.mark.parametrize(
    "changes",
    [
        {"host": "  "},
        {"port": 0},
        {"port": 70000},
        {"username": ""},
        {"password": " "},
    ],
)
def test_invalid_configs(server_config: ServerConfig, changes: dict) -> None:
    assert server_config.is_valid is True
    assert server_config.model_copy(update=changes).is_valid is False


def test_base_url_and_authorization(server_config: ServerConfig) -> None:
    assert server_config.base_url == "http://10.0.0.5:4096"
    header = server_config.authorization()
    assert header.startswith("Basic ")
    assert base64.b64decode(header.removeprefix("Basic ")).decode() == "opencode:secret"


def test_redacted_hides_password(server_config: ServerConfig) -> None:
    assert "secret" not in server_config.redacted()


def test_config_is_immutable(server_config: ServerConfig) -> None:
    with pytest.raises(ValidationError):
        server_config.host = "other"  # type: ignore[misc]


def test_memory_store_round_trip(server_config: ServerConfig) -> None:
    store = MemoryConfigStore()
    assert store.load() == ServerConfig()
    store.save(server_config)
    assert store.load() == server_config


def test_json_store_missing_file_gives_defaults(tmp_path) -> None:
    store = JsonConfigStore(tmp_path / "absent.json")
    assert store.load() == ServerConfig()


def test_json_store_saves_owner_only(tmp_path, server_config: ServerConfig) -> None:
    path = tmp_path / "nested" / "config.json"
    store = JsonConfigStore(path)
    store.save(server_config)

    assert json.loads(path.read_text())["host"] == "10.0.0.5"
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert JsonConfigStore(path).load() == server_config


def test_json_store_ignores_corrupt_file(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with caplog.at_level("WARNING"):
        assert JsonConfigStore(path).load() == ServerConfig()
    assert "unreadable config" in caplog.text


def test_json_store_ignores_wrong_types(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"host": "h", "port": "not-a-port"}))
    assert JsonConfigStore(path).load() == ServerConfig()
