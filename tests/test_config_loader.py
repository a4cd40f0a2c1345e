"""Tests for config loading, migration and the cached access facade."""

import json
from pathlib import Path

import pytest

from evalbridge.config.access import clear_config_cache, get_config
from evalbridge.config.loader import (
    _migrate_config,
    camel_to_snake,
    convert_keys,
    load_config,
    save_config,
    snake_to_camel,
)
from evalbridge.config.schema import Config


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "absent.json")
    assert cfg.connection.host == "127.0.0.1"
    assert cfg.connection.port == 10011
    assert cfg.diagnostics.show_diagnostics is True
    assert cfg.bootstrap.timeout_seconds == 5.0


def test_camel_case_file_is_loaded(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "connection": {"port": 10050, "connectTimeoutSeconds": 1.5},
                "staging": {"inlineMaxChars": 100},
                "diagnostics": {"showDiagnostics": False},
            }
        )
    )
    cfg = load_config(path)
    assert cfg.connection.port == 10050
    assert cfg.connection.connect_timeout_seconds == 1.5
    assert cfg.staging.inline_max_chars == 100
    assert cfg.diagnostics.show_diagnostics is False


def test_save_then_load_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"
    cfg = Config.model_validate({"connection": {"port": 12345}, "staging": {"suffix": ".txt"}})
    save_config(cfg, path)
    raw = json.loads(path.read_text())
    assert raw["staging"]["inlineMaxChars"] == 4096
    loaded = load_config(path)
    assert loaded.connection.port == 12345
    assert loaded.staging.suffix == ".txt"


def test_invalid_json_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ValueError, match="Failed to load config"):
        load_config(path)


def test_invalid_port_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"connection": {"port": 70000}}))
    with pytest.raises(ValueError):
        load_config(path)


def test_migrate_flat_host_port_and_popup() -> None:
    data = _migrate_config({"host": "h", "port": 9, "diagnostics": {"popup": False}})
    assert data["connection"] == {"host": "h", "port": 9}
    assert "host" not in data
    assert data["diagnostics"] == {"showDiagnostics": False}


def test_key_case_helpers() -> None:
    assert camel_to_snake("inlineMaxChars") == "inline_max_chars"
    assert snake_to_camel("inline_max_chars") == "inlineMaxChars"
    assert convert_keys({"aB": [{"cD": 1}]}) == {"a_b": [{"c_d": 1}]}


def test_env_overrides_nested_fields(monkeypatch) -> None:
    monkeypatch.setenv("EVALBRIDGE_CONNECTION__PORT", "10099")
    assert Config().connection.port == 10099


def test_get_config_caches_until_cleared(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"connection": {"port": 2000}}))
    clear_config_cache()
    first = get_config(config_path=path)
    path.write_text(json.dumps({"connection": {"port": 3000}}))
    assert get_config(config_path=path) is first
    assert get_config(config_path=path, force_reload=True).connection.port == 3000
    clear_config_cache(config_path=path)
    assert get_config(config_path=path).connection.port == 3000


def test_flat_host_with_null_connection_is_migrated(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"host": "10.0.0.2", "connection": None}))
    assert load_config(path).connection.host == "10.0.0.2"


def test_non_object_connection_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"port": 10050, "connection": 5}))
    with pytest.raises(ValueError, match="Failed to load config"):
        load_config(path)


def test_env_overrides_file_values(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"connection": {"host": "10.0.0.2", "port": 2000}}))
    monkeypatch.setenv("EVALBRIDGE_CONNECTION__PORT", "10099")
    cfg = load_config(path)
    assert cfg.connection.port == 10099
    assert cfg.connection.host == "10.0.0.2"


def test_cache_entry_follows_env_overrides(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"connection": {"port": 2000}}))
    clear_config_cache()
    assert get_config(config_path=path).connection.port == 2000
    monkeypatch.setenv("EVALBRIDGE_CONNECTION__PORT", "2001")
    assert get_config(config_path=path).connection.port == 2001
    assert clear_config_cache(config_path=path) == 2
