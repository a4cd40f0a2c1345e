"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

from evalbridge.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".evalbridge" / "config.json"


def get_data_dir() -> Path:
    """Get the evalbridge data directory (logs live underneath)."""
    path = Path.home() / ".evalbridge"
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    File values come first; EVALBRIDGE_ environment variables override them.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config root must be a JSON object")
            data = _migrate_config(data)
            merged = _deep_merge(convert_keys(data), _env_overrides())
            return Config.model_validate(merged)
        except (json.JSONDecodeError, ValueError) as e:
            raise ValueError(
                f"Failed to load config from {path}: {e}. "
                "Fix the file or remove it to regenerate defaults."
            ) from e

    return Config()


def _env_overrides() -> dict[str, Any]:
    """Values set through EVALBRIDGE_ variables, nested the same way as the file."""
    return Config().model_dump(exclude_unset=True)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w") as f:
        json.dump(data, f, indent=2)

    from evalbridge.config.access import clear_config_cache

    clear_config_cache(config_path=path)


def _migrate_config(data: dict) -> dict:
    """Migrate old config formats to current."""
    # Flat top-level host/port -> connection.host/connection.port
    flat = {key: data.pop(key) for key in ("host", "port") if key in data}
    if flat:
        if data.get("connection") is None:
            data["connection"] = {}
        connection = data["connection"]
        if not isinstance(connection, dict):
            raise ValueError("connection must be an object")
        for key, value in flat.items():
            connection.setdefault(key, value)
    # diagnostics.popup (bool) -> diagnostics.showDiagnostics
    diagnostics = data.get("diagnostics")
    if isinstance(diagnostics, dict) and "popup" in diagnostics and "showDiagnostics" not in diagnostics:
        diagnostics["showDiagnostics"] = bool(diagnostics.pop("popup"))
    return data


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
