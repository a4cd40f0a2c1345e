"""Process-local config cache for CLI commands.

Entries are keyed by the resolved file path together with the EVALBRIDGE_
environment overrides in effect, so changing an override reloads the file.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from evalbridge.config.loader import get_config_path, load_config
from evalbridge.config.schema import ENV_PREFIX, Config

_CacheKey = tuple[str, tuple[tuple[str, str], ...]]

_lock = threading.Lock()
_cache: dict[_CacheKey, Config] = {}


def _resolve(config_path: Path | None) -> str:
    return str(Path(config_path or get_config_path()).expanduser().resolve())


def _override_vars() -> tuple[tuple[str, str], ...]:
    return tuple(sorted((k, v) for k, v in os.environ.items() if k.upper().startswith(ENV_PREFIX)))


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> Config:
    """Load a config once per file and override set; `force_reload` re-reads the file."""
    key = (_resolve(config_path), _override_vars())
    with _lock:
        config = None if force_reload else _cache.get(key)
        if config is None:
            config = load_config(Path(key[0]))
            _cache[key] = config
        return config


def clear_config_cache(*, config_path: Path | None = None) -> int:
    """Forget cached configs for one file, or for every file. Returns how many were dropped."""
    with _lock:
        if config_path is None:
            dropped = len(_cache)
            _cache.clear()
            return dropped
        path = _resolve(config_path)
        stale = [key for key in _cache if key[0] == path]
        for key in stale:
            del _cache[key]
        return len(stale)
