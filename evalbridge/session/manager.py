"""Registry of interpreter sessions, one isolated connection per address."""

from __future__ import annotations

import asyncio

from loguru import logger

from evalbridge.config.schema import Config

from .connection import Connection
from .contracts import EditorHost


class SessionManager:
    """Opens connections on first activation and tears them down on request."""

    def __init__(self, config: Config | None = None, *, editor: EditorHost | None = None):
        self.config = config or Config()
        self.editor = editor
        self._sessions: dict[tuple[str, int], Connection] = {}
        self._lock = asyncio.Lock()

    def _key(self, host: str | None, port: int | None) -> tuple[str, int]:
        default_host, default_port = self.config.address
        return host or default_host, port or default_port

    def get(self, host: str | None = None, port: int | None = None) -> Connection | None:
        return self._sessions.get(self._key(host, port))

    def addresses(self) -> list[tuple[str, int]]:
        return list(self._sessions)

    async def activate(self, host: str | None = None, port: int | None = None) -> Connection:
        key = self._key(host, port)
        async with self._lock:
            connection = self._sessions.get(key)
            if connection is not None and connection.is_open:
                return connection
            if connection is not None:
                # Reader hit EOF; finish its teardown before replacing it.
                await connection.close()
            connection = Connection.from_config(self.config, host=key[0], port=key[1], editor=self.editor)
            await connection.open()
            self._sessions[key] = connection
            return connection

    async def close(self, host: str | None = None, port: int | None = None) -> bool:
        async with self._lock:
            connection = self._sessions.pop(self._key(host, port), None)
        if connection is None:
            return False
        await connection.close()
        return True

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for connection in sessions:
            try:
                await connection.close()
            except Exception as exc:
                logger.warning("Failed to close session {}: {}", connection.address, exc)
