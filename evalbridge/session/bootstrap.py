"""Bounded wait for the REPL prompt, used only to start the evaluation server."""

from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Awaitable, Callable

from loguru import logger

from evalbridge.config.schema import BootstrapConfig
from evalbridge.utils.exceptions import BootstrapTimeout

Writer = Callable[[str], "Awaitable[None] | None"]


class PromptWatcher:
    """Watches REPL output and signals when the prompt reappears.

    `feed` must run on the event loop; output read on another thread goes
    through `feed_threadsafe`.
    """

    def __init__(self, prompt_pattern: str = r"julia> $", *, tail_chars: int = 4096):
        self.pattern = re.compile(prompt_pattern, re.MULTILINE)
        self.tail_chars = tail_chars
        self._tail = ""
        self._seen = asyncio.Event()

    @classmethod
    def from_config(cls, bootstrap: BootstrapConfig) -> PromptWatcher:
        return cls(bootstrap.prompt_pattern)

    def feed(self, text: str) -> None:
        self._tail = (self._tail + text)[-self.tail_chars:]
        if self.pattern.search(self._tail):
            self._seen.set()

    def feed_threadsafe(self, loop: asyncio.AbstractEventLoop, text: str) -> None:
        loop.call_soon_threadsafe(self.feed, text)

    async def send_and_wait(self, write: Writer, command: str, *, timeout: float = 5.0) -> None:
        """Write a command line and block until the prompt shows up again."""
        self._tail = ""
        self._seen.clear()
        result = write(command + "\n")
        if inspect.isawaitable(result):
            await result
        try:
            await asyncio.wait_for(self._seen.wait(), timeout)
        except asyncio.TimeoutError as exc:
            raise BootstrapTimeout(f"prompt after {command!r}", timeout) from exc


async def bootstrap_server(
    watcher: PromptWatcher,
    write: Writer,
    port: int,
    bootstrap: BootstrapConfig | None = None,
    *,
    timeout: float | None = None,
) -> str:
    """Start the evaluation server inside the REPL and wait for its prompt.

    The command comes from `bootstrap.server_command` with `{port}` filled in;
    `timeout` overrides `bootstrap.timeout_seconds`.
    """
    bootstrap = bootstrap or BootstrapConfig()
    command = bootstrap.server_command.format(port=port)
    logger.info("Starting evaluation server on port {}", port)
    await watcher.send_and_wait(write, command, timeout=timeout if timeout is not None else bootstrap.timeout_seconds)
    logger.info("Evaluation server ready on port {}", port)
    return command
