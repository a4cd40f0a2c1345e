"""Pytest fixtures: a fake interpreter server and a recording editor."""

import asyncio
import re
from collections.abc import Callable

import pytest
import pytest_asyncio

from evalbridge.session.contracts import ProgressState, SourceSelection

REQID_RE = re.compile(r'reqid = "([0-9a-f]{8})"')


def reqid_of(line: str) -> str:
    match = REQID_RE.search(line)
    assert match, f"no reqid in {line!r}"
    return match.group(1)


class RecordingEditor:
    """EditorHost that records every call for assertions."""

    def __init__(self, selection: SourceSelection | None = None):
        self.selection = selection
        self.progress: list[tuple[object, ProgressState]] = []
        self.diagnostics: list[str] = []
        self.notifications: list[tuple[object, str]] = []
        self.flashed: list[object] = []

    def get_source_selection(self, context):
        assert self.selection is not None
        return self.selection

    def notify_progress(self, context, state):
        self.progress.append((context, state))

    def render_diagnostic(self, surface):
        self.diagnostics.append(surface.text)

    def notify(self, context, message):
        self.notifications.append((context, message))

    def flash_region(self, text_range):
        self.flashed.append(text_range)


class FakeInterpreter:
    """Line-reading TCP server standing in for the Julia evaluation server."""

    def __init__(self, responder: Callable[[str], str | None] | None = None):
        self.responder = responder
        self.requests: list[str] = []
        self.port = 0
        self._server: asyncio.AbstractServer | None = None
        self._writers: list[asyncio.StreamWriter] = []
        self._arrived = asyncio.Condition()

    async def start(self) -> "FakeInterpreter":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        while True:
            line = await reader.readline()
            if not line:
                break
            text = line.decode("utf-8").rstrip("\n")
            async with self._arrived:
                self.requests.append(text)
                self._arrived.notify_all()
            reply = self.responder(text) if self.responder else None
            if reply:
                writer.write(reply.encode("utf-8"))
                await writer.drain()

    async def wait_requests(self, count: int, timeout: float = 2.0) -> list[str]:
        async with self._arrived:
            await asyncio.wait_for(self._arrived.wait_for(lambda: len(self.requests) >= count), timeout)
        return list(self.requests)

    async def push(self, data: str | bytes) -> None:
        raw = data.encode("utf-8") if isinstance(data, str) else data
        for writer in self._writers:
            writer.write(raw)
            await writer.drain()

    async def drop_clients(self) -> None:
        for writer in self._writers:
            writer.close()
        self._writers.clear()

    async def stop(self) -> None:
        await self.drop_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()


def succeed_all(line: str) -> str:
    return f'(success "{reqid_of(line)}" "ok")\n'


@pytest.fixture
def editor() -> RecordingEditor:
    return RecordingEditor()


@pytest_asyncio.fixture
async def interpreter():
    server = await FakeInterpreter().start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def echo_interpreter():
    server = await FakeInterpreter(succeed_all).start()
    yield server
    await server.stop()
