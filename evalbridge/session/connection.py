"""TCP connection to the interpreter's evaluation server."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from loguru import logger

from evalbridge.config.schema import Config
from evalbridge.protocol.framing import encode_request_line, new_request_id
from evalbridge.protocol.namespace import normalize_namespace
from evalbridge.protocol.types import EvalResult, FailureReport, RequestFrame
from evalbridge.utils.exceptions import BridgeConnectionError, ConnectionClosed, EvaluationFailed

from .contracts import EditorHost, NullEditorHost, ProgressState
from .dispatcher import DiagnosticSurface, ResponseDispatcher
from .stager import PayloadStager, StagedPayload
from .tracker import FailureCallback, RequestTracker, SuccessCallback, TrackedRequest

READ_CHUNK_BYTES = 65536


class Connection:
    """One session with one interpreter: outbound framing plus an inbound reader task.

    The connection owns its request tracker. Every request registered here ends
    in exactly one success, failure, or synthesized ConnectionClosed callback.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 10011,
        *,
        editor: EditorHost | None = None,
        stager: PayloadStager | None = None,
        show_diagnostics: bool = True,
        surface_name: str = "*evalbridge-error*",
        connect_timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.editor = editor or NullEditorHost()
        self.stager = stager or PayloadStager()
        self.tracker = RequestTracker()
        self.surface = DiagnosticSurface(surface_name)
        self.dispatcher = ResponseDispatcher(
            self.tracker,
            self.stager,
            self.editor,
            self.surface,
            show_diagnostics=show_diagnostics,
        )
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        host: str | None = None,
        port: int | None = None,
        editor: EditorHost | None = None,
    ) -> Connection:
        staging = config.staging
        return cls(
            host or config.connection.host,
            port or config.connection.port,
            editor=editor,
            stager=PayloadStager(staging.directory, prefix=staging.prefix, suffix=staging.suffix),
            show_diagnostics=config.diagnostics.show_diagnostics,
            surface_name=config.diagnostics.surface_name,
            connect_timeout=config.connection.connect_timeout_seconds,
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_open(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def __aenter__(self) -> Connection:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self.is_open:
            return
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise BridgeConnectionError(self.address, f"connect timed out after {self.connect_timeout}s") from exc
        except OSError as exc:
            raise BridgeConnectionError(self.address, str(exc)) from exc
        self._reader, self._writer = reader, writer
        self._reader_task = asyncio.create_task(self._reader_loop(reader), name=f"evalbridge-reader-{self.address}")
        logger.info("Connected to interpreter at {}", self.address)

    async def _reader_loop(self, reader: asyncio.StreamReader) -> None:
        try:
            while True:
                chunk = await reader.read(READ_CHUNK_BYTES)
                if not chunk:
                    logger.info("Interpreter at {} closed the connection", self.address)
                    break
                self.dispatcher.feed(chunk)
        except (ConnectionError, OSError) as exc:
            logger.warning("Connection {} read failed: {}", self.address, exc)
        except Exception:
            logger.exception("Reader for {} stopped unexpectedly", self.address)
        finally:
            await self._teardown()

    async def send(
        self,
        namespace: Any,
        code: str,
        *,
        origin: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        staged: StagedPayload | None = None,
    ) -> str:
        """Frame and write one evaluation request; returns its request id."""
        path = normalize_namespace(namespace)
        async with self._write_lock:
            writer = self._writer
            if writer is None or writer.is_closing():
                raise BridgeConnectionError(self.address, "connection is not open")
            request_id = new_request_id(self.tracker)
            line = encode_request_line(RequestFrame(request_id=request_id, namespace=path, code=code))
            # Registered before the write so the reader can never see an untracked id.
            self.tracker.register(
                TrackedRequest(
                    request_id=request_id,
                    namespace=path,
                    code=code,
                    origin=origin,
                    on_success=on_success,
                    on_failure=on_failure,
                    staged=staged,
                )
            )
            try:
                self.editor.notify_progress(origin, ProgressState.STARTED)
            except Exception:
                logger.exception("Editor failed to start progress for request {}", request_id)
            try:
                writer.write(line.encode("utf-8") + b"\n")
                await writer.drain()
            except BaseException as exc:
                # Roll back unless a response already completed the entry.
                if self.tracker.complete(request_id) is not None:
                    with contextlib.suppress(Exception):
                        self.editor.notify_progress(origin, ProgressState.STOPPED)
                if isinstance(exc, (ConnectionError, OSError)):
                    raise BridgeConnectionError(self.address, f"write failed: {exc}") from exc
                raise
        logger.debug("Sent request {} to {} ({} chars)", request_id, self.address, len(code))
        return request_id

    async def send_staged(
        self,
        namespace: Any,
        text: str,
        *,
        origin: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
    ) -> str:
        """Stage text to a scratch file and send an instruction that loads it."""
        normalize_namespace(namespace)
        payload = self.stager.stage(text)
        try:
            return await self.send(
                namespace,
                payload.loader,
                origin=origin,
                on_success=on_success,
                on_failure=on_failure,
                staged=payload,
            )
        except BaseException:
            # send() rolls back its entry; a payload still tracked belongs to a live request.
            if not self._holds(payload):
                self.stager.release(payload)
            raise

    def _holds(self, payload: StagedPayload) -> bool:
        for request_id in self.tracker.outstanding():
            request = self.tracker.lookup(request_id)
            if request is not None and request.staged is payload:
                return True
        return False

    async def evaluate(
        self,
        namespace: Any,
        code: str,
        *,
        origin: Any = None,
        staged: bool = False,
        timeout: float | None = None,
    ) -> EvalResult:
        """Send and await the terminal response; failures raise EvaluationFailed."""
        future: asyncio.Future[EvalResult] = asyncio.get_running_loop().create_future()

        def _on_success(result: EvalResult) -> None:
            if not future.done():
                future.set_result(result)

        def _on_failure(report: FailureReport) -> None:
            if not future.done():
                future.set_exception(EvaluationFailed(report))

        sender = self.send_staged if staged else self.send
        await sender(namespace, code, origin=origin, on_success=_on_success, on_failure=_on_failure)
        return await asyncio.wait_for(future, timeout)

    async def close(self) -> None:
        """Tear down the connection; outstanding requests fail with ConnectionClosed."""
        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        await self._teardown()

    async def _teardown(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is not None:
            writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()
        drained = self.tracker.drain()
        if drained:
            logger.info("Failing {} outstanding request(s) on {}", len(drained), self.address)
            self.dispatcher.fail_all(drained, lambda request_id: ConnectionClosed(self.address, request_id))
