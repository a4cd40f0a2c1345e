"""Entry points the editing environment calls to evaluate code."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from evalbridge.config.schema import Config
from evalbridge.protocol.framing import activate_instruction, include_instruction
from evalbridge.session.connection import Connection
from evalbridge.session.contracts import EditorHost, NullEditorHost
from evalbridge.session.manager import SessionManager
from evalbridge.session.tracker import FailureCallback, SuccessCallback


class EvalClient:
    """Sends editor text to one interpreter session, opening it on first use."""

    def __init__(
        self,
        config: Config | None = None,
        *,
        editor: EditorHost | None = None,
        manager: SessionManager | None = None,
        host: str | None = None,
        port: int | None = None,
    ):
        self.config = config or (manager.config if manager else Config())
        self.editor = editor or (manager.editor if manager and manager.editor else NullEditorHost())
        self.manager = manager or SessionManager(self.config, editor=self.editor)
        self.host = host
        self.port = port

    async def connection(self) -> Connection:
        return await self.manager.activate(self.host, self.port)

    async def send_text(
        self,
        namespace: Any,
        text: str,
        *,
        origin: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
    ) -> str:
        """Evaluate text inlined into the request line."""
        connection = await self.connection()
        return await connection.send(namespace, text, origin=origin, on_success=on_success, on_failure=on_failure)

    async def send_text_staged(
        self,
        namespace: Any,
        text: str,
        *,
        origin: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
    ) -> str:
        """Evaluate text by way of a scratch file."""
        connection = await self.connection()
        return await connection.send_staged(
            namespace, text, origin=origin, on_success=on_success, on_failure=on_failure
        )

    async def send_file(
        self,
        namespace: Any,
        path: str | Path,
        *,
        origin: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
    ) -> str:
        """Evaluate an existing source file in the given namespace."""
        resolved = str(Path(path).expanduser().resolve())
        return await self.send_text(
            namespace,
            include_instruction(resolved),
            origin=origin,
            on_success=on_success,
            on_failure=on_failure,
        )

    async def send_selection(
        self,
        context: Any,
        *,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
    ) -> str:
        """Evaluate whatever the editor selects in `context`, staging when needed."""
        selection = self.editor.get_source_selection(context)
        if selection.range is not None:
            self.editor.flash_region(selection.range)
        if self.should_stage(selection.text):
            return await self.send_text_staged(
                selection.namespace, selection.text, origin=context, on_success=on_success, on_failure=on_failure
            )
        return await self.send_text(
            selection.namespace, selection.text, origin=context, on_success=on_success, on_failure=on_failure
        )

    async def activate_project_context(
        self,
        path: str | Path,
        *,
        origin: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
    ) -> str:
        """Activate a project environment inside the interpreter."""
        resolved = str(Path(path).expanduser().resolve())
        return await self.send_text(
            None, activate_instruction(resolved), origin=origin, on_success=on_success, on_failure=on_failure
        )

    def should_stage(self, text: str) -> bool:
        body = text.strip()
        return "\n" in body or len(body) > self.config.staging.inline_max_chars

    async def close(self) -> None:
        await self.manager.close(self.host, self.port)
