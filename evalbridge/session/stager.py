"""Scratch-file staging for code that should not be inlined into a request line."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from evalbridge.protocol.framing import include_instruction
from evalbridge.utils.exceptions import StagingIOError


@dataclass(slots=True)
class StagedPayload:
    """Handle for one staged scratch file, owned by exactly one request."""

    path: Path
    loader: str
    released: bool = False


class PayloadStager:
    """Writes code to scratch files and deletes them on request completion."""

    def __init__(
        self,
        directory: str | Path | None = None,
        *,
        prefix: str = "evalbridge-",
        suffix: str = ".jl",
    ):
        self.directory = str(Path(directory).expanduser()) if directory else None
        self.prefix = prefix
        self.suffix = suffix

    def stage(self, text: str) -> StagedPayload:
        """Write trimmed text to a fresh scratch file and return its loader handle."""
        body = text.strip()
        try:
            fd, name = tempfile.mkstemp(prefix=self.prefix, suffix=self.suffix, dir=self.directory)
        except OSError as exc:
            raise StagingIOError(f"cannot create scratch file: {exc}", self.directory) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(body)
        except OSError as exc:
            Path(name).unlink(missing_ok=True)
            raise StagingIOError(f"cannot write scratch file {name}: {exc}", self.directory) from exc
        path = Path(name)
        logger.debug("Staged {} chars to {}", len(body), path)
        return StagedPayload(path=path, loader=include_instruction(str(path)))

    def release(self, payload: StagedPayload) -> None:
        """Delete the staged file; repeated calls and deletion failures are tolerated."""
        if payload.released:
            logger.debug("Staged payload already released: {}", payload.path)
            return
        payload.released = True
        try:
            payload.path.unlink()
        except FileNotFoundError:
            logger.debug("Staged payload vanished before release: {}", payload.path)
        except OSError as exc:
            logger.warning("Failed to delete staged payload {}: {}", payload.path, exc)
