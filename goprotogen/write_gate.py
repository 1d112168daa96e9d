"""Change-detecting writes of generated files."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import BinaryIO, Optional

from .config import DEFAULT_FILE_MODE
from .errors import GeneratedFileError
from .logging import get_logger


class StreamSink:
    """A single output stream shared by every package; appends are serialized."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def write(self, data: bytes) -> None:
        with self._lock:
            self._stream.write(data)
            self._stream.flush()


class WriteGate:
    """Writes a generated file only when its bytes differ from what is on disk."""

    def __init__(
        self, file_mode: int = DEFAULT_FILE_MODE, sink: Optional[StreamSink] = None
    ) -> None:
        self.file_mode = file_mode
        self.sink = sink
        self.logger = get_logger("write_gate")

    def commit(self, target: Path, data: bytes) -> bool:
        """Return True when ``data`` was written out.

        In stream mode every rendering goes to the sink and no file is
        touched.
        """
        if self.sink is not None:
            self.sink.write(data)
            return True

        target = Path(target)
        if read_existing(target) == data:
            self.logger.debug("%s is up to date", target)
            return False

        try:
            # The mode only applies when the file is created, as with Go's WriteFile.
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, self.file_mode)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            raise GeneratedFileError(f"Failed to write {target}: {exc}") from exc
        self.logger.debug("Wrote %s", target)
        return True

    def remove(self, target: Path) -> None:
        """Delete a generated file that no longer has a package behind it."""
        try:
            Path(target).unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise GeneratedFileError(f"Failed to remove {target}: {exc}") from exc


def read_existing(target: Path) -> bytes:
    """Current bytes of ``target``; a missing file reads as empty."""
    try:
        return Path(target).read_bytes()
    except FileNotFoundError:
        return b""
    except OSError as exc:
        raise GeneratedFileError(f"Failed to read {target}: {exc}") from exc


__all__ = ["StreamSink", "WriteGate", "read_existing"]
