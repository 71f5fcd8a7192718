"""
Append-only audit log.

Every line is prefixed with an ISO timestamp, echoed to the console and
appended to the log file.  Components receive the bound :meth:`AuditLog.log`
(or any ``Callable[[str], None]``) and do not depend on the file format.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable

from .config import AUDIT_LOG_PATH

LogSink = Callable[[str], None]

# Stands in for a newline so every entry stays on one line.
LINE_BREAK = " ⏎ "


class AuditLog:
    """Timestamped line sink backed by a text file opened in append mode."""

    def __init__(self, path: Path = AUDIT_LOG_PATH, echo: bool = True):
        self.path = Path(path)
        self.echo = echo
        self._fh = None

    def _stream(self):
        if self._fh is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("a", encoding="utf-8")
        return self._fh

    def log(self, line: str) -> None:
        """Write one timestamped line; embedded newlines are joined with ``⏎``."""
        message = LINE_BREAK.join(part for part in line.splitlines() if part.strip())
        stamped = f"{datetime.now().isoformat()} • {message}"
        if self.echo:
            print(stamped, flush=True)
        fh = self._stream()
        fh.write(stamped + "\n")
        fh.flush()

    __call__ = log

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "AuditLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def null_log(line: str) -> None:  # noqa: ARG001
    """Sink that discards every line."""
