from __future__ import annotations

import fcntl
import os
import threading
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class ErrorLogEntry:
    occurred_at: str
    message: str
    stack_trace: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorLogEntry":
        return cls(
            occurred_at=datetime.now(timezone.utc).isoformat(),
            message=str(exc) or type(exc).__name__,
            stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip(),
        )

    def format(self) -> str:
        return f"[{self.occurred_at}] Error: {self.message}\nStack: {self.stack_trace}\n\n"


class ErrorLogSink(Protocol):
    def append(self, entry: ErrorLogEntry) -> None:
        ...


@dataclass
class FileErrorLog:
    """Append-only error log file.

    Each entry is written with a single O_APPEND write under an advisory
    lock, so concurrent failures never interleave inside one entry.
    """

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def append(self, entry: ErrorLogEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = entry.format().encode("utf-8")
        fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                written = 0
                while written < len(data):
                    written += os.write(fd, data[written:])
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


@dataclass
class InMemoryErrorLog:
    entries: list[ErrorLogEntry] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def append(self, entry: ErrorLogEntry) -> None:
        with self._lock:
            self.entries.append(entry)
