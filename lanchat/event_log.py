"""User-facing event log for chat nodes."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

Sink = Callable[[str], None]


def _print_line(line: str) -> None:
    print(line, flush=True)


class EventLog:
    """Formats ``[HH:MM:SS] message`` lines and hands them to a sink."""

    def __init__(self, sink: Optional[Sink] = None, *, clock: Callable[[], float] = time.time) -> None:
        self.sink = sink or _print_line
        self.clock = clock
        self._lock = threading.Lock()

    def format(self, message: str) -> str:
        stamp = time.strftime("%H:%M:%S", time.localtime(self.clock()))
        return f"[{stamp}] {message}"

    def log(self, message: str) -> None:
        line = self.format(message)
        with self._lock:
            self.sink(line)


__all__ = ["EventLog", "Sink"]
