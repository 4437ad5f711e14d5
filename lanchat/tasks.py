"""Supervised background threads sharing one stop signal."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TaskGroup:
    """Owns the worker threads of a node.

    Threads are started through :meth:`spawn` and joined by :meth:`join`.
    Loops poll :attr:`stopping` or block in :meth:`wait`, which returns
    early once :meth:`stop` is called.
    """

    def __init__(self, name: str = "lanchat") -> None:
        self.name = name
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; ``True`` if stop was requested."""
        return self._stop.wait(timeout)

    def spawn(self, target: Callable[..., Any], *args: Any, name: str | None = None) -> threading.Thread | None:
        """Run ``target(*args)`` in a daemon thread unless stopping."""
        thread_name = f"{self.name}-{name or getattr(target, '__name__', 'task')}"
        thread = threading.Thread(
            target=self._run, args=(target, args), name=thread_name, daemon=True
        )
        with self._lock:
            if self._stop.is_set():
                return None
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        return thread

    def _run(self, target: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            target(*args)
        except Exception:
            logger.exception("task %s crashed", threading.current_thread().name)

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> list[threading.Thread]:
        """Join all tasks, returning those still alive afterwards."""
        with self._lock:
            threads = list(self._threads)
        current = threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join(timeout)
        alive = [t for t in threads if t.is_alive() and t is not current]
        for thread in alive:
            logger.debug("task %s still running after join", thread.name)
        return alive

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads if t.is_alive())


__all__ = ["TaskGroup"]
