"""Fixed-interval announcement timer."""

from __future__ import annotations

from typing import Callable

from .tasks import TaskGroup


class Heartbeat:
    """Calls ``action`` every ``interval`` seconds until the tasks stop."""

    def __init__(self, interval: float, action: Callable[[], object], tasks: TaskGroup) -> None:
        self.interval = interval
        self.action = action
        self.tasks = tasks
        self.beats = 0

    def run(self) -> None:
        while not self.tasks.wait(self.interval):
            self.action()
            self.beats += 1


__all__ = ["Heartbeat"]
