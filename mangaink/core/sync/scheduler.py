"""
Single-shot timer scheduling on the GUI event loop.
"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from PyQt5.QtCore import QObject, QTimer


class Scheduler(ABC):
    """Schedules callbacks after a delay; handles are opaque ints."""

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> int:
        pass

    @abstractmethod
    def cancel(self, handle: int) -> None:
        pass


class QtScheduler(Scheduler):
    """
    Scheduler backed by single-shot QTimers.

    Timers are parented to ``parent`` so they die with it.
    """

    def __init__(self, parent: Optional[QObject] = None):
        self._parent = parent
        self._timers: Dict[int, QTimer] = {}
        self._next_handle = 1

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> int:
        handle = self._next_handle
        self._next_handle += 1

        timer = QTimer(self._parent)
        timer.setSingleShot(True)

        def fire():
            self._timers.pop(handle, None)
            timer.deleteLater()
            callback()

        timer.timeout.connect(fire)
        self._timers[handle] = timer
        timer.start(int(delay_ms))
        return handle

    def cancel(self, handle: int) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def pending(self) -> int:
        return len(self._timers)
