"""
Clock abstraction for the periodic simulation tasks.

Every periodic task (oracle tick, scenario tick, coherence monitor) is
registered with a scheduler and receives its period in simulated seconds
each time it fires. ManualScheduler steps simulated time explicitly and is
used for tests and headless runs; QtScheduler drives the same tasks from
QTimers on a running Qt event loop.
"""

import logging
from typing import Callable, List

from PySide6.QtCore import QTimer

logger = logging.getLogger(__name__)

TickCallback = Callable[[float], None]


class TimerHandle:
    """Handle returned by a scheduler; cancel() stops the task (idempotent)."""

    def __init__(self, period: float, callback: TickCallback):
        self.period = period
        self.callback = callback
        self.active = True

    def cancel(self):
        self.active = False


class Scheduler:
    speed = 1.0

    def schedule_repeating(self, period: float, callback: TickCallback) -> TimerHandle:
        raise NotImplementedError

    def set_speed(self, speed: float):
        """Simulated seconds per wall-clock second (no effect on manual time)."""
        self.speed = max(0.1, float(speed))


class _ManualTask(TimerHandle):
    def __init__(self, period: float, callback: TickCallback, next_due: float, seq: int):
        super().__init__(period, callback)
        self.next_due = next_due
        self.seq = seq


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler over simulated time.

    advance() fires every due callback in time order; callbacks due at the
    same instant fire in registration order.
    """
    def __init__(self):
        self.now = 0.0
        self._tasks: List[_ManualTask] = []
        self._seq = 0

    def schedule_repeating(self, period: float, callback: TickCallback) -> TimerHandle:
        if period <= 0:
            raise ValueError(f"Period must be positive, got {period}")
        task = _ManualTask(period, callback, self.now + period, self._seq)
        self._seq += 1
        self._tasks.append(task)
        return task

    def advance(self, seconds: float):
        """Advance simulated time by `seconds`, firing due callbacks."""
        target = self.now + seconds
        while True:
            self._tasks = [t for t in self._tasks if t.active]
            due = [t for t in self._tasks if t.next_due <= target + 1e-9]
            if not due:
                break
            task = min(due, key=lambda t: (t.next_due, t.seq))
            self.now = max(self.now, task.next_due)
            task.next_due += task.period
            task.callback(task.period)
        self.now = target

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if t.active)


class _QtTask(TimerHandle):
    def __init__(self, period: float, callback: TickCallback, timer: QTimer):
        super().__init__(period, callback)
        self.timer = timer

    def cancel(self):
        if self.active:
            self.timer.stop()
        super().cancel()


class QtScheduler(Scheduler):
    """
    Real-time scheduler backed by one QTimer per task.

    A speed multiplier shortens the wall-clock interval while each callback
    still receives its period in simulated seconds. Requires a Qt
    application (QCoreApplication is enough) with a running event loop.
    """
    def __init__(self, speed: float = 1.0):
        self.speed = max(0.1, float(speed))
        self._tasks: List[_QtTask] = []

    def set_speed(self, speed: float):
        super().set_speed(speed)
        for task in self._tasks:
            if task.active:
                task.timer.setInterval(self._interval_ms(task.period))
        logger.info("Simulation speed set to %.1fx", self.speed)

    def _interval_ms(self, period: float) -> int:
        return max(1, int(round(period * 1000.0 / self.speed)))

    def schedule_repeating(self, period: float, callback: TickCallback) -> TimerHandle:
        if period <= 0:
            raise ValueError(f"Period must be positive, got {period}")
        timer = QTimer()
        timer.setInterval(self._interval_ms(period))
        task = _QtTask(period, callback, timer)

        def fire():
            if task.active:
                task.callback(task.period)

        timer.timeout.connect(fire)
        timer.start()
        self._tasks = [t for t in self._tasks if t.active]
        self._tasks.append(task)
        return task
