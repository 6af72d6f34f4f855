"""
Tick clock — the foreground cadence that drives triggering and polling.

Each tick stands for one frame of the host application. Obstacle changes that
a scenario wants at a given frame are queued here as callbacks: ``config.py``
schedules ``spawn:<name>`` and ``move:<name>`` entries that add or move
obstacles in the live ``ObstacleSet``. Their change edge is then picked up by
``FieldEngine.step`` on the same tick. ``every`` repeats a callback, e.g. a
platform that shifts every second::

    clock.schedule(60, "move:platform", shift_platform, every=60)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass
class TickCallback:
    """A callback due at a specific tick."""

    tick: int
    name: str
    callback: Callable[[], None]
    every: int | None = None  # reschedule interval in ticks


class Clock:
    """
    Discrete frame clock with tick-scheduled callbacks.

    Attributes:
        tick: Ticks elapsed (starts at 0).
        dt: Seconds represented by one tick.
        max_ticks: Tick limit for ``is_done`` (0 = unlimited).
    """

    def __init__(self, dt: float = 1.0 / 60.0, max_ticks: int = 0):
        if dt <= 0:
            raise ValueError(f"dt must be > 0, got {dt}")
        self.tick: int = 0
        self.dt: float = dt
        self.max_ticks: int = max_ticks
        self._due: list[TickCallback] = []

    @property
    def time(self) -> float:
        """Elapsed time in seconds."""
        return self.tick * self.dt

    @property
    def is_done(self) -> bool:
        return self.max_ticks > 0 and self.tick >= self.max_ticks

    @property
    def pending(self) -> int:
        """Number of callbacks still waiting to fire."""
        return len(self._due)

    def schedule(
        self,
        tick: int,
        name: str,
        callback: Callable[[], None],
        every: int | None = None,
    ) -> None:
        """Run ``callback`` when the clock reaches ``tick``."""
        if every is not None and every <= 0:
            raise ValueError("every must be a positive tick count")
        self._due.append(TickCallback(tick=tick, name=name, callback=callback, every=every))
        self._due.sort(key=lambda c: c.tick)

    def advance(self) -> list[str]:
        """
        Move to the next tick and fire everything that is due.

        Returns:
            Names of the callbacks fired, in firing order.
        """
        self.tick += 1
        fired: list[str] = []
        waiting: list[TickCallback] = []

        for entry in self._due:
            if entry.tick > self.tick:
                waiting.append(entry)
                continue
            entry.callback()
            fired.append(entry.name)
            if entry.every is not None:
                waiting.append(
                    TickCallback(
                        tick=self.tick + entry.every,
                        name=entry.name,
                        callback=entry.callback,
                        every=entry.every,
                    )
                )

        self._due = sorted(waiting, key=lambda c: c.tick)
        return fired

    def reset(self) -> None:
        self.tick = 0
        self._due.clear()

    def __repr__(self) -> str:
        return f"Clock(tick={self.tick}, time={self.time:.3f}s, pending={len(self._due)})"
