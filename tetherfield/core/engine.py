"""
Field engine — the foreground tick loop around the background kernel.

Each tick:
1. Advance clock (fires scheduled obstacle spawns/moves)
2. If the obstacle set changed, snapshot it and trigger a computation
3. Poll the scheduler without blocking
4. Publish a finished field to the store
5. Collect metrics and fire callbacks

Consumers sample the store at any time; they always see the last published
field, never a partially computed one.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from rich.console import Console
from rich.progress import Progress

from tetherfield.analytics.metrics import MetricsCollector
from tetherfield.core.clock import Clock
from tetherfield.core.geometry import Region
from tetherfield.core.obstacles import ObstacleSet
from tetherfield.field.scheduler import FieldScheduler
from tetherfield.field.store import Field, FieldStore

logger = logging.getLogger(__name__)


@dataclass
class TickState:
    """What happened during one tick."""

    tick: int
    time: float
    triggered: bool
    published: bool
    computing: bool
    field_version: int
    obstacle_version: int
    events_fired: list[str]


class FieldEngine:
    """
    Top-level coordinator.

    Wires the live obstacle set, the scheduler and the store together and runs
    the tick loop. The engine never blocks on the kernel.
    """

    def __init__(
        self,
        region: Region,
        obstacles: ObstacleSet | None = None,
        scheduler: FieldScheduler | None = None,
        store: FieldStore | None = None,
        clock: Clock | None = None,
    ):
        self.region = region
        self.obstacles = obstacles if obstacles is not None else ObstacleSet()
        self.scheduler = scheduler or FieldScheduler()
        self.store = store or FieldStore()
        self.clock = clock or Clock()

        self.metrics = MetricsCollector()
        self._force_trigger = False

        self._tick_callbacks: list[Callable[[TickState], None]] = []
        self._publish_callbacks: list[Callable[[Field], None]] = []

    def on_tick(self, callback: Callable[[TickState], None]) -> None:
        """Register a callback to run after each tick."""
        self._tick_callbacks.append(callback)

    def on_publish(self, callback: Callable[[Field], None]) -> None:
        """Register a callback receiving every newly published field."""
        self._publish_callbacks.append(callback)

    def request_recompute(self) -> None:
        """Trigger a computation on the next tick even if no obstacle changed."""
        self._force_trigger = True

    def set_region(self, region: Region) -> None:
        """Switch to a new sampling region; takes effect with the next computation."""
        self.region = region
        self.request_recompute()

    def initialize(self) -> None:
        """Make sure the first tick computes an initial field."""
        self.request_recompute()

    def step(self) -> TickState:
        """Execute one tick."""
        # 1. Advance clock
        fired = self.clock.advance()
        tick = self.clock.tick

        # 2. Trigger on the obstacle change edge
        changed = self.obstacles.consume_changed()
        triggered = changed or self._force_trigger
        if triggered:
            self._force_trigger = False
            snapshot = self.obstacles.snapshot()
            self.scheduler.trigger(snapshot, self.region)

        # 3. Non-blocking poll
        field = self.scheduler.poll()

        # 4. Publish
        kernel_seconds = 0.0
        if field is not None:
            self.store.publish(field)
            kernel_seconds = field.computed_in
            logger.debug("Tick %d: published field version %d", tick, field.version)
            for cb in self._publish_callbacks:
                cb(field)

        # 5. Metrics + callbacks
        state = TickState(
            tick=tick,
            time=self.clock.time,
            triggered=triggered,
            published=field is not None,
            computing=self.scheduler.busy,
            field_version=self.store.current.version,
            obstacle_version=self.obstacles.version,
            events_fired=fired,
        )
        self.metrics.record(state, kernel_seconds=kernel_seconds)

        for cb in self._tick_callbacks:
            cb(state)

        return state

    @property
    def settled(self) -> bool:
        """Nothing left to compute: the published field matches the live obstacles."""
        return (
            not self.scheduler.pending
            and not self.obstacles.changed
            and not self._force_trigger
            and self.clock.pending == 0
            and not self.store.is_empty
            and self.store.current.version == self.obstacles.version
        )

    def run(
        self,
        max_ticks: int | None = None,
        stop_when_settled: bool = True,
        show_progress: bool = True,
        realtime: bool = False,
    ) -> list[TickState]:
        """
        Run the tick loop until completion.

        Args:
            max_ticks: Override the clock's max_ticks.
            stop_when_settled: Stop once every scheduled change has been published.
            show_progress: Show a progress bar.
            realtime: Sleep ``clock.dt`` per tick to mimic a frame cadence.

        Returns:
            One ``TickState`` per tick.
        """
        if max_ticks is not None:
            self.clock.max_ticks = max_ticks

        self.initialize()
        history: list[TickState] = []

        console = Console()
        total = self.clock.max_ticks if self.clock.max_ticks > 0 else None

        def loop(advance: Callable[[], None] | None = None) -> None:
            while not self._should_stop(stop_when_settled):
                history.append(self.step())
                if advance is not None:
                    advance()
                if realtime:
                    time.sleep(self.clock.dt)

        if show_progress and total:
            with Progress(console=console) as progress:
                task = progress.add_task("Ticking...", total=total)
                loop(lambda: progress.update(task, completed=self.clock.tick))
        else:
            loop()

        logger.info(
            "Stopped after %d ticks (%d fields published)",
            self.clock.tick,
            self.metrics.publishes(),
        )
        return history

    def _should_stop(self, stop_when_settled: bool) -> bool:
        if self.clock.is_done:
            return True
        return stop_when_settled and self.settled

    def summary(self) -> dict:
        """Summary of the run so far."""
        field = self.store.current
        summary = {
            "ticks": self.clock.tick,
            "time_seconds": self.clock.time,
            "obstacles": len(self.obstacles),
            "computations_launched": self.scheduler.launched,
            "triggers_coalesced": self.scheduler.coalesced,
            "fields_published": self.store.publish_count,
            "field_version": field.version,
            "obstacle_version": self.obstacles.version,
        }
        summary.update(self.metrics.summary_dict())
        return summary

    def close(self) -> None:
        self.scheduler.shutdown()
