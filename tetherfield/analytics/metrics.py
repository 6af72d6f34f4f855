"""
Metrics collector — per-tick view of field freshness and computation cost.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tetherfield.core.engine import TickState


@dataclass
class TickMetrics:
    """Per-tick metrics snapshot."""

    tick: int
    time: float
    field_version: int
    obstacle_version: int
    computing: bool
    triggered: bool
    published: bool
    kernel_seconds: float = 0.0  # only set on publishing ticks

    @property
    def stale(self) -> bool:
        """The published field lags behind the live obstacle set."""
        return self.field_version < self.obstacle_version


class MetricsCollector:
    """Collects per-tick metrics and derives latency statistics."""

    def __init__(self):
        self.history: list[TickMetrics] = []
        self._triggered_at: int | None = None
        self.latencies: list[int] = []  # ticks from first trigger to publish

    def record(self, state: "TickState", kernel_seconds: float = 0.0) -> TickMetrics:
        """Record metrics for a tick."""
        if state.triggered and self._triggered_at is None:
            self._triggered_at = state.tick
        if state.published and self._triggered_at is not None:
            self.latencies.append(state.tick - self._triggered_at)
            self._triggered_at = state.tick if state.computing else None

        metrics = TickMetrics(
            tick=state.tick,
            time=state.time,
            field_version=state.field_version,
            obstacle_version=state.obstacle_version,
            computing=state.computing,
            triggered=state.triggered,
            published=state.published,
            kernel_seconds=kernel_seconds,
        )
        self.history.append(metrics)
        return metrics

    def publishes(self) -> int:
        return sum(1 for m in self.history if m.published)

    def stale_ticks(self) -> int:
        return sum(1 for m in self.history if m.stale)

    def mean_kernel_seconds(self) -> float:
        times = [m.kernel_seconds for m in self.history if m.published]
        if not times:
            return 0.0
        return sum(times) / len(times)

    def max_latency(self) -> int:
        return max(self.latencies, default=0)

    def summary_dict(self) -> dict:
        """Return summary statistics."""
        if not self.history:
            return {}
        final = self.history[-1]
        return {
            "total_ticks": final.tick,
            "total_time": final.time,
            "publishes": self.publishes(),
            "stale_ticks": self.stale_ticks(),
            "mean_kernel_seconds": self.mean_kernel_seconds(),
            "max_latency_ticks": self.max_latency(),
            "final_field_version": final.field_version,
            "final_obstacle_version": final.obstacle_version,
        }
