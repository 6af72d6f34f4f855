"""
Obstacle registry and snapshot builder.

The host application owns the live ``ObstacleSet`` and mutates it whenever
bodies appear, move or disappear. Each mutation raises an edge-triggered
``changed`` flag that the engine consumes once per tick to decide whether a
new field computation is needed.

``ObstacleSet.snapshot()`` copies the current shapes and transforms into an
``ObstacleSnapshot``: frozen, ordered, and detached from the live set, so it can
be handed to a background worker while the host keeps mutating obstacles.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np
from numpy.typing import NDArray

from tetherfield.core.geometry import Vec2, as_vec2
from tetherfield.core.shapes import Shape


@dataclass
class Obstacle:
    """A live obstacle: a shape plus its current rigid transform."""

    id: int
    shape: Shape
    position: Vec2 = (0.0, 0.0)
    rotation: float = 0.0  # radians, counter-clockwise
    name: str = ""


@dataclass(frozen=True, slots=True)
class ObstacleEntry:
    """Point-in-time copy of one obstacle."""

    shape: Shape
    position: Vec2
    rotation: float

    def signed_distance(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.shape.signed_distance(points, self.position, self.rotation)


@dataclass(frozen=True, slots=True)
class ObstacleSnapshot:
    """
    Immutable, order-stable obstacle list used for one field computation.

    Attributes:
        entries: Obstacles in insertion order.
        version: Change counter of the live set when the snapshot was taken.
    """

    entries: tuple[ObstacleEntry, ...] = ()
    version: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ObstacleEntry]:
        return iter(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @classmethod
    def of(
        cls,
        items: Sequence[tuple[Shape, Sequence[float], float]],
        version: int = 0,
    ) -> ObstacleSnapshot:
        """Build a snapshot directly from ``(shape, position, rotation)`` triples."""
        entries = tuple(
            ObstacleEntry(shape=shape, position=as_vec2(pos, "position"), rotation=float(rot))
            for shape, pos, rot in items
        )
        return cls(entries=entries, version=version)


class ObstacleSet:
    """
    Live obstacle collection with change tracking.

    Safe to mutate from any thread; ``snapshot`` always sees a consistent set.
    """

    def __init__(self) -> None:
        self._obstacles: dict[int, Obstacle] = {}
        self._next_id = 0
        self._version = 0
        self._changed = False
        self._lock = threading.Lock()

    def add(
        self,
        shape: Shape,
        position: Sequence[float] = (0.0, 0.0),
        rotation: float = 0.0,
        name: str = "",
    ) -> Obstacle:
        """Register a new obstacle and flag the set as changed."""
        with self._lock:
            obstacle = Obstacle(
                id=self._next_id,
                shape=shape,
                position=as_vec2(position, "position"),
                rotation=float(rotation),
                name=name or f"obstacle_{self._next_id}",
            )
            self._obstacles[obstacle.id] = obstacle
            self._next_id += 1
            self._mark_changed()
            return obstacle

    def move(
        self,
        obstacle_id: int,
        position: Sequence[float] | None = None,
        rotation: float | None = None,
    ) -> None:
        """Update an obstacle transform. Raises ``KeyError`` for unknown ids."""
        with self._lock:
            obstacle = self._obstacles[obstacle_id]
            if position is not None:
                obstacle.position = as_vec2(position, "position")
            if rotation is not None:
                obstacle.rotation = float(rotation)
            self._mark_changed()

    def remove(self, obstacle_id: int) -> None:
        with self._lock:
            if self._obstacles.pop(obstacle_id, None) is not None:
                self._mark_changed()

    def find(self, name: str) -> Obstacle | None:
        """First obstacle registered under ``name``."""
        with self._lock:
            for obstacle in self._obstacles.values():
                if obstacle.name == name:
                    return obstacle
        return None

    def _mark_changed(self) -> None:
        self._version += 1
        self._changed = True

    @property
    def version(self) -> int:
        return self._version

    @property
    def changed(self) -> bool:
        return self._changed

    def consume_changed(self) -> bool:
        """Return the change flag and clear it (edge trigger)."""
        with self._lock:
            changed = self._changed
            self._changed = False
            return changed

    def snapshot(self) -> ObstacleSnapshot:
        """Detached copy of all obstacles in insertion order."""
        with self._lock:
            entries = tuple(
                ObstacleEntry(shape=o.shape, position=o.position, rotation=o.rotation)
                for o in self._obstacles.values()
            )
            return ObstacleSnapshot(entries=entries, version=self._version)

    def __len__(self) -> int:
        return len(self._obstacles)

    def __iter__(self) -> Iterator[Obstacle]:
        with self._lock:
            return iter(list(self._obstacles.values()))

    def __repr__(self) -> str:
        return f"ObstacleSet({len(self)} obstacles, version={self._version})"
