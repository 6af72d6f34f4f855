"""
Obstacle shapes — anything that can report a signed distance to its surface.

Every shape works in its own body frame (centered on the obstacle position,
unrotated); ``Shape.signed_distance`` maps world points into that frame before
calling ``local_distance``. Distances are negative inside the shape.

All implementations are vectorized over arrays of points of shape ``(..., 2)``
so the field kernel can evaluate a whole grid in one call per obstacle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from tetherfield.core.geometry import Vec2, as_vec2, to_local


class Shape(ABC):
    """Capability interface: signed distance from points to the shape surface."""

    kind: str = "shape"

    @abstractmethod
    def local_distance(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Signed distance for points already expressed in the body frame."""
        ...

    def signed_distance(
        self,
        points: NDArray[np.float64] | Sequence[float],
        position: Vec2 = (0.0, 0.0),
        rotation: float = 0.0,
    ) -> NDArray[np.float64]:
        """Signed distance for world-space points given the obstacle transform."""
        pts = np.asarray(points, dtype=np.float64)
        return self.local_distance(to_local(pts, position, rotation))


@dataclass(frozen=True)
class Box(Shape):
    """Axis-aligned (in body frame) rectangle given by its half extents."""

    half_extents: Vec2
    kind = "box"

    def __post_init__(self) -> None:
        half = as_vec2(self.half_extents, "half_extents")
        if half[0] <= 0.0 or half[1] <= 0.0:
            raise ValueError(f"box half_extents must be > 0, got {half}")
        object.__setattr__(self, "half_extents", half)

    def local_distance(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        q = np.abs(points) - np.asarray(self.half_extents)
        outside = np.linalg.norm(np.maximum(q, 0.0), axis=-1)
        inside = np.minimum(np.max(q, axis=-1), 0.0)
        return outside + inside


@dataclass(frozen=True)
class Circle(Shape):
    """Disc of the given radius. A zero radius models a point obstacle."""

    radius: float
    kind = "circle"

    def __post_init__(self) -> None:
        if self.radius < 0.0:
            raise ValueError(f"circle radius must be >= 0, got {self.radius}")
        object.__setattr__(self, "radius", float(self.radius))

    def local_distance(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.linalg.norm(points, axis=-1) - self.radius


@dataclass(frozen=True)
class Capsule(Shape):
    """Segment from ``(-half_length, 0)`` to ``(half_length, 0)`` swept by ``radius``."""

    half_length: float
    radius: float
    kind = "capsule"

    def __post_init__(self) -> None:
        if self.half_length < 0.0 or self.radius < 0.0:
            raise ValueError("capsule half_length and radius must be >= 0")
        object.__setattr__(self, "half_length", float(self.half_length))
        object.__setattr__(self, "radius", float(self.radius))

    def local_distance(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        along = np.clip(points[..., 0], -self.half_length, self.half_length)
        dx = points[..., 0] - along
        return np.hypot(dx, points[..., 1]) - self.radius


@dataclass(frozen=True)
class Polygon(Shape):
    """
    Simple (non self-intersecting) polygon, convex or not.

    Distance is the minimum over edge segments; the sign comes from an
    even-odd crossing test, so vertex winding does not matter.
    """

    vertices: tuple[Vec2, ...]
    kind = "polygon"

    def __post_init__(self) -> None:
        verts = tuple(as_vec2(v, "vertex") for v in self.vertices)
        if len(verts) < 3:
            raise ValueError(f"polygon needs at least 3 vertices, got {len(verts)}")
        arr = np.asarray(verts)
        area = 0.5 * np.sum(arr[:, 0] * np.roll(arr[:, 1], -1) - np.roll(arr[:, 0], -1) * arr[:, 1])
        if abs(area) <= 1e-12:
            raise ValueError("polygon has zero area")
        object.__setattr__(self, "vertices", verts)

    def local_distance(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        verts = np.asarray(self.vertices, dtype=np.float64)
        px, py = points[..., 0], points[..., 1]

        best = np.full(px.shape, np.inf)
        sign = np.ones(px.shape)
        n = len(verts)
        for i in range(n):
            vi = verts[i]
            vj = verts[i - 1]
            ex, ey = vj[0] - vi[0], vj[1] - vi[1]
            wx, wy = px - vi[0], py - vi[1]

            length_sq = ex * ex + ey * ey
            if length_sq > 0.0:
                t = np.clip((wx * ex + wy * ey) / length_sq, 0.0, 1.0)
            else:
                t = np.zeros_like(px)
            bx, by = wx - ex * t, wy - ey * t
            best = np.minimum(best, bx * bx + by * by)

            # Crossing test against the edge (vi, vj)
            c1 = py >= vi[1]
            c2 = py < vj[1]
            c3 = ex * wy > ey * wx
            flip = (c1 & c2 & c3) | (~c1 & ~c2 & ~c3)
            sign = np.where(flip, -sign, sign)

        return sign * np.sqrt(best)


SHAPE_TYPES: dict[str, type[Shape]] = {
    "box": Box,
    "circle": Circle,
    "capsule": Capsule,
    "polygon": Polygon,
}
