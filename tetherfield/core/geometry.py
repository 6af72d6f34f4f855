"""
Planar geometry — the sampling region and small vector helpers.

A ``Region`` fixes where the field lives in world space and how densely it is
sampled. Grid node ``(x, y)`` sits at ``origin + step * (x, y)``, so node 0 is
the lower-left corner and node ``resolution - 1`` the upper-right one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

# Gradient needs a 1-cell border and curl a 2-cell border.
MIN_RESOLUTION = 3

Vec2 = tuple[float, float]


def as_vec2(value: Sequence[float], name: str = "vector") -> Vec2:
    """Coerce a 2-sequence into a float tuple."""
    if len(value) != 2:
        raise ValueError(f"{name} must have exactly 2 components, got {len(value)}")
    return (float(value[0]), float(value[1]))


def rotation_matrix(angle: float) -> NDArray[np.float64]:
    """Counter-clockwise rotation by ``angle`` radians."""
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s], [s, c]], dtype=np.float64)


def to_local(
    points: NDArray[np.float64], position: Vec2, rotation: float
) -> NDArray[np.float64]:
    """Express world-space points (..., 2) in a body frame at ``position``/``rotation``."""
    offset = points - np.asarray(position, dtype=np.float64)
    # Row vectors: p_local = R(-rotation) @ p  <=>  p @ R(rotation)
    return offset @ rotation_matrix(rotation)


def normalize_or_zero(vectors: NDArray[np.float64]) -> NDArray[np.float64]:
    """Unit-length copies of (..., 2) vectors; zero vectors stay zero."""
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    out = np.zeros_like(vectors, dtype=np.float64)
    np.divide(vectors, norms, out=out, where=norms > 0.0)
    return out


@dataclass(frozen=True, slots=True)
class Region:
    """
    Rectangular sampling region.

    Attributes:
        center: World-space center of the region.
        half_extents: Half width/height, both strictly positive.
        resolution: Grid node counts ``(width, height)``, each >= 3.
    """

    center: Vec2 = (0.0, 0.0)
    half_extents: Vec2 = (800.0, 400.0)
    resolution: tuple[int, int] = (2000, 2000)

    def __post_init__(self) -> None:
        center = as_vec2(self.center, "center")
        half = as_vec2(self.half_extents, "half_extents")
        if len(self.resolution) != 2:
            raise ValueError("resolution must be (width, height)")
        res = (int(self.resolution[0]), int(self.resolution[1]))

        if not all(math.isfinite(v) for v in center + half):
            raise ValueError("center and half_extents must be finite")
        if half[0] <= 0.0 or half[1] <= 0.0:
            raise ValueError(f"half_extents must be > 0, got {half}")
        if res[0] < MIN_RESOLUTION or res[1] < MIN_RESOLUTION:
            raise ValueError(
                f"resolution must be at least {MIN_RESOLUTION}x{MIN_RESOLUTION}, got {res}"
            )

        object.__setattr__(self, "center", center)
        object.__setattr__(self, "half_extents", half)
        object.__setattr__(self, "resolution", res)

    @property
    def width(self) -> int:
        return self.resolution[0]

    @property
    def height(self) -> int:
        return self.resolution[1]

    @property
    def origin(self) -> Vec2:
        return (
            self.center[0] - self.half_extents[0],
            self.center[1] - self.half_extents[1],
        )

    @property
    def step(self) -> Vec2:
        """World distance between neighbouring nodes along each axis."""
        return (
            2.0 * self.half_extents[0] / (self.width - 1),
            2.0 * self.half_extents[1] / (self.height - 1),
        )

    @property
    def cell_count(self) -> int:
        return self.width * self.height

    def world_point(self, x: float, y: float) -> Vec2:
        """World position of (possibly fractional) grid coordinates."""
        ox, oy = self.origin
        sx, sy = self.step
        return (ox + sx * x, oy + sy * y)

    def grid_coordinates(self, point: Sequence[float]) -> Vec2:
        """Continuous grid coordinates ``(point - origin) / step``."""
        px, py = as_vec2(point, "point")
        ox, oy = self.origin
        sx, sy = self.step
        return ((px - ox) / sx, (py - oy) / sy)

    def contains(self, point: Sequence[float]) -> bool:
        """Whether ``point`` lies inside the closed region rectangle."""
        px, py = as_vec2(point, "point")
        return (
            abs(px - self.center[0]) <= self.half_extents[0]
            and abs(py - self.center[1]) <= self.half_extents[1]
        )

    def node_points(self) -> NDArray[np.float64]:
        """World positions of every node, shape ``(width, height, 2)``, indexed ``[x, y]``."""
        ox, oy = self.origin
        sx, sy = self.step
        xs = ox + sx * np.arange(self.width, dtype=np.float64)
        ys = oy + sy * np.arange(self.height, dtype=np.float64)
        gx, gy = np.meshgrid(xs, ys, indexing="ij")
        return np.stack((gx, gy), axis=-1)
