"""
Field store — the single published field and point queries against it.

A ``Field`` is an immutable bundle of three grids computed from one obstacle
snapshot. The ``FieldStore`` holds the latest one and swaps it atomically when
a new computation completes, so a reader always sees either the whole old
field or the whole new one.

Grids are indexed ``[x, y]``: axis 0 runs along world X, axis 1 along world Y.
Sampling maps a world point to continuous grid coordinates and bilinearly
interpolates the four surrounding nodes.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
from numpy.typing import NDArray

from tetherfield.core.geometry import Region

LAYERS = ("distance", "gradient", "curl")

Sample = Union[float, NDArray[np.float64]]


class FieldBoundsError(IndexError):
    """Unchecked sampling outside the interpolatable part of the grid."""


def _frozen(array: NDArray[np.float64]) -> NDArray[np.float64]:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class Field:
    """
    Distance, gradient and curl grids for one region and obstacle snapshot.

    Attributes:
        region: Region the grids were computed over (``None`` for the empty field).
        distance: Signed distance per node, shape ``(width, height)``.
        gradient: Distance gradient per node, shape ``(width, height, 2)``.
        curl: Curl of the rotated unit gradient, shape ``(width, height)``.
        version: Obstacle snapshot version the field was computed from.
        computed_in: Kernel wall time in seconds.
    """

    region: Region | None
    distance: NDArray[np.float64]
    gradient: NDArray[np.float64]
    curl: NDArray[np.float64]
    version: int = -1
    computed_in: float = 0.0

    def __post_init__(self) -> None:
        if self.region is not None:
            shape = self.region.resolution
            if self.distance.shape != shape or self.curl.shape != shape:
                raise ValueError(f"scalar grids must have shape {shape}")
            if self.gradient.shape != shape + (2,):
                raise ValueError(f"gradient grid must have shape {shape + (2,)}")
        for array in (self.distance, self.gradient, self.curl):
            _frozen(array)

    @classmethod
    def empty(cls) -> Field:
        """The field published before any computation has finished."""
        return cls(
            region=None,
            distance=np.zeros((0, 0)),
            gradient=np.zeros((0, 0, 2)),
            curl=np.zeros((0, 0)),
        )

    @property
    def is_empty(self) -> bool:
        return self.region is None or self.distance.size == 0

    def layer(self, name: str) -> NDArray[np.float64]:
        if name not in LAYERS:
            raise ValueError(f"unknown layer {name!r}, expected one of {LAYERS}")
        return getattr(self, name)

    def sample_checked(self, point: Sequence[float], layer: str = "distance") -> Sample | None:
        """Interpolated value at ``point``, or ``None`` outside the interpolatable grid."""
        grid = self.layer(layer)
        if self.is_empty:
            return None
        gx, gy = self.region.grid_coordinates(point)
        return sample_grid_checked(grid, gx, gy)

    def sample(self, point: Sequence[float], layer: str = "distance") -> Sample:
        """Like ``sample_checked`` but raises ``FieldBoundsError`` instead of returning ``None``."""
        value = self.sample_checked(point, layer)
        if value is None:
            raise FieldBoundsError(f"point {tuple(point)} is outside the sampled field")
        return value

    def __repr__(self) -> str:
        if self.is_empty:
            return "Field(empty)"
        w, h = self.region.resolution
        return f"Field({w}x{h}, version={self.version}, computed_in={self.computed_in:.3f}s)"


def _interpolate(grid: NDArray[np.float64], x: int, y: int, px: float, py: float) -> Sample:
    bottom = grid[x, y] * (1.0 - px) + grid[x + 1, y] * px
    top = grid[x, y + 1] * (1.0 - px) + grid[x + 1, y + 1] * px
    value = bottom * (1.0 - py) + top * py
    if np.ndim(value) == 0:
        return float(value)
    return np.array(value, dtype=np.float64)


def sample_grid_checked(grid: NDArray[np.float64], gx: float, gy: float) -> Sample | None:
    """
    Bilinear sample at continuous grid coordinates.

    Returns ``None`` when the floored coordinates do not index a full 2x2
    neighbourhood, i.e. when they are negative or on/after the last row/column.
    """
    if grid.ndim < 2 or not (math.isfinite(gx) and math.isfinite(gy)):
        return None
    x, y = math.floor(gx), math.floor(gy)
    if x < 0 or y < 0 or x >= grid.shape[0] - 1 or y >= grid.shape[1] - 1:
        return None
    return _interpolate(grid, x, y, gx - x, gy - y)


def sample_grid(grid: NDArray[np.float64], gx: float, gy: float) -> Sample:
    """Bilinear sample that treats an out-of-range neighbourhood as a programming error."""
    value = sample_grid_checked(grid, gx, gy)
    if value is None:
        raise FieldBoundsError(f"grid coordinates ({gx}, {gy}) are outside {grid.shape[:2]}")
    return value


class FieldStore:
    """
    Holder of the currently published ``Field``.

    ``publish`` replaces the field in one step under a lock; every query grabs
    the current reference once, so a sample never mixes two fields.
    """

    def __init__(self, initial: Field | None = None):
        self._field = initial if initial is not None else Field.empty()
        self._lock = threading.Lock()
        self.publish_count = 0

    def publish(self, field: Field) -> None:
        """Atomically replace the published field."""
        with self._lock:
            self._field = field
            self.publish_count += 1

    @property
    def current(self) -> Field:
        with self._lock:
            return self._field

    @property
    def region(self) -> Region | None:
        return self.current.region

    @property
    def is_empty(self) -> bool:
        return self.current.is_empty

    def sample(self, point: Sequence[float], layer: str = "distance") -> Sample:
        return self.current.sample(point, layer)

    def sample_checked(self, point: Sequence[float], layer: str = "distance") -> Sample | None:
        return self.current.sample_checked(point, layer)

    def distance_at(self, point: Sequence[float]) -> float | None:
        return self.sample_checked(point, "distance")

    def gradient_at(self, point: Sequence[float]) -> NDArray[np.float64] | None:
        return self.sample_checked(point, "gradient")

    def curl_at(self, point: Sequence[float]) -> float | None:
        return self.sample_checked(point, "curl")

    def __repr__(self) -> str:
        return f"FieldStore({self.current!r}, publishes={self.publish_count})"


def save_field(field: Field, path) -> None:
    """Write a non-empty field and its region to a compressed ``.npz`` archive."""
    if field.is_empty:
        raise ValueError("cannot save an empty field")
    region = field.region
    np.savez_compressed(
        path,
        distance=field.distance,
        gradient=field.gradient,
        curl=field.curl,
        center=np.asarray(region.center),
        half_extents=np.asarray(region.half_extents),
        resolution=np.asarray(region.resolution),
        version=np.asarray(field.version),
        computed_in=np.asarray(field.computed_in),
    )


def load_field(path) -> Field:
    """Read a field written by ``save_field``."""
    with np.load(path) as data:
        region = Region(
            center=tuple(data["center"].tolist()),
            half_extents=tuple(data["half_extents"].tolist()),
            resolution=tuple(int(n) for n in data["resolution"]),
        )
        return Field(
            region=region,
            distance=np.array(data["distance"]),
            gradient=np.array(data["gradient"]),
            curl=np.array(data["curl"]),
            version=int(data["version"]),
            computed_in=float(data["computed_in"]),
        )
