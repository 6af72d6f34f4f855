"""
Field compute kernel — obstacle snapshot + region → distance, gradient, curl.

Three passes over the grid:

1. Distance: signed distance from every node to the nearest obstacle surface
   (minimum over obstacles, negative inside).
2. Gradient: raw 3x3 Sobel stencil along each axis divided by the node
   spacing, i.e. ``SOBEL_WEIGHT`` times the spatial derivative. Only nodes with
   a full 1-cell neighbourhood get a value.
3. Curl: the gradient is rotated 90° clockwise and normalized (the level-set
   tangent), then ``d(ry)/dx - d(rx)/dy`` is taken with the raw stencil in
   grid units. Only nodes with a 2-cell margin get a value.

Everything here is a pure function of its inputs, so it can run on any worker.
"""

from __future__ import annotations

import logging
import time

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage

from tetherfield.core.geometry import Region, Vec2, normalize_or_zero
from tetherfield.core.obstacles import ObstacleSnapshot
from tetherfield.field.store import Field

logger = logging.getLogger(__name__)

# Distance reported everywhere when there are no obstacles. Finite, so the
# derivative passes see a constant field and produce exact zeros.
NO_OBSTACLE_DISTANCE = 1.0e30

# Sum of the Sobel smoothing weights (1, 2, 1) times the central difference span (2).
# The published gradient is ``SOBEL_WEIGHT`` times the true derivative.
SOBEL_WEIGHT = 8.0

# Columns evaluated per batch in the distance pass (bounds temporary memory).
CHUNK_COLUMNS = 256


def distance_grid(region: Region, snapshot: ObstacleSnapshot) -> NDArray[np.float64]:
    """Minimum signed distance to any obstacle at every node, indexed ``[x, y]``."""
    if snapshot.is_empty:
        return np.full(region.resolution, NO_OBSTACLE_DISTANCE, dtype=np.float64)

    width, height = region.resolution
    ox, oy = region.origin
    sx, sy = region.step
    ys = oy + sy * np.arange(height, dtype=np.float64)

    distance = np.empty((width, height), dtype=np.float64)
    for start in range(0, width, CHUNK_COLUMNS):
        stop = min(start + CHUNK_COLUMNS, width)
        xs = ox + sx * np.arange(start, stop, dtype=np.float64)
        gx, gy = np.meshgrid(xs, ys, indexing="ij")
        points = np.stack((gx, gy), axis=-1)

        nearest = np.full((stop - start, height), np.inf)
        for entry in snapshot:
            np.minimum(nearest, entry.signed_distance(points), out=nearest)
        distance[start:stop] = nearest
    return distance


def _sobel(values: NDArray[np.float64], axis: int) -> NDArray[np.float64]:
    """Raw 3x3 Sobel response along ``axis`` (smoothing along the other one)."""
    return ndimage.sobel(values, axis=axis, mode="nearest")


def gradient_grid(distance: NDArray[np.float64], step: Vec2) -> NDArray[np.float64]:
    """Sobel gradient of ``distance`` divided by ``step``; the outermost ring stays zero."""
    width, height = distance.shape
    gradient = np.zeros((width, height, 2), dtype=np.float64)
    if width < 3 or height < 3:
        return gradient

    inner = (slice(1, -1), slice(1, -1))
    gradient[inner + (0,)] = (_sobel(distance, 0) / step[0])[inner]
    gradient[inner + (1,)] = (_sobel(distance, 1) / step[1])[inner]
    return gradient


def rotate_clockwise(vectors: NDArray[np.float64]) -> NDArray[np.float64]:
    """Rotate (..., 2) vectors by -90°: ``(x, y) -> (y, -x)``."""
    return np.stack((vectors[..., 1], -vectors[..., 0]), axis=-1)


def curl_grid(gradient: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Curl of the clockwise-rotated, unit-length gradient field.

    The Sobel stencil is applied to the unit vectors in grid units, so the
    result is ``SOBEL_WEIGHT * step`` times minus the curvature of the level
    sets: zero along straight obstacle faces, about ``-8 * step / r`` around a
    round obstacle. Zero-length gradients rotate to zero rather than to an
    undefined direction. The two outermost rings of nodes stay zero.
    """
    width, height = gradient.shape[:2]
    curl = np.zeros((width, height), dtype=np.float64)
    if width < 5 or height < 5:
        return curl

    tangent = normalize_or_zero(rotate_clockwise(gradient))
    dry_dx = _sobel(tangent[..., 1], 0)
    drx_dy = _sobel(tangent[..., 0], 1)

    inner = (slice(2, -2), slice(2, -2))
    curl[inner] = (dry_dx - drx_dy)[inner]
    return curl


def compute_field(region: Region, snapshot: ObstacleSnapshot) -> Field:
    """
    Compute a complete ``Field`` for ``region`` from one obstacle snapshot.

    Args:
        region: Sampling region (validated on construction).
        snapshot: Immutable obstacle list; may be empty.

    Returns:
        A new read-only ``Field`` tagged with the region and snapshot version.
    """
    started = time.perf_counter()

    distance = distance_grid(region, snapshot)
    gradient = gradient_grid(distance, region.step)
    curl = curl_grid(gradient)

    elapsed = time.perf_counter() - started
    logger.debug(
        "Computed %dx%d field for %d obstacles (version %d) in %.3fs",
        region.width,
        region.height,
        len(snapshot),
        snapshot.version,
        elapsed,
    )
    return Field(
        region=region,
        distance=distance,
        gradient=gradient,
        curl=curl,
        version=snapshot.version,
        computed_in=elapsed,
    )
