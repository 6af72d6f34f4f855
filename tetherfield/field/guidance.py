"""
Tether guidance — turn field samples into a direction for a swinging body.

Two directions are read from the published field at the body position:

- the *least-change* direction: the gradient rotated 90° clockwise, i.e. the
  tangent of the distance level set (moving along it keeps clearance constant);
- the *away* direction: the negated unit gradient, weighted by ``d² * w`` so
  that it only dominates once the body is far from obstacles.

The tangent has two orientations; the one better aligned with the current
velocity wins, so the body keeps swinging the way it already moves.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from tetherfield.core.geometry import normalize_or_zero
from tetherfield.field.kernel import rotate_clockwise
from tetherfield.field.store import FieldStore


def tether_direction(
    store: FieldStore,
    point: Sequence[float],
    velocity: Sequence[float],
    gradient_weight: float = 0.5,
) -> NDArray[np.float64] | None:
    """
    Unit steering direction at ``point``, or ``None`` outside the field.

    Args:
        store: Store holding the published field.
        point: World position of the body.
        velocity: Current body velocity, used to pick the tangent orientation.
        gradient_weight: Scale of the ``distance²`` term on the away direction.
    """
    field = store.current
    gradient = field.sample_checked(point, "gradient")
    distance = field.sample_checked(point, "distance")
    if gradient is None or distance is None:
        return None

    tangent = normalize_or_zero(rotate_clockwise(gradient))
    away = -normalize_or_zero(gradient)
    pull = away * distance * distance * gradient_weight

    forward = normalize_or_zero(tangent + pull)
    backward = normalize_or_zero(-tangent + pull)

    v = np.asarray(velocity, dtype=np.float64)
    if np.dot(forward, v) >= np.dot(backward, v):
        return forward
    return backward
