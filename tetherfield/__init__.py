"""
TETHERFIELD — obstacle distance, gradient and curl fields for 2D tether steering.
"""

from tetherfield.core.geometry import Region
from tetherfield.core.obstacles import ObstacleSet, ObstacleSnapshot
from tetherfield.core.shapes import Box, Capsule, Circle, Polygon, Shape
from tetherfield.field.kernel import compute_field
from tetherfield.field.scheduler import FieldScheduler, PendingComputation
from tetherfield.field.store import Field, FieldBoundsError, FieldStore

__all__ = [
    "Region",
    "ObstacleSet",
    "ObstacleSnapshot",
    "Shape",
    "Box",
    "Circle",
    "Capsule",
    "Polygon",
    "compute_field",
    "FieldScheduler",
    "PendingComputation",
    "Field",
    "FieldBoundsError",
    "FieldStore",
]
