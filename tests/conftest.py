from __future__ import annotations

import threading

import numpy as np
import pytest

from tetherfield.core.geometry import Region
from tetherfield.core.obstacles import ObstacleSnapshot
from tetherfield.core.shapes import Box
from tetherfield.field.kernel import compute_field
from tetherfield.field.store import Field


@pytest.fixture
def unit_region() -> Region:
    """41x41 nodes, one world unit apart, centered on the origin."""
    return Region(center=(0.0, 0.0), half_extents=(20.0, 20.0), resolution=(41, 41))


@pytest.fixture
def flat_face_field(unit_region: Region) -> Field:
    """A very wide slab whose top face (y = -10) crosses the whole region."""
    snapshot = ObstacleSnapshot.of([(Box((1000.0, 10.0)), (0.0, -20.0), 0.0)], version=1)
    return compute_field(unit_region, snapshot)


def constant_field(region: Region, value: float, version: int) -> Field:
    return Field(
        region=region,
        distance=np.full(region.resolution, float(value)),
        gradient=np.zeros(region.resolution + (2,)),
        curl=np.zeros(region.resolution),
        version=version,
    )


class GatedKernel:
    """Kernel stand-in that blocks until released and records what it computed."""

    def __init__(self):
        self.release = threading.Event()
        self.started = threading.Event()
        self.versions: list[int] = []

    def __call__(self, region: Region, snapshot: ObstacleSnapshot) -> Field:
        self.started.set()
        self.release.wait(timeout=10.0)
        self.versions.append(snapshot.version)
        return constant_field(region, snapshot.version, snapshot.version)
