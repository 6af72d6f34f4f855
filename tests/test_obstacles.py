import pytest

from tetherfield.core.obstacles import ObstacleSet, ObstacleSnapshot
from tetherfield.core.shapes import Box, Circle


def test_every_mutation_bumps_version_and_raises_the_change_edge():
    obstacles = ObstacleSet()
    assert obstacles.version == 0 and not obstacles.changed

    a = obstacles.add(Circle(1.0), (1.0, 2.0))
    b = obstacles.add(Box((1.0, 1.0)), name="crate")
    assert (a.id, b.id) == (0, 1)
    assert a.name == "obstacle_0"
    assert obstacles.version == 2

    assert obstacles.consume_changed()
    assert not obstacles.consume_changed()

    obstacles.move(a.id, rotation=0.5)
    assert a.position == (1.0, 2.0) and a.rotation == 0.5
    assert obstacles.consume_changed()

    obstacles.remove(b.id)
    assert len(obstacles) == 1 and obstacles.version == 4

    # Removing twice is not a change
    obstacles.remove(b.id)
    assert obstacles.version == 4


def test_move_unknown_obstacle_raises():
    with pytest.raises(KeyError):
        ObstacleSet().move(3, position=(0.0, 0.0))


def test_snapshot_is_detached_and_ordered():
    obstacles = ObstacleSet()
    first = obstacles.add(Circle(1.0), (0.0, 0.0))
    obstacles.add(Box((2.0, 1.0)), (5.0, 0.0), 0.25)

    snap = obstacles.snapshot()
    obstacles.move(first.id, position=(9.0, 9.0))

    assert snap.version == 2
    assert [type(e.shape) for e in snap] == [Circle, Box]
    assert snap.entries[0].position == (0.0, 0.0)
    assert snap.entries[1].rotation == 0.25
    assert obstacles.snapshot().entries[0].position == (9.0, 9.0)


def test_find_by_name():
    obstacles = ObstacleSet()
    obstacles.add(Circle(1.0), name="anchor")
    assert obstacles.find("anchor").shape == Circle(1.0)
    assert obstacles.find("missing") is None


def test_empty_snapshot():
    snap = ObstacleSnapshot()
    assert snap.is_empty and len(snap) == 0
    assert ObstacleSet().snapshot().is_empty
