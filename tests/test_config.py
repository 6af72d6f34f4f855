import logging
import math
from pathlib import Path

import pytest

from tetherfield.config import (
    build_clock,
    build_engine,
    build_obstacles,
    build_region,
    build_shape,
    build_snapshot,
    load_config,
    parse_probes,
)
from tetherfield.core.clock import Clock
from tetherfield.core.geometry import Region
from tetherfield.core.shapes import Box, Capsule, Circle, Polygon

GRAPPLE = Path(__file__).resolve().parent.parent / "scenarios" / "grapple.yaml"


@pytest.fixture
def grapple() -> dict:
    return load_config(GRAPPLE)


def test_grapple_scenario_builds_an_engine(grapple):
    engine = build_engine(grapple)
    try:
        assert engine.region.resolution == (400, 200)
        assert engine.region.half_extents == (800.0, 400.0)
        assert [o.name for o in engine.obstacles] == ["anchor", "ground"]
        # boulder, platform, ramp spawns plus one move
        assert engine.clock.pending == 4
        assert engine.clock.dt == pytest.approx(0.016)
        assert engine.clock.max_ticks == 600
    finally:
        engine.close()


def test_scheduled_spawns_and_moves_apply_on_their_ticks(grapple):
    clock = build_clock(grapple)
    obstacles = build_obstacles(grapple, clock)

    for _ in range(31):
        clock.advance()
    assert len(obstacles) == 4
    platform = obstacles.find("platform")
    assert platform.rotation == pytest.approx(math.radians(15.0))

    for _ in range(120 - 31):
        clock.advance()
    assert len(obstacles) == 5
    assert platform.position == (-450.0, 180.0)
    assert platform.rotation == pytest.approx(math.radians(30.0))
    assert clock.pending == 0


def test_snapshot_includes_every_configured_obstacle(grapple):
    snap = build_snapshot(grapple)
    kinds = [type(entry.shape) for entry in snap]
    assert kinds == [Box, Box, Circle, Capsule, Polygon]
    assert snap.entries[0].position == (150.0, 100.0)


def test_missing_sections_fall_back_to_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = load_config(path)

    assert config == {}
    assert build_region(config) == Region()
    clock = build_clock(config)
    assert clock.dt == pytest.approx(1.0 / 60.0) and clock.max_ticks == 600
    assert parse_probes(config) == []
    assert len(build_snapshot(config)) == 0


def test_build_shape_variants():
    assert build_shape({"shape": "circle", "radius": 2}) == Circle(2.0)
    assert build_shape({"half_extents": [1, 2]}) == Box((1.0, 2.0))
    assert build_shape({"shape": "Capsule", "half_length": 3, "radius": 1}) == Capsule(3.0, 1.0)
    polygon = build_shape({"shape": "polygon", "vertices": [[0, 0], [1, 0], [0, 1]]})
    assert polygon.vertices == ((0.0, 0.0), (1.0, 0.0), (0.0, 1.0))


def test_build_shape_errors():
    with pytest.raises(ValueError, match="unknown shape"):
        build_shape({"shape": "torus"})
    with pytest.raises(KeyError):
        build_shape({"shape": "circle"})
    with pytest.raises(ValueError):
        build_shape({"shape": "box", "half_extents": [1, 2, 3]})


def test_invalid_region_is_rejected():
    with pytest.raises(ValueError):
        build_region({"field": {"resolution": [2, 100]}})


def test_move_for_unknown_obstacle_is_ignored_with_warning(caplog):
    clock = Clock()
    config = {"moves": [{"tick": 1, "name": "ghost", "position": [1, 1]}]}
    obstacles = build_obstacles(config, clock)

    with caplog.at_level(logging.WARNING, logger="tetherfield.config"):
        clock.advance()

    assert "ghost" in caplog.text
    assert obstacles.version == 0


def test_probes(grapple):
    assert parse_probes(grapple) == [(0.0, 50.0), (-200.0, -20.0), (600.0, 300.0), (900.0, 0.0)]
