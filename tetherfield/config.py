"""
Configuration loader — reads YAML scenario files and builds engine objects.

A scenario YAML defines:

* **field** — sampling region (``center``, ``half_extents``, ``resolution``)
* **simulation** — tick cadence and worker pool (``dt``, ``max_ticks``, ``workers``)
* **obstacles** — shapes with a transform; ``spawn_tick`` delays their arrival
* **moves** — scheduled transform changes of named obstacles
* **probes** — world points the CLI samples after a run

Rotations in YAML are in degrees; everything past this module uses radians.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

import yaml

from tetherfield.core.clock import Clock
from tetherfield.core.geometry import Region, Vec2, as_vec2
from tetherfield.core.obstacles import ObstacleSet, ObstacleSnapshot
from tetherfield.core.shapes import SHAPE_TYPES, Box, Capsule, Circle, Polygon, Shape
from tetherfield.field.scheduler import FieldScheduler
from tetherfield.field.store import FieldStore

logger = logging.getLogger(__name__)


def load_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    with open(path) as f:
        config = yaml.safe_load(f)
    return config or {}


def build_region(config: dict[str, Any]) -> Region:
    """Build the sampling Region from the ``field`` section."""
    field_cfg = config.get("field", {})
    default = Region()
    return Region(
        center=as_vec2(field_cfg.get("center", default.center), "field.center"),
        half_extents=as_vec2(field_cfg.get("half_extents", default.half_extents), "field.half_extents"),
        resolution=tuple(int(n) for n in field_cfg.get("resolution", default.resolution)),
    )


def build_shape(shape_cfg: dict[str, Any]) -> Shape:
    """Build a Shape from an obstacle entry (``shape`` key plus its parameters)."""
    kind = str(shape_cfg.get("shape", "box")).lower()
    if kind not in SHAPE_TYPES:
        raise ValueError(f"unknown shape {kind!r}, expected one of {sorted(SHAPE_TYPES)}")

    if kind == "box":
        return Box(half_extents=as_vec2(shape_cfg["half_extents"], "half_extents"))
    if kind == "circle":
        return Circle(radius=float(shape_cfg["radius"]))
    if kind == "capsule":
        return Capsule(half_length=float(shape_cfg["half_length"]), radius=float(shape_cfg["radius"]))
    return Polygon(vertices=tuple(as_vec2(v, "vertex") for v in shape_cfg["vertices"]))


def build_clock(config: dict[str, Any]) -> Clock:
    """Build a Clock from configuration."""
    sim_cfg = config.get("simulation", {})
    return Clock(
        dt=float(sim_cfg.get("dt", 1.0 / 60.0)),
        max_ticks=int(sim_cfg.get("max_ticks", 600)),
    )


def build_scheduler(config: dict[str, Any]) -> FieldScheduler:
    sim_cfg = config.get("simulation", {})
    return FieldScheduler(workers=int(sim_cfg.get("workers", 1)))


def _parse_transform(d: dict[str, Any]) -> tuple[Vec2, float]:
    position = as_vec2(d.get("position", (0.0, 0.0)), "position")
    rotation = math.radians(float(d.get("rotation", 0.0)))
    return position, rotation


def build_obstacles(config: dict[str, Any], clock: Clock) -> ObstacleSet:
    """
    Build the live ObstacleSet.

    Obstacles without a positive ``spawn_tick`` are added right away; the rest,
    and every ``moves`` entry, are scheduled on ``clock``.
    """
    obstacles = ObstacleSet()

    for idx, entry in enumerate(config.get("obstacles", [])):
        shape = build_shape(entry)
        position, rotation = _parse_transform(entry)
        name = str(entry.get("name", f"obstacle_{idx}"))
        spawn_tick = int(entry.get("spawn_tick", 0))

        if spawn_tick <= 0:
            obstacles.add(shape, position, rotation, name=name)
            continue

        def spawn(_s=shape, _p=position, _r=rotation, _n=name) -> None:
            obstacles.add(_s, _p, _r, name=_n)

        clock.schedule(spawn_tick, f"spawn:{name}", spawn)

    for move in config.get("moves", []):
        tick = int(move["tick"])
        name = str(move["name"])
        position = as_vec2(move["position"], "position") if "position" in move else None
        rotation = math.radians(float(move["rotation"])) if "rotation" in move else None

        def apply(_n=name, _p=position, _r=rotation) -> None:
            target = obstacles.find(_n)
            if target is None:
                logger.warning("Move for unknown obstacle %r ignored", _n)
                return
            obstacles.move(target.id, _p, _r)

        clock.schedule(tick, f"move:{name}", apply)

    logger.info(
        "Built %d obstacles (%d scheduled events)", len(obstacles), clock.pending
    )
    return obstacles


def parse_probes(config: dict[str, Any]) -> list[Vec2]:
    """World points to sample after a run."""
    return [as_vec2(p, "probe") for p in config.get("probes", [])]


def build_engine(config: dict[str, Any]):
    """
    Build a complete FieldEngine from an already-loaded config dict.

    Returns:
        FieldEngine ready to run.
    """
    from tetherfield.core.engine import FieldEngine

    region = build_region(config)
    clock = build_clock(config)
    obstacles = build_obstacles(config, clock)
    scheduler = build_scheduler(config)

    return FieldEngine(
        region=region,
        obstacles=obstacles,
        scheduler=scheduler,
        store=FieldStore(),
        clock=clock,
    )


def build_simulation(config_path: str | Path):
    """Build a FieldEngine from a YAML config file."""
    return build_engine(load_config(config_path))


def build_snapshot(config: dict[str, Any]) -> ObstacleSnapshot:
    """Snapshot of every configured obstacle, ignoring spawn ticks and moves."""
    items = []
    for entry in config.get("obstacles", []):
        position, rotation = _parse_transform(entry)
        items.append((build_shape(entry), position, rotation))
    return ObstacleSnapshot.of(items)
