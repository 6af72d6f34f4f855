import pytest

from tetherfield.core.clock import Clock
from tetherfield.core.engine import FieldEngine
from tetherfield.core.geometry import Region
from tetherfield.core.obstacles import ObstacleSet
from tetherfield.core.shapes import Box, Circle
from tetherfield.field.scheduler import FieldScheduler
from tests.conftest import GatedKernel


@pytest.fixture
def obstacles():
    s = ObstacleSet()
    s.add(Circle(3.0), (0.0, 0.0), name="post")
    return s


def make_engine(region, obstacles, kernel=None, clock=None):
    scheduler = FieldScheduler(kernel=kernel) if kernel is not None else FieldScheduler()
    return FieldEngine(region=region, obstacles=obstacles, scheduler=scheduler, clock=clock)


def test_first_tick_triggers_and_the_store_stays_empty_until_publish(unit_region, obstacles):
    gate = GatedKernel()
    engine = make_engine(unit_region, obstacles, kernel=gate)
    try:
        engine.initialize()
        state = engine.step()
        assert state.triggered and state.computing and not state.published
        assert engine.store.is_empty
        assert engine.store.sample_checked((0.0, 0.0)) is None

        # No change since: nothing new is triggered
        assert not engine.step().triggered
    finally:
        gate.release.set()
        engine.close()


def test_changes_during_computation_are_coalesced_and_published_in_order(unit_region, obstacles):
    gate = GatedKernel()
    engine = make_engine(unit_region, obstacles, kernel=gate)
    published = []
    engine.on_publish(lambda field: published.append(field.version))
    try:
        engine.initialize()
        engine.step()  # tick 1: computes version 1
        assert gate.started.wait(5.0)

        engine.obstacles.add(Box((1.0, 1.0)), (5.0, 5.0))
        state = engine.step()  # tick 2: version 2 deferred
        assert state.triggered and not state.published
        assert engine.scheduler.coalesced == 1

        gate.release.set()
        engine.scheduler.wait(timeout=5.0)
        state = engine.step()  # tick 3: version 1 lands, version 2 launches
        assert state.published and state.field_version == 1 and state.computing
        assert state.obstacle_version == 2

        engine.scheduler.wait(timeout=5.0)
        state = engine.step()  # tick 4: version 2 lands
        assert state.published and state.field_version == 2
        assert not state.computing
    finally:
        engine.close()

    assert published == [1, 2]
    assert gate.versions == [1, 2]
    assert engine.settled
    assert engine.metrics.latencies == [2, 1]
    assert engine.metrics.max_latency() == 2
    assert engine.metrics.stale_ticks() == 3


def test_run_settles_on_the_latest_obstacles(unit_region, obstacles):
    clock = Clock(dt=0.001, max_ticks=5000)
    engine = make_engine(unit_region, obstacles, clock=clock)
    post = obstacles.find("post")
    clock.schedule(5, "move:post", lambda: obstacles.move(post.id, position=(8.0, 0.0)))

    ticks = []
    engine.on_tick(lambda state: ticks.append(state.tick))
    try:
        history = engine.run(show_progress=False, realtime=True)
    finally:
        engine.close()

    assert engine.settled
    assert not clock.is_done
    assert ticks == [s.tick for s in history]
    assert history[-1].field_version == obstacles.version == 2
    # Circle of radius 3 now centered at (8, 0)
    assert engine.store.distance_at((8.0, 10.0)) == pytest.approx(7.0, abs=0.05)

    summary = engine.summary()
    assert summary["fields_published"] == engine.metrics.publishes() >= 1
    assert summary["field_version"] == summary["obstacle_version"] == 2
    assert summary["obstacles"] == 1
    assert summary["total_ticks"] == clock.tick


def test_run_stops_at_max_ticks_without_waiting(unit_region, obstacles):
    gate = GatedKernel()
    engine = make_engine(unit_region, obstacles, kernel=gate, clock=Clock(max_ticks=10))
    try:
        history = engine.run(show_progress=False)
    finally:
        gate.release.set()
        engine.close()

    assert len(history) == 10
    assert not any(s.published for s in history)
    assert engine.store.is_empty


def test_set_region_recomputes_over_the_new_region(unit_region, obstacles):
    engine = make_engine(unit_region, obstacles, clock=Clock(dt=0.001, max_ticks=5000))
    try:
        engine.run(show_progress=False, realtime=True)
        smaller = Region(center=(5.0, 5.0), half_extents=(5.0, 5.0), resolution=(11, 11))
        engine.set_region(smaller)
        assert not engine.settled
        engine.run(show_progress=False, realtime=True)
    finally:
        engine.close()

    assert engine.store.region == smaller
    assert engine.store.sample_checked((-10.0, -10.0)) is None
    assert engine.store.sample((5.0, 0.0)) == pytest.approx(2.0, abs=0.05)


def test_empty_obstacle_set_publishes_a_sentinel_field(unit_region):
    from tetherfield.field.kernel import NO_OBSTACLE_DISTANCE

    engine = make_engine(unit_region, ObstacleSet(), clock=Clock(dt=0.001, max_ticks=5000))
    try:
        engine.run(show_progress=False, realtime=True)
    finally:
        engine.close()

    assert engine.store.sample((1.0, 1.0)) == NO_OBSTACLE_DISTANCE
    assert engine.store.curl_at((1.0, 1.0)) == 0.0
