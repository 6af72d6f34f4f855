import numpy as np
import pytest

from tetherfield.field.guidance import tether_direction
from tetherfield.field.store import FieldStore


@pytest.fixture
def store(flat_face_field):
    # Flat face at y = -10: distance is y + 10, gradient points straight up
    return FieldStore(flat_face_field)


def test_close_to_obstacle_follows_the_face(store):
    right = tether_direction(store, (0.0, 0.0), velocity=(3.0, 0.0), gradient_weight=0.0)
    left = tether_direction(store, (0.0, 0.0), velocity=(-3.0, 0.5), gradient_weight=0.0)

    np.testing.assert_allclose(right, [1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(left, [-1.0, 0.0], atol=1e-12)


def test_distance_term_pulls_back_toward_the_obstacle(store):
    direction = tether_direction(store, (0.0, 0.0), velocity=(1.0, 0.0), gradient_weight=0.001)

    # d = 10, so the pull is 0.1 against the gradient
    expected = np.array([1.0, -0.1]) / np.hypot(1.0, 0.1)
    np.testing.assert_allclose(direction, expected, atol=1e-9)
    assert np.linalg.norm(direction) == pytest.approx(1.0)


def test_far_from_obstacle_the_pull_dominates(store):
    direction = tether_direction(store, (0.0, 15.0), velocity=(1.0, 0.0))
    assert direction[1] < -0.99


def test_stationary_body_keeps_the_clockwise_tangent(store):
    direction = tether_direction(store, (0.0, 0.0), velocity=(0.0, 0.0), gradient_weight=0.0)
    np.testing.assert_allclose(direction, [1.0, 0.0], atol=1e-12)


def test_no_direction_outside_the_field(store):
    assert tether_direction(store, (500.0, 0.0), velocity=(1.0, 0.0)) is None
    assert tether_direction(FieldStore(), (0.0, 0.0), velocity=(1.0, 0.0)) is None
