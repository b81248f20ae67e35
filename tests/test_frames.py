import math
import random

import numpy as np
import pytest

from beamsweep.frames import (
    compute_frame,
    is_orthonormal,
    normalize,
    path_tangent,
    rotate_about_axis,
)


def test_straight_path_along_z():
    frame = compute_frame((0, 0, 10), (0, 0, 0))
    assert np.allclose(frame.tangent, (0, 0, 1))
    assert np.allclose(frame.normal, (0, 1, 0))
    assert np.allclose(frame.binormal, (-1, 0, 0))
    assert is_orthonormal(frame)


def test_first_slice_uses_default_tangent():
    frame = compute_frame((5, 5, 5))
    assert np.allclose(frame.tangent, (0, 0, 1))

    frame = compute_frame((5, 5, 5), default_tangent=(2, 0, 0))
    assert np.allclose(frame.tangent, (1, 0, 0))


def test_vertical_path_switches_helper_axis():
    frame = compute_frame((0, 10, 0), (0, 0, 0))
    assert np.allclose(frame.tangent, (0, 1, 0))
    assert np.allclose(frame.normal, (1, 0, 0))
    assert np.allclose(frame.binormal, (0, 0, -1))
    assert is_orthonormal(frame)


def test_coincident_centers_reuse_last_tangent():
    last = normalize((1, 0, 1))
    frame = compute_frame((3, 0, 3), (3, 0, 3), last_tangent=last)
    assert np.allclose(frame.tangent, last)

    tangent = path_tangent((1, 1, 1), (1, 1, 1 - 1e-7), last_tangent=(0, 1, 0))
    assert np.allclose(tangent, (0, 1, 0))


def test_roll_rotates_normal_and_binormal_about_tangent():
    frame = compute_frame((0, 0, 1), (0, 0, 0), roll=math.pi / 2)
    assert np.allclose(frame.tangent, (0, 0, 1))
    assert np.allclose(frame.normal, (-1, 0, 0))
    assert np.allclose(frame.binormal, (0, -1, 0))
    assert is_orthonormal(frame)


def test_tiny_roll_is_ignored():
    plain = compute_frame((0, 0, 1), (0, 0, 0))
    rolled = compute_frame((0, 0, 1), (0, 0, 0), roll=5e-7)
    assert np.array_equal(plain.normal, rolled.normal)
    assert np.array_equal(plain.binormal, rolled.binormal)


def test_rotate_about_axis_right_hand_rule():
    v = rotate_about_axis((1, 0, 0), (0, 0, 1), math.pi / 2)
    assert np.allclose(v, (0, 1, 0))


def test_normalize_rejects_zero_vector():
    with pytest.raises(ValueError):
        normalize((0, 0, 0))


def test_project_is_right_handed():
    frame = compute_frame((0, 0, 1), (0, 0, 0))
    ring = frame.project([(1, 0), (0, 1)], (0, 0, 1))
    assert np.allclose(ring[0], (1, 0, 1))
    assert np.allclose(ring[1], (0, 1, 1))
    x_axis = ring[0] - (0, 0, 1)
    y_axis = ring[1] - (0, 0, 1)
    assert np.allclose(np.cross(x_axis, y_axis), frame.tangent)


@pytest.mark.slow
@pytest.mark.parametrize("seed", range(5))
def test_random_frames_are_orthonormal(seed):
    rng = random.Random(seed)
    last = None
    prev = None
    for _ in range(200):
        center = tuple(rng.uniform(-100, 100) for _ in range(3))
        roll = rng.uniform(-math.pi, math.pi)
        frame = compute_frame(center, prev, roll, last_tangent=last)
        for vec in (frame.tangent, frame.normal, frame.binormal):
            assert math.isclose(float(np.linalg.norm(vec)), 1.0, rel_tol=1e-9)
        assert is_orthonormal(frame)
        last = frame.tangent
        prev = center


def test_near_vertical_random_tangents_stay_valid():
    rng = random.Random(42)
    for _ in range(200):
        dx, dz = rng.uniform(-0.05, 0.05), rng.uniform(-0.05, 0.05)
        frame = compute_frame((dx, 1.0, dz), (0, 0, 0), rng.uniform(-3, 3))
        assert is_orthonormal(frame)
