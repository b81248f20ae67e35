import math

import numpy as np
import pytest

from beamsweep.twist import (
    index_correction,
    index_shift,
    measure_twist,
    resolve_twist,
    ring_winding,
    rotate_ring,
)

Z = (0.0, 0.0, 1.0)


def _ring(n, z=0.0, phase=0.0, radius=1.0):
    angles = phase + 2.0 * math.pi * np.arange(n) / n
    return np.column_stack([radius * np.cos(angles), radius * np.sin(angles), np.full(n, z)])


def test_measure_twist_aligned_is_zero():
    assert measure_twist(_ring(6), (0, 0, 0), _ring(6, z=1), (0, 0, 1), Z) == 0.0


def test_measure_twist_sign_follows_tangent():
    prev = np.array([[1.0, 0.0, 0.0]])
    curr = np.array([[0.0, 1.0, 1.0]])
    angle = measure_twist(prev, (0, 0, 0), curr, (0, 0, 1), Z)
    assert math.isclose(angle, math.pi / 2)
    flipped = measure_twist(prev, (0, 0, 0), curr, (0, 0, 1), (0, 0, -1))
    assert math.isclose(flipped, -math.pi / 2)


def test_measure_twist_degenerate_reference():
    prev = np.zeros((3, 3))
    assert measure_twist(prev, (0, 0, 0), _ring(3), (0, 0, 0), Z) == 0.0


def test_ring_winding():
    assert ring_winding(_ring(5), (0, 0, 0), Z) == 1
    assert ring_winding(_ring(5)[::-1], (0, 0, 0), Z) == -1


def test_index_shift():
    step = 2.0 * math.pi / 8
    assert index_shift(0.0, 8) == 0
    assert index_shift(0.4 * step, 8) == 0
    assert index_shift(step, 8, winding=1) == 7
    assert index_shift(step, 8, winding=-1) == 1
    assert index_shift(-2 * step, 8, winding=-1) == 6
    with pytest.raises(ValueError):
        index_shift(1.0, 0)


def test_index_correction_is_signed():
    step = 2.0 * math.pi / 8
    assert index_correction(step, 8) == -1
    assert index_correction(-step, 8) == 1
    assert index_correction(step, 8, winding=-1) == 1
    assert index_correction(11 * step, 8) == -11
    assert index_shift(11 * step, 8) == 5


def test_rotate_ring():
    ring = np.arange(4)
    assert rotate_ring(ring, 1).tolist() == [1, 2, 3, 0]
    assert rotate_ring(ring, -1).tolist() == [3, 0, 1, 2]
    assert rotate_ring(ring, 4).tolist() == [0, 1, 2, 3]


def test_resolve_twist_realigns_index_zero():
    n = 8
    prev = _ring(n)
    curr = _ring(n, z=1.0, phase=2.0 * math.pi / n)
    result = resolve_twist(prev, (0, 0, 0), curr, (0, 0, 1), Z)
    assert result.shift == n - 1
    assert result.correction == -1
    assert math.isclose(result.delta, 2.0 * math.pi / n)
    assert np.allclose(result.ring[0][:2], prev[0][:2])


def test_resolve_twist_small_drift_accumulates():
    n = 8
    step = 2.0 * math.pi / n
    centers = [(0, 0, float(i)) for i in range(4)]
    rings = [_ring(n, z=c[2], phase=0.4 * step * i) for i, c in enumerate(centers)]

    accumulated = 0.0
    shifts = []
    for i in range(1, len(rings)):
        result = resolve_twist(rings[i - 1], centers[i - 1], rings[i], centers[i], Z, accumulated)
        accumulated = result.accumulated
        shifts.append(result.shift)

    # each step drifts 0.4 of a vertex spacing: nothing to fix alone, but the
    # running total crosses half a spacing at the second step
    assert shifts == [0, n - 1, n - 1]
    assert math.isclose(accumulated, 1.2 * step)


def test_resolve_twist_idempotent_for_aligned_sequence():
    accumulated = 0.0
    for i in range(1, 10):
        result = resolve_twist(_ring(5, z=i - 1), (0, 0, i - 1), _ring(5, z=i), (0, 0, i), Z, accumulated)
        accumulated = result.accumulated
        assert result.shift == 0
    assert accumulated == 0.0


def test_resolve_twist_rejects_cardinality_mismatch():
    with pytest.raises(ValueError):
        resolve_twist(_ring(4), (0, 0, 0), _ring(5, z=1), (0, 0, 1), Z)
