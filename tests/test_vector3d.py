import numpy as np
import pytest

import vector3d


def test_basic_arithmetic():
    """add, subtract, scale and dot on single vectors."""
    a = vector3d.create(1, 2, 3)
    b = vector3d.create(4, 5, 6)
    assert vector3d.add(a, b).tolist() == [5.0, 7.0, 9.0]
    assert vector3d.subtract(b, a).tolist() == [3.0, 3.0, 3.0]
    assert vector3d.scale(a, 2).tolist() == [2.0, 4.0, 6.0]
    assert vector3d.dot(a, b) == 32.0


def test_magnitude_and_normalize():
    """normalize returns a unit vector along the input."""
    v = vector3d.create(3, 0, 4)
    assert vector3d.magnitude(v) == 5.0
    np.testing.assert_allclose(vector3d.normalize(v), [0.6, 0.0, 0.8])


def test_normalize_zero_vector_is_zero():
    """The zero vector normalizes to the zero vector, without NaN."""
    result = vector3d.normalize(vector3d.create())
    assert result.tolist() == [0.0, 0.0, 0.0]
    assert not np.any(np.isnan(result))


def test_normalize_batch_with_zero_row():
    """Stacks are normalized row-wise; zero rows stay zero."""
    stack = np.array([[0.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
    result = vector3d.normalize(stack)
    assert result.tolist() == [[0.0, 0.0, 0.0], [0.0, 1.0, 0.0]]


def test_distance_symmetry_and_identity():
    """distance(a, b) == distance(b, a) and distance(a, a) == 0."""
    a = vector3d.create(1.5, -2.0, 7.0)
    b = vector3d.create(-3.0, 4.0, 0.25)
    assert vector3d.distance(a, b) == vector3d.distance(b, a)
    assert vector3d.distance(a, a) == 0.0
    assert vector3d.distance_squared(a, b) == pytest.approx(vector3d.distance(a, b) ** 2)


def test_lerp_endpoints_and_midpoint():
    a = vector3d.create(0, 0, 0)
    b = vector3d.create(10, -10, 4)
    assert vector3d.lerp(a, b, 0.0).tolist() == a.tolist()
    assert vector3d.lerp(a, b, 1.0).tolist() == b.tolist()
    assert vector3d.lerp(a, b, 0.5).tolist() == [5.0, -5.0, 2.0]


def test_functions_do_not_mutate_inputs():
    a = np.array([1.0, 2.0, 3.0])
    b = np.array([0.0, 0.0, 2.0])
    vector3d.add(a, b)
    vector3d.scale(a, 3)
    vector3d.normalize(a)
    vector3d.lerp(a, b, 0.3)
    assert a.tolist() == [1.0, 2.0, 3.0]
    assert b.tolist() == [0.0, 0.0, 2.0]


def test_rejects_wrong_dimension():
    with pytest.raises(ValueError):
        vector3d.magnitude([1.0, 2.0])
