# vector3d.py
"""
Pure 3-component vector arithmetic.

Every function accepts either a single vector of shape (3,) or a stack of
vectors of shape (..., 3) and operates along the last axis, so the same
helpers serve single-particle code and the vectorized force loops. No
function mutates its inputs; each returns a new NumPy array (or a float /
float array for the scalar-valued reductions).
"""
import numpy as np
from typing import Union

from constants import DIMENSIONS

ArrayLike = Union[np.ndarray, list, tuple]


def create(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Returns a new float64 vector (x, y, z)."""
    return np.array([x, y, z], dtype=np.float64)


def as_vector(v: ArrayLike) -> np.ndarray:
    """
    Coerces `v` to a float64 array whose last axis has length 3.

    Raises:
        ValueError: If the last axis is not of length 3.
    """
    arr = np.asarray(v, dtype=np.float64)
    if arr.ndim == 0 or arr.shape[-1] != DIMENSIONS:
        raise ValueError(f"Expected a 3-vector, got array of shape {arr.shape}.")
    return arr


def add(a: ArrayLike, b: ArrayLike) -> np.ndarray:
    return np.add(as_vector(a), as_vector(b))


def subtract(a: ArrayLike, b: ArrayLike) -> np.ndarray:
    return np.subtract(as_vector(a), as_vector(b))


def scale(v: ArrayLike, scalar) -> np.ndarray:
    """
    Multiplies vector(s) by a scalar.

    `scalar` may be a float, or an array of shape (...,) matching a stack of
    vectors, in which case each vector is scaled by its own factor.
    """
    s = np.asarray(scalar, dtype=np.float64)
    if s.ndim > 0:
        s = s[..., np.newaxis]
    return as_vector(v) * s


def dot(a: ArrayLike, b: ArrayLike):
    return np.sum(as_vector(a) * as_vector(b), axis=-1)


def magnitude(v: ArrayLike):
    """Euclidean norm along the last axis."""
    return np.sqrt(dot(v, v))


def normalize(v: ArrayLike) -> np.ndarray:
    """
    Returns the unit vector(s) in the direction of `v`.

    Zero-length vectors map to the zero vector, never to NaN.
    """
    arr = as_vector(v)
    mag = np.asarray(magnitude(arr))
    safe = np.where(mag > 0.0, mag, 1.0)
    unit = arr / safe[..., np.newaxis]
    return np.where((mag > 0.0)[..., np.newaxis], unit, 0.0)


def distance_squared(a: ArrayLike, b: ArrayLike):
    """Squared Euclidean distance. Avoids the square root in hot loops."""
    delta = subtract(a, b)
    return dot(delta, delta)


def distance(a: ArrayLike, b: ArrayLike):
    return np.sqrt(distance_squared(a, b))


def lerp(a: ArrayLike, b: ArrayLike, t) -> np.ndarray:
    """Linear interpolation a + (b - a) * t. t=0 gives a, t=1 gives b."""
    va = as_vector(a)
    return va + scale(subtract(b, va), t)
