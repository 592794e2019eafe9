"""2D vector operations in JAX.

Vectors are (..., 2) arrays in [x, y] order. Angles are radians measured
anticlockwise from +x. All functions are pure and accept any array-like input.
"""

import jax
import jax.numpy as jnp
from typing import Sequence, Tuple

from . import scalar

Array = jax.Array

VECTOR_LENGTH = 2


def from_array(values: Sequence[float]) -> Array:
    """Build a 2D vector, rejecting inputs of the wrong length."""
    vector = jnp.asarray(values, dtype=jnp.float64)
    if vector.shape != (VECTOR_LENGTH,):
        raise ValueError(
            f"Cannot create V2 from {values}, shape is {vector.shape}. Length should be {VECTOR_LENGTH}"
        )
    return vector


def zero() -> Array:
    return jnp.zeros(VECTOR_LENGTH)


def add(a: Array, b: Array) -> Array:
    return jnp.add(jnp.asarray(a), jnp.asarray(b))


def subtract(base: Array, subtraction: Array) -> Array:
    """Returns base - subtraction."""
    return jnp.subtract(jnp.asarray(base), jnp.asarray(subtraction))


def multiply(base: Array, multiplier: Array) -> Array:
    """Element-wise product."""
    return jnp.multiply(jnp.asarray(base), jnp.asarray(multiplier))


def divide(base: Array, divisor: Array) -> Array:
    """Element-wise quotient."""
    return jnp.divide(jnp.asarray(base), jnp.asarray(divisor))


def scale(base: Array, factor: float) -> Array:
    return jnp.asarray(base) * factor


def divide_scalar(base: Array, divisor: float) -> Array:
    return jnp.asarray(base) / divisor


def dot(a: Array, b: Array) -> Array:
    return jnp.sum(jnp.asarray(a) * jnp.asarray(b), axis=-1)


def tangent(vector: Array) -> Array:
    """Vector rotated a quarter turn anticlockwise."""
    x, y = jnp.moveaxis(jnp.asarray(vector), -1, 0)
    return jnp.stack([-y, x], axis=-1)


def sqr_euclidean_length(vector: Array) -> Array:
    vector = jnp.asarray(vector)
    return jnp.sum(vector * vector, axis=-1)


def euclidean_length(vector: Array) -> Array:
    return jnp.sqrt(sqr_euclidean_length(vector))


def sqr_euclidean_distance(a: Array, b: Array) -> Array:
    return sqr_euclidean_length(subtract(a, b))


def euclidean_distance(a: Array, b: Array) -> Array:
    return euclidean_length(subtract(a, b))


def normalise(vector: Array) -> Array:
    """Unit vector in the direction of *vector*; the zero vector maps to zero."""
    vector = jnp.asarray(vector, dtype=jnp.float64)
    length = euclidean_length(vector)[..., None]
    safe_length = jnp.where(length == 0, 1.0, length)
    return jnp.where(length == 0, 0.0, vector / safe_length)


def max_abs(vector: Array, maximum: float) -> Array:
    """Limit the length of *vector* to *maximum*, keeping its direction."""
    vector = jnp.asarray(vector, dtype=jnp.float64)
    is_clipped = maximum * maximum < sqr_euclidean_length(vector)
    return jnp.where(is_clipped, scale(normalise(vector), maximum), vector)


def lerp(start: Array, end: Array, amount: float) -> Array:
    return scalar.lerp(jnp.asarray(start), jnp.asarray(end), amount)


def clamp(value: Array, minimum: Array, maximum: Array) -> Array:
    """Per-component clamp."""
    return scalar.clamp(jnp.asarray(value), jnp.asarray(minimum), jnp.asarray(maximum))


def average(*vectors: Array) -> Array:
    if not vectors:
        raise ValueError("average needs at least one vector")
    return jnp.mean(jnp.stack([jnp.asarray(v) for v in vectors]), axis=0)


def angle(vector: Array) -> Array:
    """Direction of *vector*, atan2(y, x)."""
    x, y = jnp.moveaxis(jnp.asarray(vector), -1, 0)
    return jnp.arctan2(y, x)


def rotate(vector: Array, angle_radians: Array) -> Array:
    """
    Rotate vector(s) anticlockwise.

    Args:
        vector: (..., 2) vector(s)
        angle_radians: (...) rotation angle(s), broadcast against the vectors

    Returns:
        (..., 2) rotated vector(s)
    """
    x, y = jnp.moveaxis(jnp.asarray(vector), -1, 0)
    cos = jnp.cos(angle_radians)
    sin = jnp.sin(angle_radians)
    return jnp.stack([x * cos - y * sin, x * sin + y * cos], axis=-1)


def from_polar(radius: float, angle_radians: float) -> Array:
    """Vector of length *radius* pointing along *angle_radians*."""
    return rotate(jnp.array([radius, 0.0]), angle_radians)


def to_polar(vector: Array) -> Tuple[Array, Array]:
    """Inverse of from_polar: returns (radius, angle)."""
    return euclidean_length(vector), angle(vector)
