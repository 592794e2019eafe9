"""3D vector operations in JAX.

Vectors are (..., 3) arrays in [x, y, z] order. Rotations are unit
quaternions from the quaternion module; the forward axis of a link is +x.
"""

import jax
import jax.numpy as jnp
from typing import Sequence, Tuple

from . import quaternion, scalar

Array = jax.Array

VECTOR_LENGTH = 3


def from_array(values: Sequence[float]) -> Array:
    """Build a 3D vector, rejecting inputs of the wrong length."""
    vector = jnp.asarray(values, dtype=jnp.float64)
    if vector.shape != (VECTOR_LENGTH,):
        raise ValueError(
            f"Cannot create V3 from {values}, shape is {vector.shape}. Length should be {VECTOR_LENGTH}"
        )
    return vector


# Axis helpers
def up() -> Array:
    return jnp.array([0.0, 1.0, 0.0])


def down() -> Array:
    return jnp.array([0.0, -1.0, 0.0])


def right() -> Array:
    return jnp.array([1.0, 0.0, 0.0])


def left() -> Array:
    return jnp.array([-1.0, 0.0, 0.0])


def forwards() -> Array:
    return jnp.array([0.0, 0.0, 1.0])


def back() -> Array:
    return jnp.array([0.0, 0.0, -1.0])


def zero() -> Array:
    return jnp.zeros(VECTOR_LENGTH)


# Arithmetic
def add(a: Array, b: Array) -> Array:
    return jnp.add(jnp.asarray(a), jnp.asarray(b))


def sum_vectors(vectors: Sequence[Array]) -> Array:
    """Component-wise sum of *vectors*; zero for an empty sequence."""
    if len(vectors) == 0:
        return zero()
    return jnp.sum(jnp.stack([jnp.asarray(v, dtype=jnp.float64) for v in vectors]), axis=0)


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


def sign(vector: Array) -> Array:
    return jnp.sign(jnp.asarray(vector))


def manhattan_length(vector: Array) -> Array:
    """Plain sum of the components (signed, not absolute)."""
    return jnp.sum(jnp.asarray(vector), axis=-1)


def dot_product(a: Array, b: Array) -> Array:
    return manhattan_length(multiply(a, b))


def cross_product(a: Array, b: Array) -> Array:
    return jnp.cross(jnp.asarray(a), jnp.asarray(b))


def sqr_euclidean_length(vector: Array) -> Array:
    return dot_product(vector, vector)


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


def lerp(start: Array, end: Array, amount: float) -> Array:
    return scalar.lerp(jnp.asarray(start), jnp.asarray(end), amount)


def lerp_theta(start: Array, end: Array, amount: float) -> Array:
    """Per-component angular lerp, each component taking the short way round."""
    return scalar.lerp_theta(jnp.asarray(start), jnp.asarray(end), amount)


def clamp(vector: Array, minimum: Array, maximum: Array) -> Array:
    """Per-component clamp."""
    return scalar.clamp(jnp.asarray(vector), jnp.asarray(minimum), jnp.asarray(maximum))


# Rotation and polar form
def rotate(vector: Array, rotation: Array) -> Array:
    """
    Rotate vector(s) by unit quaternion(s).

    Args:
        vector: (..., 3) vector(s)
        rotation: (..., 4) quaternion(s) in (x, y, z, w) format

    Returns:
        (..., 3) rotated vector(s)
    """
    matrix = quaternion.to_matrix(rotation)
    return jnp.einsum('...ij,...j->...i', matrix, jnp.asarray(vector, dtype=jnp.float64))


def from_polar(radius: float, rotation: Array) -> Array:
    """Point the forward axis along *rotation* and scale it to *radius*."""
    forward = jnp.asarray(radius, dtype=jnp.float64)[..., None] * right()
    return rotate(forward, rotation)


def to_polar(vector: Array) -> Tuple[Array, Array]:
    """Inverse of from_polar: returns (radius, rotation)."""
    return euclidean_length(vector), quaternion.from_unit_direction_vector(vector)
