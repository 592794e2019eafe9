"""Scalar helpers shared by the vector and quaternion modules."""

import jax
import jax.numpy as jnp
from typing import Union

Array = jax.Array
Scalar = Union[float, Array]


def clamp(value: Scalar, minimum: Scalar, maximum: Scalar) -> Array:
    """Clamp *value* into [minimum, maximum]. Infinite bounds leave it untouched."""
    return jnp.minimum(jnp.maximum(minimum, value), maximum)


def lerp(start: Scalar, end: Scalar, amount: Scalar) -> Array:
    """Linear interpolation with *amount* clamped to [0, 1]."""
    amount = clamp(amount, 0.0, 1.0)
    return start + (end - start) * amount


def lerp_theta(start: Scalar, end: Scalar, amount: Scalar, circle_at: float = 2 * jnp.pi) -> Array:
    """
    Interpolate between two angles the short way round the circle.

    Args:
        start: angle to interpolate from (radians)
        end: angle to interpolate towards (radians)
        amount: interpolation fraction, clamped to [0, 1]
        circle_at: period of the angle, 2π for radians

    Returns:
        The interpolated angle, expressed relative to *start* (not wrapped)
    """
    distance = end - start
    unlooped = clamp(distance - jnp.floor(distance / circle_at) * circle_at, 0.0, circle_at)
    offset = jnp.where(unlooped > jnp.pi, unlooped - 2 * jnp.pi, unlooped)
    return lerp(start, start + offset, amount)


def values_are_within_distance(value_a: Scalar, value_b: Scalar, delta: Scalar) -> bool:
    highest = max(float(value_a), float(value_b))
    lowest = min(float(value_a), float(value_b))
    return highest - float(delta) < lowest


def rotations_are_within_angle(rotation_a: Scalar, rotation_b: Scalar, angle: Scalar) -> bool:
    """Compare two angles after removing whole turns (sign is preserved, as with fmod)."""
    normalised_a = jnp.fmod(rotation_a, 2 * jnp.pi)
    normalised_b = jnp.fmod(rotation_b, 2 * jnp.pi)
    return values_are_within_distance(normalised_a, normalised_b, angle)
