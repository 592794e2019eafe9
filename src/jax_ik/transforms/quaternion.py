"""Unit quaternion operations in JAX.

Quaternions are stored as (..., 4) arrays in (x, y, z, w) order: vector part
first, scalar part last. The identity rotation is [0, 0, 0, 1]. Composition
follows the Hamilton product, so ``multiply(parent, child)`` applies *child*
first and then *parent*.
"""

import jax
import jax.numpy as jnp
import numpy as np
from typing import Sequence

from . import scalar

Array = jax.Array

# Tolerance on the dot product of two unit vectors for treating them as
# parallel or antiparallel in rotation_from_to
PARALLEL_TOLERANCE = 1e-12

# Above this |cos| slerp falls back to normalised linear interpolation
SLERP_LINEAR_THRESHOLD = 1.0 - 1e-9

_UP = (0.0, 1.0, 0.0)
_RIGHT = (1.0, 0.0, 0.0)


def identity() -> Array:
    """The zero rotation [0, 0, 0, 1]."""
    return jnp.array([0.0, 0.0, 0.0, 1.0])


zero_rotation = identity


def multiply(a: Array, b: Array) -> Array:
    """
    Hamilton product a * b.

    Args:
        a: (..., 4) quaternion(s)
        b: (..., 4) quaternion(s)

    Returns:
        (..., 4) product; rotating by the result applies b, then a
    """
    ax, ay, az, aw = jnp.moveaxis(jnp.asarray(a), -1, 0)
    bx, by, bz, bw = jnp.moveaxis(jnp.asarray(b), -1, 0)

    return jnp.stack([
        ax * bw + aw * bx + ay * bz - az * by,
        ay * bw + aw * by + az * bx - ax * bz,
        az * bw + aw * bz + ax * by - ay * bx,
        aw * bw - ax * bx - ay * by - az * bz,
    ], axis=-1)


def conjugate(quaternion: Array) -> Array:
    return jnp.asarray(quaternion) * jnp.array([-1.0, -1.0, -1.0, 1.0])


def magnitude(quaternion: Array) -> Array:
    return jnp.linalg.norm(jnp.asarray(quaternion, dtype=jnp.float64), axis=-1)


def inverse(quaternion: Array) -> Array:
    """Multiplicative inverse; equal to the conjugate for unit quaternions."""
    sqr_magnitude = magnitude(quaternion)[..., None] ** 2
    return conjugate(quaternion) / sqr_magnitude


def normalize(quaternion: Array) -> Array:
    """Scale to unit length. The zero quaternion maps to the identity."""
    quaternion = jnp.asarray(quaternion, dtype=jnp.float64)
    length = magnitude(quaternion)[..., None]
    safe_length = jnp.where(length == 0, 1.0, length)
    return jnp.where(length == 0, identity(), quaternion / safe_length)


def from_euler_angles(angles: Array) -> Array:
    """
    Build a unit quaternion from XYZ Euler angles.

    Args:
        angles: (..., 3) rotations about x, y and z (radians)

    Returns:
        (..., 4) unit quaternion(s)
    """
    x, y, z = jnp.moveaxis(jnp.asarray(angles, dtype=jnp.float64), -1, 0)

    c1, c2, c3 = jnp.cos(x / 2), jnp.cos(y / 2), jnp.cos(z / 2)
    s1, s2, s3 = jnp.sin(x / 2), jnp.sin(y / 2), jnp.sin(z / 2)

    return jnp.stack([
        s1 * c2 * c3 + c1 * s2 * s3,
        c1 * s2 * c3 - s1 * c2 * s3,
        c1 * c2 * s3 + s1 * s2 * c3,
        c1 * c2 * c3 - s1 * s2 * s3,
    ], axis=-1)


def from_axis_angle(axis: Array, angle: float) -> Array:
    """Rotation of *angle* radians about the unit vector *axis*."""
    half_angle = jnp.asarray(angle) / 2
    vector = jnp.asarray(axis, dtype=jnp.float64) * jnp.sin(half_angle)[..., None]
    return jnp.concatenate([vector, jnp.cos(half_angle)[..., None]], axis=-1)


def rotation_from_to(a: Array, b: Array) -> Array:
    """
    Shortest-arc rotation taking direction *a* onto direction *b*.

    Parallel inputs give the identity. Antiparallel inputs have no unique
    axis, so a half turn about an axis perpendicular to *a* is returned,
    preferring up x a and falling back to right x a when *a* lies along up.

    Args:
        a: (3,) source direction, need not be unit length
        b: (3,) destination direction, need not be unit length

    Returns:
        (4,) unit quaternion
    """
    a_normalised = _normalise3(a)
    b_normalised = _normalise3(b)
    dot = float(jnp.dot(a_normalised, b_normalised))

    if dot >= 1.0 - PARALLEL_TOLERANCE:
        return identity()

    if dot < -1.0 + PARALLEL_TOLERANCE:
        axis = jnp.cross(jnp.array(_UP), a_normalised)
        if float(jnp.dot(axis, axis)) < PARALLEL_TOLERANCE:
            axis = jnp.cross(jnp.array(_RIGHT), a_normalised)
        return from_axis_angle(_normalise3(axis), jnp.pi)

    q = jnp.concatenate([jnp.cross(a_normalised, b_normalised), jnp.array([1.0 + dot])])
    return normalize(q)


def from_unit_direction_vector(vector: Array) -> Array:
    """Rotation that points the forward (+x) axis along *vector*."""
    return rotation_from_to(jnp.array(_RIGHT), vector)


def slerp(a: Array, b: Array, t: float) -> Array:
    """
    Spherical linear interpolation from *a* (t=0) to *b* (t=1).

    Takes the shorter of the two arcs; nearly identical inputs are blended
    linearly and renormalised.
    """
    a = jnp.asarray(a, dtype=jnp.float64)
    b = jnp.asarray(b, dtype=jnp.float64)
    t = jnp.asarray(t, dtype=jnp.float64)

    cos_half_theta = jnp.sum(a * b, axis=-1, keepdims=True)
    b = jnp.where(cos_half_theta < 0, -b, b)
    cos_half_theta = jnp.abs(cos_half_theta)

    is_close = cos_half_theta > SLERP_LINEAR_THRESHOLD
    half_theta = jnp.arccos(jnp.clip(cos_half_theta, -1.0, 1.0))
    sin_half_theta = jnp.where(is_close, 1.0, jnp.sin(half_theta))

    weight_a = jnp.where(is_close, 1.0 - t, jnp.sin((1.0 - t) * half_theta) / sin_half_theta)
    weight_b = jnp.where(is_close, t, jnp.sin(t * half_theta) / sin_half_theta)

    return normalize(weight_a * a + weight_b * b)


def clamp(quaternion: Array, lower_bound: Sequence[float], upper_bound: Sequence[float]) -> Array:
    """
    Clamp the per-axis rotation of *quaternion* into [lower_bound, upper_bound].

    Each vector component is turned into an approximate axis angle with
    2 * atan(component / w), clamped, and converted back with tan(angle / 2)
    before renormalising. This is not a swing-twist decomposition and is only
    faithful for rotations that stay small or close to a single axis.

    Args:
        quaternion: (4,) unit quaternion
        lower_bound: (3,) lower angle per axis (radians), -inf for no limit
        upper_bound: (3,) upper angle per axis (radians), +inf for no limit

    Returns:
        (4,) clamped unit quaternion

    Raises:
        ValueError: if any lower bound exceeds its upper bound
    """
    lower = np.asarray(lower_bound, dtype=np.float64)
    upper = np.asarray(upper_bound, dtype=np.float64)
    for index in range(3):
        if lower[index] > upper[index]:
            raise ValueError(
                f"Lower bound should be less than upper bound for component {index}. "
                f"Lower: {lower[index]}, upper: {upper[index]}"
            )

    quaternion = jnp.asarray(quaternion, dtype=jnp.float64)
    vector, w = quaternion[:3], quaternion[3]

    # 0 / 0 is treated as no rotation on that axis
    ratio = jnp.where(vector == 0, 0.0, vector / w)
    angles = 2 * jnp.arctan(ratio)
    clamped = scalar.clamp(angles, jnp.asarray(lower), jnp.asarray(upper))

    return normalize(jnp.concatenate([jnp.tan(0.5 * clamped), jnp.array([1.0])]))


def to_matrix(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (x, y, z, w) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    # Normalize quaternions for numerical stability
    quaternions = normalize(quaternions)

    # Unpack quaternion components - preserving batch dimensions
    x, y, z, w = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    return jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)


def _normalise3(vector: Array) -> Array:
    vector = jnp.asarray(vector, dtype=jnp.float64)
    length = jnp.linalg.norm(vector, axis=-1, keepdims=True)
    return jnp.where(length == 0, 0.0, vector / jnp.where(length == 0, 1.0, length))
