"""Per-link rotation constraints.

A link may be left unconstrained (``None``), limited to an angular range, or
locked to an exact rotation. In 3D, ranges are given per rotation axis
(pitch about x, yaw about y, roll about z) through :class:`AxisConstraints`.
"""

from typing import Any, Optional, Tuple, Union

import jax
import numpy as np
from flax import struct

Array = jax.Array

EXACT_ROTATION_TYPES = ("local", "global")


@struct.dataclass
class Range:
    """Binary range: the rotation is clamped to [min, max] radians."""
    min: float
    max: float


@struct.dataclass
class ExactRotation:
    """Lock a link to a fixed rotation.

    Attributes:
        value: Rotation to hold. A float in 2D, an (x, y, z, w) quaternion in 3D.
        type: ``"local"`` sets the link's own relative rotation to *value*.
              ``"global"`` sets the link's absolute rotation (relative to the
              base frame) to *value*. Marked static, it is not a numeric leaf.
    """
    value: Any
    type: str = struct.field(pytree_node=False, default="local")

    def __post_init__(self):
        if self.type not in EXACT_ROTATION_TYPES:
            raise ValueError(
                f"Exact rotation type must be one of {EXACT_ROTATION_TYPES}, got '{self.type}'"
            )


AxisConstraint = Optional[Union[float, Range]]


@struct.dataclass
class AxisConstraints:
    """Independent range limits per rotation axis of a 3D link.

    Each axis is either None (free), a number ``c`` (unary range, clamped to
    [-c/2, c/2]) or a :class:`Range`.
    """
    pitch: AxisConstraint = None
    yaw: AxisConstraint = None
    roll: AxisConstraint = None

    @classmethod
    def uniform(cls, constraint: AxisConstraint) -> "AxisConstraints":
        return cls(pitch=constraint, yaw=constraint, roll=constraint)

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Lower and upper angle per axis, ordered (pitch, yaw, roll)."""
        resolved = [axis_bounds(axis) for axis in (self.pitch, self.yaw, self.roll)]
        lower = np.array([low for low, _ in resolved], dtype=np.float64)
        upper = np.array([high for _, high in resolved], dtype=np.float64)
        return lower, upper


Constraints2D = Optional[Union[float, Range, ExactRotation]]
Constraints3D = Optional[Union[AxisConstraints, ExactRotation, float, Range]]


def axis_bounds(constraint: AxisConstraint) -> Tuple[float, float]:
    """Resolve a single range constraint to (lower, upper) radians."""
    if constraint is None:
        return -np.inf, np.inf
    if isinstance(constraint, Range):
        return float(constraint.min), float(constraint.max)
    half = float(constraint) / 2
    return -half, half


def check_bounds(lower: float, upper: float, component: str = "rotation") -> None:
    if lower > upper:
        raise ValueError(
            f"Lower bound should be less than upper bound for {component}. Lower: {lower}, upper: {upper}"
        )
