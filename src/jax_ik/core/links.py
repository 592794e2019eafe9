"""Link and joint records for 2D and 3D chains.

These are immutable ``flax.struct`` dataclasses: a solve never mutates the
links it is given, it returns new records built with ``.replace``. Link
positions and 3D rotations given as lists or numpy arrays are copied into jax
arrays on construction, so a returned link never shares them with the caller.
The 2D and 3D records are separate types.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

import jax
import jax.numpy as jnp
import numpy as np
from flax import struct

from ..transforms import quaternion
from .constraints import Constraints2D, Constraints3D

Array = jax.Array


@struct.dataclass
class JointTransform2D:
    """Absolute pose of a 2D joint: position and rotation (radians)."""
    position: Array
    rotation: float = 0.0


@struct.dataclass
class JointTransform3D:
    """Absolute pose of a 3D joint: position and (x, y, z, w) rotation."""
    position: Array
    rotation: Array = struct.field(default_factory=quaternion.identity)


@struct.dataclass
class Link2D:
    """One rigid segment of a 2D chain.

    Attributes:
        rotation: Rotation (radians) relative to the parent joint's absolute rotation.
        position: Offset from the joint to the tip of the link, in the link's frame.
        length: Shorthand for ``position = [length, 0]``; ignored if position is set.
        constraints: None, a unary range, a :class:`Range` or an :class:`ExactRotation`.
    """
    rotation: float = 0.0
    position: Optional[Array] = None
    length: Optional[float] = None
    constraints: Constraints2D = None

    def __post_init__(self):
        object.__setattr__(self, "position", _as_array(self.position))

    @property
    def offset(self) -> Array:
        if self.position is not None:
            return jnp.asarray(self.position, dtype=jnp.float64)
        if self.length is not None:
            return jnp.array([self.length, 0.0], dtype=jnp.float64)
        raise ValueError("Link needs either a position or a length")


@struct.dataclass
class Link3D:
    """One rigid segment of a 3D chain.

    Attributes:
        rotation: (x, y, z, w) rotation relative to the parent joint's absolute rotation.
        position: Offset from the joint to the tip of the link, in the link's frame.
        length: Shorthand for ``position = [length, 0, 0]``; ignored if position is set.
        constraints: None, :class:`AxisConstraints` or an :class:`ExactRotation`.
    """
    rotation: Array = struct.field(default_factory=quaternion.identity)
    position: Optional[Array] = None
    length: Optional[float] = None
    constraints: Constraints3D = None

    def __post_init__(self):
        object.__setattr__(self, "rotation", _as_array(self.rotation))
        object.__setattr__(self, "position", _as_array(self.position))

    @property
    def offset(self) -> Array:
        if self.position is not None:
            return jnp.asarray(self.position, dtype=jnp.float64)
        if self.length is not None:
            return jnp.array([self.length, 0.0, 0.0], dtype=jnp.float64)
        raise ValueError("Link needs either a position or a length")


@struct.dataclass
class ChainTransforms:
    """Forward kinematics output.

    Attributes:
        transforms: One joint transform per joint, base first, len(links) + 1 in total.
        effector_position: Position of the last joint (the end effector).
        effector_rotation: Absolute rotation of the last joint.
    """
    transforms: List
    effector_position: Array
    effector_rotation: Array


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one solve call.

    Attributes:
        links: New list with the structure of the input links, rotations possibly changed.
        get_error_distance: Computes the effector-to-target distance of *links* on demand.
        is_within_accepted_error: True if the call exited early without stepping,
            None when a step was taken (the error is not re-checked after stepping).
    """
    links: List
    get_error_distance: Callable[[], float]
    is_within_accepted_error: Optional[bool] = None


def _as_array(value):
    """Copy host sequences into an immutable jax array; other values pass through."""
    if isinstance(value, (list, tuple, np.ndarray)):
        return jnp.array(value, dtype=jnp.float64)
    return value
