"""Core data structures for JAX IK.

This module provides the immutable records that describe a chain: links,
joint transforms, constraints and solve results.
"""

from .constraints import AxisConstraints, ExactRotation, Range
from .links import (
    ChainTransforms,
    JointTransform2D,
    JointTransform3D,
    Link2D,
    Link3D,
    SolveResult,
)

__all__ = [
    "AxisConstraints",
    "ExactRotation",
    "Range",
    "ChainTransforms",
    "JointTransform2D",
    "JointTransform3D",
    "Link2D",
    "Link3D",
    "SolveResult",
]
