"""
Vector and rotation algebra for the IK solvers.

This module provides pure, side-effect-free implementations of:
- scalar helpers (scalar module)
- 2D vectors (v2 module)
- 3D vectors (v3 module)
- unit quaternions in [x, y, z, w] order (quaternion module)

None of the functions mutate their inputs.
"""

from . import scalar
from . import v2
from . import v3
from . import quaternion

__all__ = [
    "scalar",
    "v2",
    "v3",
    "quaternion",
]
