"""
JAX IK: iterative inverse kinematics for articulated link chains.

This library provides pure, stateless forward kinematics, error metrics,
per-link constraints and two single-step solvers (finite-difference gradient
descent and cyclic coordinate descent) for 2D and 3D chains using JAX.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import options
from . import schedules
from . import solve2d
from . import solve3d

from .options import SolveCCDOptions, SolveFABRIKOptions

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "options",
    "schedules",
    "solve2d",
    "solve3d",
    "SolveCCDOptions",
    "SolveFABRIKOptions",
]
