"""
JAX Lie groups: SO(3) and SE(3) algebra for robotics state estimation.

This library provides numerically careful, JIT-compilable implementations of
the exponential and logarithm maps of SO(3) and SE(3), together with the
Rotation and Transformation value types built on them.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import config
from . import transforms
from .errors import DimensionMismatchError
from .transforms import Rotation, Transformation

__version__ = "0.1.0"
__all__ = [
    "config",
    "transforms",
    "DimensionMismatchError",
    "Rotation",
    "Transformation",
]
