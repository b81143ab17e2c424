"""
JAX-based SO(3) / SE(3) transforms for robotics state estimation.

This module provides:
- SO(3) algebra (so3 module): vec2rot, rot2vec, left Jacobian and its inverse
- SE(3) algebra (se3 module): vec2tran, tran2vec, tran_ad
- Rotation and Transformation value types wrapping single group elements

The algebra functions are pure, stateless, and JIT-able.
"""

# Core Lie group modules
from . import so3
from . import se3
from .rotation import Rotation
from .transform import Transformation

__all__ = [
    "so3",
    "se3",
    "Rotation",
    "Transformation",
]
