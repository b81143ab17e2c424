"""SE(3) rigid-body transformation value type implemented with JAX."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from . import se3, so3
from .rotation import Rotation
from .. import config
from ..errors import DimensionMismatchError
from ..log import LogWriter

Array = jax.Array


@register_pytree_node_class  # let Transformation work with jit / grad / vmap …
@dataclass(eq=False)
class Transformation:
    """A single transform T_ba = [[C_ba, r_ab_inb], [0, 0, 0, 1]].

    Only the rotation block can drift off the manifold. After every
    composition or inversion the rotation is re-projected when
    ``|1 - det(C_ba)|`` exceeds ``tolerance``; the translation is never touched.
    """
    C_ba: Array = field(default_factory=lambda: jnp.eye(3))  # shape (3, 3)
    r_ab_inb: Array = field(default_factory=lambda: jnp.zeros(3))  # shape (3,)
    tolerance: float = config.REPROJECT_TOLERANCE

    # Constructors
    @classmethod
    def identity(cls, tolerance: float = config.REPROJECT_TOLERANCE) -> "Transformation":
        return cls(tolerance=tolerance)

    @classmethod
    def from_matrix(
        cls, matrix: Array, tolerance: float = config.REPROJECT_TOLERANCE
    ) -> "Transformation":
        """Split a 4x4 matrix into its blocks and conditionally re-project."""
        matrix = so3.as_float_array(matrix)
        if matrix.shape != (4, 4):
            raise ValueError(f"matrix must have shape (4,4), got {matrix.shape}")
        T = cls(se3.get_rotation(matrix), se3.get_position(matrix), tolerance)
        T.reproject()
        return T

    @classmethod
    def from_rotation_and_translation(
        cls,
        C_ba: Union[Array, Rotation],
        r_ab_inb: Array,
        tolerance: float = config.REPROJECT_TOLERANCE,
    ) -> "Transformation":
        """Build T_ba from C_ba and the translation r_ab_inb (expressed in frame b)."""
        C_ba, r_ab_inb = _check_blocks(C_ba, r_ab_inb)
        T = cls(C_ba, r_ab_inb, tolerance)
        T.reproject()
        return T

    @classmethod
    def from_rotation_and_forward_translation(
        cls,
        C_ba: Union[Array, Rotation],
        r_ba_ina: Array,
        tolerance: float = config.REPROJECT_TOLERANCE,
    ) -> "Transformation":
        """Build T_ba from C_ba and r_ba_ina, storing r_ab_inb = -C_ba @ r_ba_ina."""
        C_ba, r_ba_ina = _check_blocks(C_ba, r_ba_ina)
        T = cls(C_ba, jnp.zeros_like(r_ba_ina), tolerance)
        T.reproject()
        T.r_ab_inb = -jnp.matmul(T.C_ba, r_ba_ina)
        return T

    @classmethod
    def from_vec(
        cls,
        xi_ab: Array,
        num_terms: int = 0,
        tolerance: float = config.REPROJECT_TOLERANCE,
    ) -> "Transformation":
        """T_ba = vec2tran(xi_ab); the input must hold exactly 6 entries."""
        xi_ab = jnp.ravel(so3.as_float_array(xi_ab))
        if xi_ab.shape[0] != 6:
            LogWriter.debug("Rejected twist of size %d", xi_ab.shape[0])
            raise DimensionMismatchError(6, xi_ab.shape[0], what="transformation")
        C_ba, r_ab_inb = se3.vec2tran(xi_ab, num_terms)
        return cls(C_ba, r_ab_inb, tolerance)

    # PyTree boiler-plate
    def tree_flatten(self):
        return (self.C_ba, self.r_ab_inb), self.tolerance

    @classmethod
    def tree_unflatten(cls, aux, children):
        C_ba, r_ab_inb = children
        return cls(C_ba, r_ab_inb, aux)

    # Accessors
    def matrix(self) -> Array:
        return se3.from_rotation_and_translation(self.C_ba, self.r_ab_inb)

    def rotation(self) -> Rotation:
        return Rotation(self.C_ba)

    def r_ba_ina(self) -> Array:
        """The "forward" translation r_ba_ina = -C_ba^T @ r_ab_inb."""
        return -jnp.matmul(so3.inverse(self.C_ba), self.r_ab_inb)

    def vec(self) -> Array:
        """Twist [rho, phi] through the logarithmic map."""
        return se3.tran2vec(self.C_ba, self.r_ab_inb)

    def adjoint(self) -> Array:
        """6x6 adjoint matrix."""
        return se3.tran_ad(self.C_ba, self.r_ab_inb)

    def copy(self) -> "Transformation":
        return Transformation(self.C_ba, self.r_ab_inb, self.tolerance)

    def reproject(self, force: bool = False) -> None:
        """Re-project the rotation block onto SO(3).

        Without ``force`` the round trip only runs when the determinant of the
        rotation has drifted by more than ``tolerance``.
        """
        if force:
            LogWriter.debug("Forced re-projection of transformation rotation block")
            self.C_ba = so3.reproject(self.C_ba)
            return

        drift = jnp.abs(1.0 - so3.determinant(self.C_ba))
        self.C_ba = jax.lax.cond(drift > self.tolerance, so3.reproject, lambda C: C, self.C_ba)

    # Group operations
    def inverse(self) -> "Transformation":
        T = Transformation(so3.inverse(self.C_ba), jnp.zeros_like(self.r_ab_inb), self.tolerance)
        T.reproject()
        T.r_ab_inb = -jnp.matmul(T.C_ba, self.r_ab_inb)
        return T

    def compose_in_place(self, other: "Transformation") -> None:
        """self <- self * other."""
        self.r_ab_inb = self.r_ab_inb + jnp.matmul(self.C_ba, other.r_ab_inb)
        self.C_ba = so3.multiply(self.C_ba, other.C_ba)
        self.reproject()

    def compose(self, other: "Transformation") -> "Transformation":
        """Return self * other (apply *other* first, then self)."""
        out = self.copy()
        out.compose_in_place(other)
        return out

    def compose_inverse_in_place(self, other: "Transformation") -> None:
        """self <- self * other^-1."""
        self.C_ba = so3.multiply(self.C_ba, so3.inverse(other.C_ba))
        self.r_ab_inb = self.r_ab_inb - jnp.matmul(self.C_ba, other.r_ab_inb)
        self.reproject()

    def compose_inverse(self, other: "Transformation") -> "Transformation":
        out = self.copy()
        out.compose_inverse_in_place(other)
        return out

    # Point transformation
    def act(self, p_a: Array) -> Array:
        """
        Apply the transform to homogeneous point(s) p_a.

        Accepted shapes are (4,) and (N, 4). The homogeneous coordinate is
        passed through unchanged, so direction vectors (last entry 0) are only
        rotated.
        """
        p_a = so3.as_float_array(p_a)
        if p_a.shape[-1] != 4 or p_a.ndim not in (1, 2):
            raise ValueError(f"points must have shape (4,) or (N,4), got {p_a.shape}")

        head = so3.apply(self.C_ba, p_a[..., :3]) + self.r_ab_inb * p_a[..., 3:]
        return jnp.concatenate([head, p_a[..., 3:]], axis=-1)

    def __str__(self) -> str:
        return str(self.matrix())


def _check_blocks(C_ba, r):
    if isinstance(C_ba, Rotation):
        C_ba = C_ba.matrix()
    C_ba = so3.as_float_array(C_ba)
    r = so3.as_float_array(r)
    if C_ba.shape != (3, 3):
        raise ValueError(f"rotation must have shape (3,3), got {C_ba.shape}")
    if r.shape != (3,):
        raise ValueError(f"translation must have shape (3,), got {r.shape}")
    return C_ba, r
