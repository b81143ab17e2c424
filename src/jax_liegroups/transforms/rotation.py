"""SO(3) rotation value type implemented with JAX."""

from __future__ import annotations

from dataclasses import dataclass, field

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from . import so3
from ..errors import DimensionMismatchError
from ..log import LogWriter

Array = jax.Array


@register_pytree_node_class  # let Rotation work with jit / grad / vmap …
@dataclass(eq=False)
class Rotation:
    """A single rotation C_ba, mapping frame *a* coordinates into frame *b*.

    Composition and inversion never re-project the matrix; call
    :meth:`reproject` when accumulated round-off matters.
    """
    C_ba: Array = field(default_factory=lambda: jnp.eye(3))  # shape (3, 3)

    # Constructors
    @classmethod
    def identity(cls) -> "Rotation":
        return cls()

    @classmethod
    def from_matrix(cls, C: Array, reproject: bool = False) -> "Rotation":
        """Wrap a 3x3 matrix, optionally forcing it back onto SO(3)."""
        C = so3.as_float_array(C)
        if C.shape != (3, 3):
            raise ValueError(f"matrix must have shape (3,3), got {C.shape}")
        rotation = cls(C)
        if reproject:
            rotation.reproject()
        return rotation

    @classmethod
    def from_vec(cls, aaxis_ab: Array, num_terms: int = 0) -> "Rotation":
        """C_ba = vec2rot(aaxis_ab); the input must hold exactly 3 entries."""
        aaxis_ab = jnp.ravel(so3.as_float_array(aaxis_ab))
        if aaxis_ab.shape[0] != 3:
            LogWriter.debug("Rejected axis-angle vector of size %d", aaxis_ab.shape[0])
            raise DimensionMismatchError(3, aaxis_ab.shape[0], what="rotation")
        return cls(so3.vec2rot(aaxis_ab, num_terms))

    # PyTree boiler-plate
    def tree_flatten(self):
        return (self.C_ba,), None

    @classmethod
    def tree_unflatten(cls, aux, children):
        (C_ba,) = children
        return cls(C_ba)

    # Accessors
    def matrix(self) -> Array:
        return self.C_ba

    def vec(self) -> Array:
        """Axis-angle vector through the logarithmic map."""
        return so3.rot2vec(self.C_ba)

    def copy(self) -> "Rotation":
        return Rotation(self.C_ba)

    # Group operations
    def inverse(self) -> "Rotation":
        return Rotation(so3.inverse(self.C_ba))

    def compose_in_place(self, other: "Rotation") -> None:
        """self <- self * other."""
        self.C_ba = so3.multiply(self.C_ba, other.C_ba)

    def compose(self, other: "Rotation") -> "Rotation":
        """Return self * other (apply *other* first, then self)."""
        out = self.copy()
        out.compose_in_place(other)
        return out

    def compose_inverse_in_place(self, other: "Rotation") -> None:
        """self <- self * other^-1."""
        self.C_ba = so3.multiply(self.C_ba, so3.inverse(other.C_ba))

    def compose_inverse(self, other: "Rotation") -> "Rotation":
        out = self.copy()
        out.compose_inverse_in_place(other)
        return out

    def act(self, p_a: Array) -> Array:
        """Rotate point(s) of shape (3,) or (N, 3) from frame a into frame b."""
        return so3.apply(self.C_ba, p_a)

    def reproject(self) -> None:
        """Force the matrix back onto SO(3) with a log/exp round trip."""
        LogWriter.debug("Re-projecting rotation matrix")
        self.C_ba = so3.reproject(self.C_ba)

    def __str__(self) -> str:
        return str(self.C_ba)
