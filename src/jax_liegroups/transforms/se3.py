"""SE(3) and se(3) Lie group operations in JAX.

This module implements SE(3) rigid body transforms using rotation/translation
pairs, homogeneous matrices and 6D twist vectors. All functions are pure,
JIT-able, and operate on JAX arrays.

A twist is ordered ``xi = [rho, phi]``: the translational part first, the
axis-angle part last. A transform ``T_ba = vec2tran(xi_ab)`` is stored as the
pair ``(C_ba, r_ab_inb)``.
"""

from typing import Tuple

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def hat(xi: Array) -> Array:
    """
    4x4 matrix form of a twist.

    Args:
        xi: (..., 6) twists [rho, phi]

    Returns:
        (..., 4, 4) array [[skew(phi), rho], [0, 0]]
    """
    xi = so3.as_float_array(xi)
    rho, phi = xi[..., :3], xi[..., 3:]

    out = jnp.zeros(xi.shape[:-1] + (4, 4), dtype=xi.dtype)
    out = out.at[..., :3, :3].set(so3.skew_symmetric(phi))
    out = out.at[..., :3, 3].set(rho)
    return out


def curlyhat(xi: Array) -> Array:
    """
    6x6 matrix form of a twist (the adjoint of se(3)).

    Args:
        xi: (..., 6) twists [rho, phi]

    Returns:
        (..., 6, 6) array [[skew(phi), skew(rho)], [0, skew(phi)]]
    """
    xi = so3.as_float_array(xi)
    phi_skew = so3.skew_symmetric(xi[..., 3:])
    rho_skew = so3.skew_symmetric(xi[..., :3])

    top = jnp.concatenate([phi_skew, rho_skew], axis=-1)
    bottom = jnp.concatenate([jnp.zeros_like(phi_skew), phi_skew], axis=-1)
    return jnp.concatenate([top, bottom], axis=-2)


def vec2tran(xi: Array, num_terms: int = 0) -> Tuple[Array, Array]:
    """
    SE(3) exponential map: convert twist to rotation and translation.

    The rotation is ``so3.vec2rot(phi)`` and the translation is
    ``so3.vec2jac(phi) @ rho``. Both use the same ``num_terms`` evaluation
    strategy, so a series-evaluated rotation is paired with a series-evaluated
    Jacobian.

    Args:
        xi: (..., 6) array of twists [rho, phi]
        num_terms: 0 for the closed forms, N > 0 for truncated series

    Returns:
        Tuple of (..., 3, 3) rotation matrices C_ba and (..., 3) translations
        r_ab_inb.
    """
    xi = so3.as_float_array(xi)
    rho, phi = xi[..., :3], xi[..., 3:]

    C = so3.vec2rot(phi, num_terms)
    J = so3.vec2jac(phi, num_terms)
    r = jnp.einsum("...ij,...j->...i", J, rho)
    return C, r


def tran2vec(C: Array, r: Array) -> Array:
    """
    SE(3) logarithm map: convert rotation and translation to twist.

    Args:
        C: (..., 3, 3) rotation matrices
        r: (..., 3) translations

    Returns:
        (..., 6) array of twists [rho, phi]
    """
    r = so3.as_float_array(r)
    phi = so3.rot2vec(C)
    J_inv = so3.vec2jacinv(phi)
    rho = jnp.einsum("...ij,...j->...i", J_inv, r)
    return jnp.concatenate([rho, phi], axis=-1)


def tran_ad(C: Array, r: Array) -> Array:
    """
    Adjoint of an SE(3) element given as a rotation/translation pair.

    Maps a twist expressed in one frame into the other frame:
    ``vec2tran(tran_ad(C, r) @ xi) == T @ vec2tran(xi) @ T^-1``.

    Args:
        C: (..., 3, 3) rotation matrices
        r: (..., 3) translations

    Returns:
        (..., 6, 6) adjoint matrices [[C, skew(r) C], [0, C]]
    """
    C = so3.as_float_array(C)
    top = jnp.concatenate([C, jnp.matmul(so3.skew_symmetric(r), C)], axis=-1)
    bottom = jnp.concatenate([jnp.zeros_like(C), C], axis=-1)
    return jnp.concatenate([top, bottom], axis=-2)


def from_rotation_and_translation(C: Array, r: Array) -> Array:
    """
    Construct SE(3) transform from rotation and translation.

    Args:
        C: (..., 3, 3) rotation matrix
        r: (..., 3) translation vector

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    C = so3.as_float_array(C)
    r = so3.as_float_array(r)

    # Ensure consistent batch shapes
    batch_shape = jnp.broadcast_shapes(r.shape[:-1], C.shape[:-2])
    dtype = jnp.result_type(C, r)
    r = jnp.broadcast_to(r, batch_shape + (3,))
    C = jnp.broadcast_to(C, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=dtype)
    T = T.at[..., :3, :3].set(C)
    T = T.at[..., :3, 3].set(r)
    T = T.at[..., 3, 3].set(1.0)

    return T


def exp(xi: Array, num_terms: int = 0) -> Array:
    """
    SE(3) exponential map returning the homogeneous matrix.

    Args:
        xi: (..., 6) array of twists [rho, phi]
        num_terms: see vec2tran

    Returns:
        (..., 4, 4) array of transformation matrices.
    """
    C, r = vec2tran(xi, num_terms)
    return from_rotation_and_translation(C, r)


def log(T: Array) -> Array:
    """
    SE(3) logarithm map taking the homogeneous matrix.

    Args:
        T: (..., 4, 4) array of transformation matrices.

    Returns:
        (..., 6) array of twists [rho, phi].
    """
    return tran2vec(get_rotation(T), get_position(T))


def get_position(T: Array) -> Array:
    """Extract the (..., 3) translation from (..., 4, 4) transforms."""
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """Extract the (..., 3, 3) rotation from (..., 4, 4) transforms."""
    return T[..., :3, :3]


def adjoint(T: Array) -> Array:
    """
    Compute the adjoint matrix of SE(3) transformation.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 6, 6) adjoint matrix
    """
    return tran_ad(get_rotation(T), get_position(T))
