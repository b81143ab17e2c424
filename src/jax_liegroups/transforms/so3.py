"""SO(3) and so(3) Lie group operations in JAX.

This module implements the mathematical foundation for 3D rotations using
rotation matrices and axis-angle representations. All functions are pure,
JIT-able, and operate on JAX arrays with arbitrary leading batch dimensions.

Conventions: a rotation matrix ``C_ba`` maps coordinates expressed in frame
``a`` to frame ``b``, and ``C_ba = vec2rot(aaxis_ab)``.

Series evaluation: every map that accepts ``num_terms`` uses the closed form
when ``num_terms == 0``. For ``num_terms = N > 0`` the power series in the skew
matrix is truncated after the ``S**N`` term; the zeroth (identity) term is
always included, so ``N`` counts the non-trivial terms.
"""

import math

import jax
import jax.numpy as jnp

from .. import config

Array = jax.Array

# Bernoulli numbers B_0 ... B_20 with the B_1 = -1/2 convention.
_BERNOULLI = (
    1.0, -1.0 / 2.0, 1.0 / 6.0, 0.0, -1.0 / 30.0, 0.0, 1.0 / 42.0, 0.0,
    -1.0 / 30.0, 0.0, 5.0 / 66.0, 0.0, -691.0 / 2730.0, 0.0, 7.0 / 6.0, 0.0,
    -3617.0 / 510.0, 0.0, 43867.0 / 798.0, 0.0, -174611.0 / 330.0,
)


def as_float_array(x) -> Array:
    x = jnp.asarray(x)
    if not jnp.issubdtype(x.dtype, jnp.floating):
        x = x.astype(jnp.result_type(float))
    return x


def _check_num_terms(num_terms: int) -> None:
    if num_terms < 0:
        raise ValueError(f"num_terms must be non-negative, got {num_terms}")


def _identity_like(S: Array) -> Array:
    I = jnp.eye(3, dtype=S.dtype)
    return jnp.broadcast_to(I, S.shape)


def _power_series(S: Array, coefficients) -> Array:
    """Evaluate sum_n coefficients[n] * S**n."""
    term = _identity_like(S)
    out = coefficients[0] * term
    for c in coefficients[1:]:
        term = jnp.matmul(term, S)
        out = out + c * term
    return out


def _angle(aaxis: Array) -> Array:
    """Rotation angle, shaped (..., 1, 1) for broadcasting against matrices."""
    return jnp.linalg.norm(aaxis, axis=-1)[..., None, None]


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    ``skew_symmetric(a) @ b`` equals ``cross(a, b)``.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    v = as_float_array(v)
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


hat = skew_symmetric


def vee(S: Array) -> Array:
    """
    Inverse of skew_symmetric: read the vector out of a skew-symmetric matrix.

    Args:
        S: (..., 3, 3) skew-symmetric matrix

    Returns:
        (..., 3) vector
    """
    return jnp.stack([S[..., 2, 1], S[..., 0, 2], S[..., 1, 0]], axis=-1)


def vec2rot(aaxis: Array, num_terms: int = 0) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    The closed form is Rodrigues' formula

        C = I + (sin(t) / t) S + ((1 - cos(t)) / t^2) S^2

    with t = |aaxis| and S = skew(aaxis). Both coefficients switch to their
    Taylor expansions for small angles, so a zero vector maps to the identity
    exactly.

    Args:
        aaxis: (..., 3) array of axis-angle vectors
        num_terms: 0 for the closed form, N > 0 for the series sum_{n<=N} S^n / n!

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    _check_num_terms(num_terms)
    aaxis = as_float_array(aaxis)
    S = skew_symmetric(aaxis)

    if num_terms > 0:
        return _power_series(S, [1.0 / math.factorial(n) for n in range(num_terms + 1)])

    angle = _angle(aaxis)
    angle_sq = angle * angle
    small_angle = angle < config.SMALL_ANGLE_TOLERANCE

    # Keep the unused branch finite
    safe_angle = jnp.where(small_angle, 1.0, angle)

    # sin(t)/t ≈ 1 - t^2/6 + t^4/120
    A = jnp.where(small_angle,
                  1.0 - angle_sq / 6.0 + angle_sq * angle_sq / 120.0,
                  jnp.sin(safe_angle) / safe_angle)
    # (1 - cos(t))/t^2 ≈ 1/2 - t^2/24 + t^4/720
    B = jnp.where(small_angle,
                  0.5 - angle_sq / 24.0 + angle_sq * angle_sq / 720.0,
                  (1.0 - jnp.cos(safe_angle)) / (safe_angle * safe_angle))

    return _identity_like(S) + A * S + B * jnp.matmul(S, S)


def rot2vec(C: Array) -> Array:
    """
    SO(3) logarithm map: convert rotation matrix to axis-angle vector.

    The input is assumed, not verified, to be a rotation matrix. The angle is
    ``atan2(|vee(C - C^T)| / 2, (tr(C) - 1) / 2)``, which stays well conditioned
    over the whole range [0, pi]. The axis is read in one of three ways:

    * angle below pi/2: from the antisymmetric part C - C^T;
    * angle near zero: the same formula with a series for t / sin(t), which
      returns exactly zero for the identity;
    * angle above pi/2 (cos(t) < 0): from the symmetric part, which equals
      cos(t) I + (1 - cos(t)) a a^T. The sign of the axis is chosen to agree
      with whatever antisymmetric part remains.

    At an angle of exactly pi both ``phi`` and ``-phi`` describe the same
    rotation; either may be returned.

    Args:
        C: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of axis-angle vectors
    """
    C = as_float_array(C)
    C_T = jnp.swapaxes(C, -1, -2)

    # vee(C - C^T) = 2 sin(t) a
    skew_part = vee(C - C_T)

    cos_angle = (jnp.trace(C, axis1=-2, axis2=-1) - 1.0) / 2.0
    sin_angle = 0.5 * jnp.linalg.norm(skew_part, axis=-1)
    angle = jnp.arctan2(sin_angle, cos_angle)

    small_angle = angle < config.SMALL_ANGLE_TOLERANCE
    obtuse = cos_angle < 0.0

    safe_sin = jnp.where(small_angle | obtuse, 1.0, sin_angle)
    scale = jnp.where(small_angle,
                      0.5 * (1.0 + angle * angle / 6.0),
                      0.5 * angle / safe_sin)
    phi_general = scale[..., None] * skew_part

    # Obtuse angles: a a^T from the symmetric part, 1 - cos(t) > 1
    one_minus_cos = jnp.where(obtuse, 1.0 - cos_angle, 1.0)
    I = jnp.broadcast_to(jnp.eye(3, dtype=C.dtype), C.shape)
    aaT = (0.5 * (C + C_T) - cos_angle[..., None, None] * I) / one_minus_cos[..., None, None]

    # Column with the largest diagonal entry is a * a_k with a_k^2 >= 1/3
    diag_vals = jnp.diagonal(aaT, axis1=-2, axis2=-1)
    max_idx = jnp.argmax(diag_vals, axis=-1)
    axis_obtuse = jnp.take_along_axis(aaT, max_idx[..., None, None], axis=-1)[..., 0]
    axis_norm = jnp.linalg.norm(axis_obtuse, axis=-1, keepdims=True)
    axis_obtuse = axis_obtuse / jnp.where(axis_norm > 0.0, axis_norm, 1.0)

    sign = jnp.where(jnp.sum(axis_obtuse * skew_part, axis=-1) < 0.0, -1.0, 1.0)
    phi_obtuse = (sign * angle)[..., None] * axis_obtuse

    return jnp.where(obtuse[..., None], phi_obtuse, phi_general)


def vec2jac(aaxis: Array, num_terms: int = 0) -> Array:
    """
    Left Jacobian of SO(3).

        J = I + ((1 - cos(t)) / t^2) S + ((t - sin(t)) / t^3) S^2

    Series form: sum_{n<=N} S^n / (n + 1)!

    Args:
        aaxis: (..., 3) axis-angle vectors
        num_terms: 0 for the closed form, N > 0 for the truncated series

    Returns:
        (..., 3, 3) Jacobians
    """
    _check_num_terms(num_terms)
    aaxis = as_float_array(aaxis)
    S = skew_symmetric(aaxis)

    if num_terms > 0:
        return _power_series(S, [1.0 / math.factorial(n + 1) for n in range(num_terms + 1)])

    angle = _angle(aaxis)
    angle_sq = angle * angle
    small_angle = angle < config.SMALL_ANGLE_TOLERANCE
    safe_angle = jnp.where(small_angle, 1.0, angle)

    # Coefficient A = (1 - cos(t)) / t^2
    A = jnp.where(small_angle,
                  0.5 - angle_sq / 24.0 + angle_sq * angle_sq / 720.0,
                  (1.0 - jnp.cos(safe_angle)) / (safe_angle * safe_angle))
    # Coefficient B = (t - sin(t)) / t^3
    B = jnp.where(small_angle,
                  1.0 / 6.0 - angle_sq / 120.0 + angle_sq * angle_sq / 5040.0,
                  (safe_angle - jnp.sin(safe_angle)) / (safe_angle * safe_angle * safe_angle))

    return _identity_like(S) + A * S + B * jnp.matmul(S, S)


def vec2jacinv(aaxis: Array, num_terms: int = 0) -> Array:
    """
    Inverse of the SO(3) left Jacobian.

        J^-1 = I - S / 2 + ((1 - (t / 2) cot(t / 2)) / t^2) S^2

    Series form: sum_{n<=N} (B_n / n!) S^n with Bernoulli numbers B_n, which
    is tabulated up to N = config.MAX_JACINV_SERIES_TERMS.

    Singular at t = 2*pi, which never occurs for the output of rot2vec.

    Args:
        aaxis: (..., 3) axis-angle vectors
        num_terms: 0 for the closed form, N > 0 for the truncated series

    Returns:
        (..., 3, 3) inverse Jacobians
    """
    _check_num_terms(num_terms)
    if num_terms > config.MAX_JACINV_SERIES_TERMS:
        raise ValueError(
            f"num_terms must be at most {config.MAX_JACINV_SERIES_TERMS} "
            f"for the inverse Jacobian series, got {num_terms}"
        )
    aaxis = as_float_array(aaxis)
    S = skew_symmetric(aaxis)

    if num_terms > 0:
        return _power_series(
            S, [_BERNOULLI[n] / math.factorial(n) for n in range(num_terms + 1)]
        )

    angle = _angle(aaxis)
    angle_sq = angle * angle
    small_angle = angle < config.SMALL_ANGLE_TOLERANCE
    safe_angle = jnp.where(small_angle, 1.0, angle)

    half_angle = 0.5 * safe_angle
    cot_half_angle = jnp.cos(half_angle) / jnp.sin(half_angle)

    # For small angles this coefficient tends to 1/12
    D = jnp.where(small_angle,
                  1.0 / 12.0 + angle_sq / 720.0 + angle_sq * angle_sq / 30240.0,
                  (1.0 - half_angle * cot_half_angle) / (safe_angle * safe_angle))

    return _identity_like(S) - 0.5 * S + D * jnp.matmul(S, S)


def multiply(C1: Array, C2: Array) -> Array:
    """
    Multiply two rotation matrices.

    Args:
        C1: (..., 3, 3) first rotation matrix
        C2: (..., 3, 3) second rotation matrix

    Returns:
        (..., 3, 3) result of C1 @ C2
    """
    return jnp.matmul(C1, C2)


def inverse(C: Array) -> Array:
    """
    Compute inverse of rotation matrix.

    For rotation matrices, the inverse is simply the transpose.
    """
    return jnp.swapaxes(C, -1, -2)


def apply(C: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        C: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    v = as_float_array(v)
    if v.ndim == C.ndim - 1:  # Single vector case
        return jnp.einsum('...ij,...j->...i', C, v)
    else:  # Multiple vectors case
        return jnp.einsum('...ij,...nj->...ni', C, v)


def determinant(C: Array) -> Array:
    return jnp.linalg.det(C)


def reproject(C: Array) -> Array:
    """
    Project a drifted matrix back onto SO(3) through the log/exp round trip.

    Args:
        C: (..., 3, 3) approximately orthonormal matrices

    Returns:
        (..., 3, 3) rotation matrices with the same dtype as C
    """
    C = as_float_array(C)
    return vec2rot(rot2vec(C)).astype(C.dtype)
