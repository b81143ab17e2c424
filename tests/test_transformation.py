"""Tests for the Transformation value type."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_liegroups import DimensionMismatchError, Rotation, Transformation, config
from jax_liegroups.transforms import se3, so3


def _random_transformation(key):
    key_rho, key_phi = jax.random.split(key)
    rho = jax.random.uniform(key_rho, (3,), minval=-5.0, maxval=5.0)
    phi = jax.random.uniform(key_phi, (3,), minval=-1.0, maxval=1.0)
    return Transformation.from_vec(jnp.concatenate([rho, phi]))


def test_default_is_identity():
    T = Transformation()
    np.testing.assert_array_equal(T.matrix(), jnp.eye(4))
    np.testing.assert_array_equal(T.vec(), jnp.zeros(6))
    assert T.tolerance == config.REPROJECT_TOLERANCE


def test_compose_translations():
    T1 = Transformation.from_rotation_and_translation(jnp.eye(3), jnp.array([1.0, 0.0, 0.0]))
    T2 = Transformation.from_rotation_and_translation(jnp.eye(3), jnp.array([0.0, 1.0, 0.0]))

    T = T1.compose(T2)
    np.testing.assert_allclose(T.r_ab_inb, jnp.array([1.0, 1.0, 0.0]), rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T.C_ba, jnp.eye(3), rtol=1e-12, atol=1e-12)


def test_from_matrix():
    xi = jnp.array([0.5, -1.0, 2.0, 0.3, -0.6, 0.9])
    matrix = se3.exp(xi)
    T = Transformation.from_matrix(matrix)

    np.testing.assert_allclose(T.matrix(), matrix, rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T.vec(), xi, rtol=1e-9, atol=1e-9)


def test_from_matrix_rejects_bad_shape():
    with pytest.raises(ValueError):
        Transformation.from_matrix(jnp.eye(3))


def test_integer_inputs_become_float():
    T = Transformation.from_matrix(np.eye(4, dtype=np.int32))
    assert jnp.issubdtype(T.C_ba.dtype, jnp.floating)
    assert jnp.issubdtype(T.r_ab_inb.dtype, jnp.floating)

    T = Transformation.from_rotation_and_translation(np.eye(3, dtype=np.int32), [1, 2, 3])
    np.testing.assert_array_equal(T.act(jnp.array([0.0, 0.0, 0.0, 1.0])), jnp.array([1.0, 2.0, 3.0, 1.0]))


def test_from_matrix_small_drift_is_kept():
    """Drift inside the tolerance is left alone."""
    C = jnp.eye(3) * (1.0 + 1e-8)
    matrix = se3.from_rotation_and_translation(C, jnp.array([1.0, 2.0, 3.0]))

    T = Transformation.from_matrix(matrix)
    np.testing.assert_array_equal(T.C_ba, C)


def test_from_matrix_large_drift_is_reprojected():
    C = so3.vec2rot(jnp.array([0.2, 0.1, -0.3])) * 1.2 ** (1.0 / 3.0)
    r = jnp.array([1.0, 2.0, 3.0])
    T = Transformation.from_matrix(se3.from_rotation_and_translation(C, r))

    assert abs(jnp.linalg.det(T.C_ba) - 1.0) < 1e-9
    assert jnp.linalg.norm(T.C_ba.T @ T.C_ba - jnp.eye(3)) < 1e-9
    # Translation has no manifold constraint
    np.testing.assert_array_equal(T.r_ab_inb, r)


def test_custom_tolerance():
    C = jnp.eye(3) * 1.001
    matrix = se3.from_rotation_and_translation(C, jnp.zeros(3))

    np.testing.assert_array_equal(Transformation.from_matrix(matrix, tolerance=1e-2).C_ba, C)
    np.testing.assert_allclose(Transformation.from_matrix(matrix).C_ba, jnp.eye(3), rtol=1e-12, atol=1e-12)


def test_forced_reprojection():
    T = Transformation(jnp.eye(3) * (1.0 + 1e-8), jnp.array([1.0, 2.0, 3.0]))
    T.reproject()
    np.testing.assert_array_equal(T.C_ba, jnp.eye(3) * (1.0 + 1e-8))

    T.reproject(force=True)
    np.testing.assert_allclose(T.C_ba, jnp.eye(3), rtol=1e-12, atol=1e-12)
    np.testing.assert_array_equal(T.r_ab_inb, jnp.array([1.0, 2.0, 3.0]))


def test_from_rotation_and_translation_accepts_rotation():
    C = Rotation.from_vec(jnp.array([0.0, 0.0, jnp.pi / 2]))
    T = Transformation.from_rotation_and_translation(C, jnp.array([1.0, 2.0, 3.0]))

    np.testing.assert_allclose(T.C_ba, C.matrix(), rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T.rotation().matrix(), C.matrix(), rtol=1e-12, atol=1e-12)


def test_from_rotation_and_forward_translation():
    C = so3.vec2rot(jnp.array([0.0, 0.0, jnp.pi / 2]))
    r_ba_ina = jnp.array([1.0, 0.0, 0.0])
    T = Transformation.from_rotation_and_forward_translation(C, r_ba_ina)

    np.testing.assert_allclose(T.r_ab_inb, jnp.array([0.0, -1.0, 0.0]), rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T.r_ba_ina(), r_ba_ina, rtol=1e-12, atol=1e-12)


def test_from_vec():
    xi = jnp.array([0.1, 0.2, 0.3, 0.05, 0.1, 0.15])
    T = Transformation.from_vec(xi)

    np.testing.assert_allclose(T.matrix(), se3.exp(xi), rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T.vec(), xi, rtol=1e-9, atol=1e-9)

    T_series = Transformation.from_vec(list(xi), num_terms=20)
    np.testing.assert_allclose(T_series.matrix(), T.matrix(), rtol=1e-12, atol=1e-12)


@pytest.mark.parametrize("size", [3, 5, 7])
def test_from_vec_dimension_mismatch(size):
    with pytest.raises(DimensionMismatchError) as excinfo:
        Transformation.from_vec(jnp.ones(size))
    assert excinfo.value.expected == 6
    assert excinfo.value.actual == size


def test_inverse():
    T = Transformation.from_vec(jnp.array([0.4, -0.3, 1.2, 0.7, 0.2, -0.5]))
    T_inv = T.inverse()

    np.testing.assert_allclose(T_inv.C_ba, T.C_ba.T, rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T_inv.r_ab_inb, -T.C_ba.T @ T.r_ab_inb, rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T.compose(T_inv).matrix(), jnp.eye(4), rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(T_inv.matrix(), jnp.linalg.inv(T.matrix()), rtol=1e-9, atol=1e-9)


@given(st.integers(min_value=0, max_value=100))
@settings(max_examples=25, deadline=None)
def test_composition_matches_matrix_product(seed):
    k1, k2, k3 = jax.random.split(jax.random.PRNGKey(seed), 3)
    T1, T2, T3 = (_random_transformation(k) for k in (k1, k2, k3))

    np.testing.assert_allclose(
        T1.compose(T2).matrix(), T1.matrix() @ T2.matrix(), rtol=1e-9, atol=1e-9
    )
    # Associativity
    np.testing.assert_allclose(
        T1.compose(T2).compose(T3).matrix(), T1.compose(T2.compose(T3)).matrix(), rtol=1e-9, atol=1e-9
    )


def test_composition_is_not_commutative():
    T1 = Transformation.from_vec(jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, jnp.pi / 2]))
    T2 = Transformation.from_vec(jnp.array([0.0, 1.0, 0.0, jnp.pi / 2, 0.0, 0.0]))
    assert not jnp.allclose(T1.compose(T2).matrix(), T2.compose(T1).matrix())


def test_compose_in_place():
    T1 = Transformation.from_vec(jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.3]))
    T2 = Transformation.from_vec(jnp.array([0.0, 2.0, 0.0, 0.1, 0.0, 0.0]))
    expected = T1.matrix() @ T2.matrix()

    T1.compose_in_place(T2)
    np.testing.assert_allclose(T1.matrix(), expected, rtol=1e-12, atol=1e-12)


def test_compose_inverse():
    T1 = Transformation.from_vec(jnp.array([1.0, -0.5, 0.2, 0.0, 0.4, 0.3]))
    T2 = Transformation.from_vec(jnp.array([0.0, 2.0, -1.0, 0.1, 0.0, -0.2]))
    expected = T1.matrix() @ jnp.linalg.inv(T2.matrix())

    np.testing.assert_allclose(T1.compose_inverse(T2).matrix(), expected, rtol=1e-9, atol=1e-9)

    T1.compose_inverse_in_place(T2)
    np.testing.assert_allclose(T1.matrix(), expected, rtol=1e-9, atol=1e-9)


def _drifted_transformation():
    # The plain constructor does not re-project, so the drift survives
    C = so3.vec2rot(jnp.array([0.2, 0.1, -0.3])) * 1.2 ** (1.0 / 3.0)
    return Transformation(C, jnp.array([1.0, 2.0, 3.0]))


@pytest.mark.parametrize(
    "operation",
    [
        lambda T: T.compose(Transformation()),
        lambda T: Transformation().compose(T),
        lambda T: T.compose_inverse(Transformation()),
        lambda T: T.inverse(),
    ],
    ids=["compose", "compose_onto_identity", "compose_inverse", "inverse"],
)
def test_group_operations_reproject_drifted_rotation(operation):
    T = _drifted_transformation()
    assert abs(jnp.linalg.det(T.C_ba) - 1.0) > 0.1

    result = operation(T)
    assert abs(jnp.linalg.det(result.C_ba) - 1.0) < 1e-9
    assert jnp.linalg.norm(result.C_ba.T @ result.C_ba - jnp.eye(3)) < 1e-9


def test_in_place_operations_reproject_drifted_rotation():
    T = _drifted_transformation()
    T.compose_in_place(Transformation())
    assert abs(jnp.linalg.det(T.C_ba) - 1.0) < 1e-9
    np.testing.assert_allclose(T.r_ab_inb, jnp.array([1.0, 2.0, 3.0]), rtol=1e-12, atol=1e-12)

    T = _drifted_transformation()
    T.compose_inverse_in_place(Transformation())
    assert abs(jnp.linalg.det(T.C_ba) - 1.0) < 1e-9
    np.testing.assert_allclose(T.r_ab_inb, jnp.array([1.0, 2.0, 3.0]), rtol=1e-12, atol=1e-12)


def test_inverse_translation_uses_reprojected_rotation():
    T = _drifted_transformation()
    T_inv = T.inverse()
    np.testing.assert_allclose(T_inv.r_ab_inb, -T_inv.C_ba @ T.r_ab_inb, rtol=1e-12, atol=1e-12)


def test_repeated_composition_stays_on_manifold():
    step = Transformation.from_vec(jnp.array([0.01, 0.02, 0.0, 0.013, -0.021, 0.017]))
    T = Transformation()
    for _ in range(200):
        T.compose_in_place(step)

    assert abs(jnp.linalg.det(T.C_ba) - 1.0) <= config.REPROJECT_TOLERANCE


def test_act_homogeneous_point():
    T = Transformation.from_vec(jnp.array([0.4, -0.3, 1.2, 0.7, 0.2, -0.5]))
    p = jnp.array([1.0, -2.0, 0.5, 1.0])

    np.testing.assert_allclose(T.act(p), T.matrix() @ p, rtol=1e-12, atol=1e-12)


def test_act_preserves_homogeneous_coordinate():
    T = Transformation.from_rotation_and_translation(jnp.eye(3), jnp.array([1.0, 2.0, 3.0]))
    points = jnp.array([[0.0, 0.0, 0.0, 1.0], [1.0, 0.0, 0.0, 0.0], [1.0, 1.0, 1.0, 2.0]])

    expected = jnp.array([[1.0, 2.0, 3.0, 1.0], [1.0, 0.0, 0.0, 0.0], [3.0, 5.0, 7.0, 2.0]])
    np.testing.assert_allclose(T.act(points), expected, rtol=1e-12, atol=1e-12)


def test_act_rejects_cartesian_points():
    with pytest.raises(ValueError):
        Transformation().act(jnp.zeros(3))


def test_r_ba_ina():
    T = Transformation.from_vec(jnp.array([0.4, -0.3, 1.2, 0.7, 0.2, -0.5]))
    np.testing.assert_allclose(T.r_ba_ina(), T.inverse().r_ab_inb, rtol=1e-12, atol=1e-12)


def test_adjoint_transports_twists():
    T = Transformation.from_vec(jnp.array([0.4, -0.3, 1.2, 0.7, 0.2, -0.5]))
    xi = jnp.array([0.1, -0.2, 0.3, -0.25, 0.15, 0.05])

    np.testing.assert_allclose(T.adjoint(), se3.tran_ad(T.C_ba, T.r_ab_inb), rtol=1e-12, atol=1e-12)

    transported = Transformation.from_vec(T.adjoint() @ xi)
    conjugated = T.compose(Transformation.from_vec(xi)).compose(T.inverse())
    np.testing.assert_allclose(transported.matrix(), conjugated.matrix(), rtol=1e-9, atol=1e-9)


def test_copy_is_independent():
    T1 = Transformation.from_vec(jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.3]))
    before = T1.matrix()
    T2 = T1.copy()
    T2.compose_in_place(T1)

    np.testing.assert_array_equal(T1.matrix(), before)
    assert not jnp.allclose(T1.matrix(), T2.matrix())


def test_str_renders_matrix():
    text = str(Transformation())
    assert text.count("\n") == 3


def test_jit_with_pytree():
    @jax.jit
    def relative(T1, T2):
        return T1.compose_inverse(T2)

    T1 = Transformation.from_vec(jnp.array([1.0, -0.5, 0.2, 0.0, 0.4, 0.3]), tolerance=1e-8)
    T2 = Transformation.from_vec(jnp.array([0.0, 2.0, -1.0, 0.1, 0.0, -0.2]), tolerance=1e-8)

    out = relative(T1, T2)
    assert isinstance(out, Transformation)
    assert out.tolerance == 1e-8
    np.testing.assert_allclose(out.matrix(), T1.compose_inverse(T2).matrix(), rtol=1e-12, atol=1e-12)
