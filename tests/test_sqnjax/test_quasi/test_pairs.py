"""Tests for curvature pair construction and acceptance."""

import chex
import jax.numpy as jnp
from absl.testing import parameterized

from sqnjax.quasi import (
    POWELL_FACTOR,
    bfgs_update,
    curvature_ratio,
    gradient_difference_pair,
    gradient_difference_update,
    hessian_vector_update,
    memory_pairs,
    powell_damped_pair,
    powell_theta,
)
from sqnjax.types import make_curvature_memory


class TestPowellTheta(chex.TestCase):
    """Tests for powell_theta."""

    @chex.variants(without_jit=True)
    @parameterized.parameters((2.0, 1.0), (1.0, 1.0), (0.5, -0.3))
    def test_sufficient_curvature_is_undamped(
        self, lhs: float, rhs: float
    ) -> None:
        """theta is 1 whenever lhs >= rhs."""
        theta = self.variant(powell_theta)(lhs, rhs)
        chex.assert_trees_all_close(theta, jnp.array(1.0))

    @parameterized.parameters(
        (0.1, 1.0, 4.0 / 4.9),
        (-3.0, 1.0, 0.5),
        (0.0, 0.4, 1.6 / 2.0),
    )
    def test_damped_value(
        self, lhs: float, rhs: float, expected: float
    ) -> None:
        """theta equals 4 rhs / (rhs / 0.2 - lhs) and lies in [0, 1]."""
        theta = powell_theta(lhs, rhs)
        chex.assert_trees_all_close(theta, jnp.array(expected))
        assert 0.0 <= float(theta) <= 1.0

    def test_damped_pair_restores_curvature(self) -> None:
        """The damped pair satisfies r^T y = 0.2 y^T H y."""
        memory = make_curvature_memory(2, 3, "BB")
        s = jnp.array([1.0, 0.0])
        y = jnp.array([-1.0, 1.0])
        r, theta, _ = powell_damped_pair(memory, s, y)
        chex.assert_trees_all_close(theta, jnp.array(1.6 / 3.0))
        chex.assert_trees_all_close(
            jnp.dot(r, y), POWELL_FACTOR * jnp.dot(y, y)
        )

    def test_damped_pair_evaluates_product_twice(self) -> None:
        """Each of the two products of H y advances the RMS average."""
        memory = make_curvature_memory(3, 4, "RMS")
        s = jnp.array([1.0, 0.0, 0.0])
        y = jnp.array([-1.0, 2.0, 3.0])
        _, _, new_memory = powell_damped_pair(memory, s, y)
        chex.assert_trees_all_close(new_memory.rms_sum, 0.19 * y**2)
        chex.assert_trees_all_close(new_memory.adagrad_sum, 2.0 * y**2)


class TestCurvatureRatio(chex.TestCase):
    """Tests for curvature_ratio."""

    def test_value(self) -> None:
        """Ratio is s^T y / y^T y."""
        ratio = curvature_ratio(jnp.array([1.0, 2.0]), jnp.array([2.0, 0.0]))
        chex.assert_trees_all_close(ratio, jnp.array(0.5))

    def test_zero_curvature_vector(self) -> None:
        """A vanishing y yields 0 rather than nan."""
        ratio = curvature_ratio(jnp.array([1.0, 2.0]), jnp.zeros(2))
        chex.assert_trees_all_equal(ratio, jnp.array(0.0))


class TestHessianVectorUpdate(chex.TestCase):
    """Tests for hessian_vector_update."""

    def test_undamped_rejects_negative_curvature(self) -> None:
        """A pair failing the rho test leaves the count unchanged."""
        memory = make_curvature_memory(2, 3)
        s = jnp.array([1.0, 0.0])
        new_memory, accepted = hessian_vector_update(memory, s, -s, False)
        assert not bool(accepted)
        chex.assert_trees_all_equal(new_memory.count, memory.count)

    def test_undamped_accepts_positive_curvature(self) -> None:
        """A pair with positive rho is stored as given."""
        memory = make_curvature_memory(2, 3)
        s = jnp.array([1.0, 0.5])
        y = jnp.array([2.0, 1.0])
        new_memory, accepted = hessian_vector_update(memory, s, y, False)
        assert bool(accepted)
        s_pairs, y_pairs = memory_pairs(new_memory)
        chex.assert_trees_all_close(s_pairs[0], s)
        chex.assert_trees_all_close(y_pairs[0], y)

    def test_damped_always_stores(self) -> None:
        """Damping stores the corrected pair even with negative curvature."""
        memory = make_curvature_memory(2, 3)
        s = jnp.array([1.0, 0.0])
        y = jnp.array([-1.0, 1.0])
        new_memory, accepted = hessian_vector_update(memory, s, y, True)
        assert bool(accepted)
        r, _, _ = powell_damped_pair(memory, s, y)
        s_pairs, _ = memory_pairs(new_memory)
        chex.assert_trees_all_close(s_pairs[0], r)
        assert float(jnp.dot(s_pairs[0], y)) > 0.0

    def test_damped_update_advances_rms_accumulator(self) -> None:
        """A damped update on an empty RMS memory leaves 0.19 y^2."""
        memory = make_curvature_memory(3, 4, "RMS")
        s = jnp.array([1.0, 0.0, 0.0])
        y = jnp.array([-1.0, 2.0, 3.0])
        new_memory, _ = hessian_vector_update(memory, s, y, True)
        chex.assert_trees_all_close(
            new_memory.rms_sum, jnp.array([0.19, 0.76, 1.71])
        )

    def test_undamped_update_leaves_accumulators(self) -> None:
        """The rho test alone never touches the accumulators."""
        memory = make_curvature_memory(3, 4, "RMS")
        s = jnp.array([1.0, 0.5, 0.0])
        new_memory, _ = hessian_vector_update(memory, s, 2.0 * s, False)
        chex.assert_trees_all_equal(new_memory.rms_sum, jnp.zeros(3))


class TestGradientDifference(chex.TestCase):
    """Tests for the gradient-differencing pair rules."""

    @chex.variants(without_jit=True)
    def test_pair(self) -> None:
        """y = g_new - g_old - delta s."""
        s = jnp.array([1.0, -1.0])
        y = self.variant(gradient_difference_pair)(
            s, jnp.array([0.5, 0.5]), jnp.array([2.0, 0.0]), 0.5
        )
        chex.assert_trees_all_close(y, jnp.array([1.0, 0.0]))

    @parameterized.parameters(True, False)
    def test_update_is_unconditional(self, damping: bool) -> None:
        """Pairs are stored even when their curvature is negative."""
        memory = make_curvature_memory(2, 3)
        s = jnp.array([1.0, 0.0])
        new_memory = gradient_difference_update(memory, s, -s, damping)
        chex.assert_trees_all_equal(new_memory.count, jnp.array(1, jnp.int32))

    def test_damped_update_advances_rms_accumulator(self) -> None:
        """Damped gradient-differencing pairs advance the RMS average."""
        memory = make_curvature_memory(3, 4, "RMS")
        s = jnp.array([1.0, 0.0, 0.0])
        y = jnp.array([-1.0, 2.0, 3.0])
        new_memory = gradient_difference_update(memory, s, y, True)
        chex.assert_trees_all_close(new_memory.rms_sum, 0.19 * y**2)


class TestBfgsUpdate(chex.TestCase):
    """Tests for bfgs_update."""

    def test_secant_condition(self) -> None:
        """Without damping or regularization B' s = y."""
        hessian = jnp.eye(3)
        s = jnp.array([1.0, 0.5, -0.5])
        y = jnp.array([2.0, 0.5, -1.0])
        updated, applied = bfgs_update(hessian, s, y, 0.0, False)
        assert bool(applied)
        chex.assert_trees_all_close(updated @ s, y)
        chex.assert_trees_all_close(updated, updated.T)

    def test_regularized_secant_condition(self) -> None:
        """The delta I term shifts the secant condition by delta s."""
        hessian = 2.0 * jnp.eye(2)
        s = jnp.array([1.0, 1.0])
        y = jnp.array([3.0, 1.0])
        updated, _ = bfgs_update(hessian, s, y, 0.1, False)
        chex.assert_trees_all_close(updated @ s, y + 0.1 * s)

    def test_damping_keeps_positive_curvature(self) -> None:
        """With damping, s^T B' s stays at least 0.2 s^T B s."""
        hessian = jnp.eye(2)
        s = jnp.array([1.0, 0.0])
        y = jnp.array([-2.0, 1.0])
        updated, applied = bfgs_update(hessian, s, y, 0.0, True)
        assert bool(applied)
        assert float(s @ updated @ s) >= POWELL_FACTOR - 1e-12
        assert bool(jnp.all(jnp.linalg.eigvalsh(updated) > 0.0))

    def test_degenerate_step_is_skipped(self) -> None:
        """A zero step leaves the matrix unchanged."""
        hessian = jnp.eye(2)
        updated, applied = bfgs_update(
            hessian, jnp.zeros(2), jnp.ones(2), 0.0, False
        )
        assert not bool(applied)
        chex.assert_trees_all_equal(updated, hessian)
