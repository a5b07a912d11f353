"""Tests for the guarded arithmetic helpers."""

import chex
import jax.numpy as jnp
from absl.testing import parameterized

from sqnjax.utils import SQRT_EPS, safe_divide, safe_reciprocal


class TestSafeDivide(chex.TestCase):
    """Tests for safe_divide."""

    @chex.variants(without_jit=True)
    def test_regular_quotient(self) -> None:
        """Finite quotients pass through unchanged."""
        quotient = self.variant(safe_divide)(
            jnp.array([1.0, -4.0]), jnp.array([2.0, 8.0])
        )
        chex.assert_trees_all_close(quotient, jnp.array([0.5, -0.5]))

    @parameterized.parameters(0.0, 1.0, -3.5)
    def test_zero_denominator_uses_fallback(self, fallback: float) -> None:
        """A zero divisor yields the fallback."""
        quotient = safe_divide(
            jnp.array([1.0, 2.0]), jnp.array([0.0, 4.0]), fallback
        )
        chex.assert_trees_all_close(quotient, jnp.array([fallback, 0.5]))

    def test_overflow_uses_fallback(self) -> None:
        """An overflowing quotient yields the fallback."""
        quotient = safe_divide(jnp.array(1e300), jnp.array(1e-300), 7.0)
        chex.assert_trees_all_equal(quotient, jnp.array(7.0))

    def test_nan_input_uses_fallback(self) -> None:
        """A nan numerator never leaks through."""
        quotient = safe_divide(jnp.array(jnp.nan), jnp.array(2.0))
        chex.assert_trees_all_equal(quotient, jnp.array(0.0))


class TestSafeReciprocal(chex.TestCase):
    """Tests for safe_reciprocal."""

    def test_values(self) -> None:
        """Reciprocal with zero mapped to zero."""
        chex.assert_trees_all_close(
            safe_reciprocal(jnp.array([4.0, 0.0, -0.5])),
            jnp.array([0.25, 0.0, -2.0]),
        )

    def test_sqrt_eps(self) -> None:
        """SQRT_EPS is the square root of float64 epsilon."""
        assert abs(SQRT_EPS**2 - jnp.finfo(jnp.float64).eps) < 1e-30
