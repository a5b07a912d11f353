"""Tests for mini-batch sampling and iterations per epoch."""

import chex
import jax
import jax.numpy as jnp
from absl.testing import parameterized

from sqnjax.methods import (
    adaqn_batches,
    gradient_difference_batches,
    hessian_vector_batches,
    log_uniform,
    sample_indices,
    sgd_batches,
    uniform_integer,
)


class TestBatchesPerEpoch(chex.TestCase):
    """Tests for the iterations-per-epoch formulas."""

    def test_sgd(self) -> None:
        """One gradient batch per iteration."""
        assert sgd_batches(100, 10) == 10
        assert sgd_batches(105, 10) == 10

    @parameterized.parameters(
        (100, 10, 10, 5, 8),
        (1000, 50, 500, 20, 13),
        (60, 10, 100, 2, 1),
    )
    def test_hessian_vector(
        self,
        num_samples: int,
        batch_size: int,
        batch_size_hess: int,
        curvature_length: int,
        expected: int,
    ) -> None:
        """Each iteration also pays 1/L of a Hessian batch."""
        assert (
            hessian_vector_batches(
                num_samples, batch_size, batch_size_hess, curvature_length
            )
            == expected
        )

    def test_gradient_difference(self) -> None:
        """Two gradient batches per iteration."""
        assert gradient_difference_batches(100, 10) == 5
        assert gradient_difference_batches(100, 30) == 1

    @parameterized.parameters((100, 10, 20, 8), (100, 30, 10, 2))
    def test_adaqn(
        self,
        num_samples: int,
        batch_size: int,
        batch_size_fun: int,
        expected: int,
    ) -> None:
        """The monitoring set is paid for once per epoch."""
        assert adaqn_batches(num_samples, batch_size, batch_size_fun) == (
            expected
        )


class TestRandomDraws(chex.TestCase):
    """Tests for the random helpers."""

    def test_sample_indices(self) -> None:
        """Indices have the batch shape and lie in range."""
        indices = sample_indices(jax.random.PRNGKey(0), 7, 50)
        assert indices.shape == (50,)
        assert bool(jnp.all((indices >= 0) & (indices < 7)))

    def test_sample_indices_is_deterministic(self) -> None:
        """The same key gives the same batch."""
        key = jax.random.PRNGKey(5)
        chex.assert_trees_all_equal(
            sample_indices(key, 100, 10), sample_indices(key, 100, 10)
        )

    def test_log_uniform_range(self) -> None:
        """Draws stay inside the closed range."""
        keys = jax.random.split(jax.random.PRNGKey(1), 50)
        for key in keys:
            value = log_uniform(key, 1e-5, 1e-1)
            assert isinstance(value, float)
            assert 1e-5 * (1 - 1e-9) <= value <= 1e-1 * (1 + 1e-9)

    def test_uniform_integer_is_inclusive(self) -> None:
        """Both endpoints can be drawn."""
        keys = jax.random.split(jax.random.PRNGKey(2), 200)
        values = {uniform_integer(key, 2, 4) for key in keys}
        assert values == {2, 3, 4}
