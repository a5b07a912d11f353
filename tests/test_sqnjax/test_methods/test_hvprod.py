"""End-to-end tests for SQN and DSQN."""

import chex
import jax
import jax.numpy as jnp

from sqnjax.methods import minimize, run_hessian_vector_trial
from sqnjax.problems import make_least_squares
from sqnjax.types import make_hyperparameters, make_sqn_options


def _rank_one_problem():
    direction = jnp.ones(4) / 2.0
    features = jnp.tile(direction, (100, 1))
    return make_least_squares(features, jnp.full(100, 2.0), 0.0)


class TestHessianVectorMethods(chex.TestCase):
    """Tests for run_hessian_vector_trial."""

    def test_rank_one_history(self) -> None:
        """With identical samples every step shrinks the residual by 1 - alpha.

        Each sample has unit curvature along the data direction, so the
        inverse Hessian of the recursion acts as the identity on every
        gradient and the loss after ``t`` steps is ``2 * 0.95**(2 t)``.
        """
        options = make_sqn_options(
            method="SQN",
            epochs=20,
            batch_size=10,
            batch_size_hess=10,
            damping=False,
        )
        outcome = run_hessian_vector_trial(
            _rank_one_problem(),
            options,
            make_hyperparameters(0.05, curvature_length=5),
            jax.random.PRNGKey(0),
        )
        steps = jnp.arange(20 * 8).reshape(20, 8)
        expected = jnp.mean(2.0 * 0.9025**steps, axis=1)
        assert not outcome.diverged
        chex.assert_trees_all_close(
            outcome.loss_history, expected, rtol=1e-8
        )
        assert bool(jnp.all(jnp.diff(outcome.loss_history) < 0.0))

    def test_converges_on_isotropic_problem(self) -> None:
        """SQN drives a consistent system close to its minimum."""
        features = jnp.tile(jnp.sqrt(10.0) * jnp.eye(10), (30, 1))
        solution = 0.1 * jnp.linspace(-1.0, 1.0, 10)
        problem = make_least_squares(features, features @ solution, 0.0)
        options = make_sqn_options(
            method="SQN", epochs=50, batch_size=5, batch_size_hess=200
        )
        result = minimize(
            problem, options, [0.02, 10], key=jax.random.PRNGKey(1)
        )
        initial = float(problem.fun_obj(problem.w0))
        final = float(problem.fun_obj(result.final_iterate))
        assert final < 1e-3 * initial

    def test_identity_design_reaches_least_squares_optimum(self) -> None:
        """SQN on a stacked identity design with alpha 0.05 and L 5.

        After the first five epochs the loss falls at every epoch, and
        after twenty epochs it is within 1e-3 of the closed-form
        least-squares optimum.
        """
        features = jnp.tile(jnp.eye(10), (10, 1))
        solution = jnp.linspace(-1.0, 1.0, 10)
        problem = make_least_squares(features, features @ solution, 0.0)
        options = make_sqn_options(
            method="SQN",
            epochs=20,
            batch_size=10,
            batch_size_hess=10,
            damping=False,
        )
        result = minimize(problem, options, [0.05, 5])
        optimum, _, _, _ = jnp.linalg.lstsq(
            features, features @ solution
        )
        history = result.loss_history
        assert history.shape == (20,)
        assert bool(jnp.all(jnp.diff(history[5:]) < 0.0))
        gap = problem.fun_obj(result.final_iterate) - problem.fun_obj(
            optimum
        )
        assert float(gap) < 1e-3

    def test_same_key_same_history(self) -> None:
        """A trial is reproducible from its key."""
        key_x, key_w = jax.random.split(jax.random.PRNGKey(2))
        features = jax.random.normal(key_x, (200, 5))
        problem = make_least_squares(
            features, features @ jax.random.normal(key_w, (5,))
        )
        options = make_sqn_options(
            method="DSQN", epochs=3, batch_size=20, batch_size_hess=50
        )
        hyperparameters = make_hyperparameters(0.05, curvature_length=3)
        first = run_hessian_vector_trial(
            problem, options, hyperparameters, jax.random.PRNGKey(3)
        )
        second = run_hessian_vector_trial(
            problem, options, hyperparameters, jax.random.PRNGKey(3)
        )
        chex.assert_trees_all_equal(first.loss_history, second.loss_history)
        chex.assert_trees_all_equal(
            first.final_iterate, second.final_iterate
        )

    def test_dsqn_decreases_loss(self) -> None:
        """Damped SQN finishes every epoch and lowers the loss."""
        key_x, key_w = jax.random.split(jax.random.PRNGKey(4))
        features = jax.random.normal(key_x, (200, 5))
        problem = make_least_squares(
            features, features @ jax.random.normal(key_w, (5,))
        )
        options = make_sqn_options(
            method="DSQN", epochs=10, batch_size=20, batch_size_hess=50
        )
        result = minimize(problem, options, [0.05, 5])
        assert result.loss_history.shape == (10,)
        assert float(result.loss_history[-1]) < float(result.loss_history[0])
