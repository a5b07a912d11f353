"""Tests for the epoch and mini-batch driver."""

import chex
import jax
import jax.numpy as jnp
import pytest

from sqnjax.methods import run_training_loop
from sqnjax.problems import make_least_squares
from sqnjax.types import make_hyperparameters, make_sqn_options


def _problem():
    features = jax.random.normal(jax.random.PRNGKey(0), (16, 2))
    return make_least_squares(features, features @ jnp.array([1.0, -1.0]))


def _gradient_step(state, w, gradient, indices, key):
    del indices, key
    return w - 0.1 * gradient, state, True


class TestRunTrainingLoop(chex.TestCase):
    """Tests for run_training_loop."""

    def setUp(self) -> None:
        """Set up a small problem and options."""
        super().setUp()
        self.problem = _problem()
        self.options = make_sqn_options(epochs=3, batch_size=4)
        self.hyperparameters = make_hyperparameters(0.1)

    def test_history_per_epoch(self) -> None:
        """One average loss per epoch and a finite outcome."""
        outcome = run_training_loop(
            self.problem,
            self.options,
            self.hyperparameters,
            4,
            _gradient_step,
            None,
            jax.random.PRNGKey(1),
        )
        assert not outcome.diverged
        assert outcome.loss_history.shape == (3,)
        assert outcome.hyperparameters == self.hyperparameters
        assert float(outcome.loss_history[-1]) < float(
            outcome.loss_history[0]
        )

    def test_state_is_threaded(self) -> None:
        """The step receives the state it returned last time."""
        seen = []

        def counting_step(state, w, gradient, indices, key):
            seen.append(state)
            return w, state + 1, True

        run_training_loop(
            self.problem,
            self.options,
            self.hyperparameters,
            2,
            counting_step,
            0,
            jax.random.PRNGKey(1),
        )
        assert seen == list(range(6))

    def test_non_finite_loss_diverges(self) -> None:
        """A nan iterate stops the trial before the epoch completes."""

        def nan_step(state, w, gradient, indices, key):
            return w * jnp.nan, state, True

        outcome = run_training_loop(
            self.problem,
            self.options,
            self.hyperparameters,
            4,
            nan_step,
            None,
            jax.random.PRNGKey(1),
        )
        assert outcome.diverged
        assert outcome.loss_history.shape == (0,)

    def test_failed_step_diverges(self) -> None:
        """A step reporting failure stops the trial."""

        def failing_step(state, w, gradient, indices, key):
            return w, state, False

        outcome = run_training_loop(
            self.problem,
            self.options,
            self.hyperparameters,
            4,
            failing_step,
            None,
            jax.random.PRNGKey(1),
        )
        assert outcome.diverged

    def test_non_finite_final_iterate_diverges(self) -> None:
        """A nan produced by the last step is still caught."""

        def nan_step(state, w, gradient, indices, key):
            return w * jnp.nan, state, True

        outcome = run_training_loop(
            self.problem,
            self.options._replace(epochs=1),
            self.hyperparameters,
            1,
            nan_step,
            None,
            jax.random.PRNGKey(1),
        )
        assert outcome.diverged
        assert outcome.loss_history.shape == (1,)

    def test_no_batches(self) -> None:
        """Zero iterations per epoch is a configuration error."""
        with pytest.raises(ValueError):
            run_training_loop(
                self.problem,
                self.options,
                self.hyperparameters,
                0,
                _gradient_step,
                None,
                jax.random.PRNGKey(1),
            )

    def test_verbose_reports_epochs(self) -> None:
        """Verbose runs log every epoch at INFO."""
        with self.assertLogs("sqnjax.methods.trainer", level="INFO") as logs:
            run_training_loop(
                self.problem,
                self.options._replace(verbose=True),
                self.hyperparameters,
                2,
                _gradient_step,
                None,
                jax.random.PRNGKey(1),
            )
        assert len(logs.records) == 3
        assert "Epoch: 1, Average Loss:" in logs.output[0]
