"""Tests for the method table and minimize."""

import math

import chex
import jax
import jax.numpy as jnp
import pytest
from absl.testing import parameterized

from sqnjax.methods import coerce_hyperparameters, minimize, resolve_method
from sqnjax.problems import make_least_squares
from sqnjax.types import (
    AllTrialsDivergedError,
    ConfigurationConflictWarning,
    SQNHyperparameters,
    UnsupportedMethodError,
    make_sqn_options,
)


def _gaussian_problem():
    key_x, key_w = jax.random.split(jax.random.PRNGKey(0))
    features = jax.random.normal(key_x, (200, 5))
    targets = features @ jax.random.normal(key_w, (5,))
    return make_least_squares(features, targets)


class TestResolveMethod(chex.TestCase):
    """Tests for resolve_method."""

    @parameterized.parameters(
        ("SQN", "HvProd", False, True, False),
        ("DSQN", "HvProd", True, True, False),
        ("oBFGS", "GradDiff", False, False, True),
        ("oLBFGS", "GradDiff", False, False, False),
        ("D-oBFGS", "GradDiff", True, False, True),
        ("D-oLBFGS", "GradDiff", True, False, False),
        ("RES", "GradDiff", False, True, True),
        ("L-RES", "GradDiff", False, True, False),
        ("SDBFGS", "GradDiff", True, True, True),
        ("L-SDBFGS", "GradDiff", True, True, False),
    )
    def test_named_methods(
        self,
        method: str,
        strategy: str,
        damping: bool,
        regularization: bool,
        infinite_memory: bool,
    ) -> None:
        """Each named method fixes its strategy and switches."""
        options, resolved = resolve_method(make_sqn_options(method=method))
        assert resolved == strategy
        assert options.damping is damping
        assert options.regularization is regularization
        assert options.infinite_memory is infinite_memory

    def test_limited_memory_method_with_infinite_memory(self) -> None:
        """Infinite memory on a limited-memory method falls back to 20."""
        options = make_sqn_options(method="oLBFGS", lbfgs_memory=math.inf)
        with pytest.warns(ConfigurationConflictWarning):
            resolved, _ = resolve_method(options)
        assert resolved.lbfgs_memory == 20

    def test_adaqn_initialization(self) -> None:
        """adaQN uses RMS scaling unless ADAGRAD is requested."""
        with pytest.warns(ConfigurationConflictWarning, match="h0=BB"):
            options, strategy = resolve_method(
                make_sqn_options(method="adaQN", h0="BB")
            )
        assert strategy == "adaQN"
        assert options.h0 == "RMS"
        options, _ = resolve_method(
            make_sqn_options(method="adaQN", h0="ADAGRAD")
        )
        assert options.h0 == "ADAGRAD"

    def test_custom_method(self) -> None:
        """Unknown names run with the declared curvature strategy."""
        options = make_sqn_options(
            method="MyQN", curvature_strategy="GradDiff", damping=False
        )
        resolved, strategy = resolve_method(options)
        assert strategy == "GradDiff"
        assert resolved == options

    def test_unknown_method(self) -> None:
        """Unknown names without a strategy are rejected."""
        with pytest.raises(UnsupportedMethodError):
            resolve_method(make_sqn_options(method="Newton"))


class TestCoerceHyperparameters(chex.TestCase):
    """Tests for coerce_hyperparameters."""

    def test_sequence_for_curvature_length(self) -> None:
        """[alpha, L] for the windowed strategies."""
        coerced = coerce_hyperparameters([0.1, 5], "HvProd", True)
        assert coerced == SQNHyperparameters(0.1, 5, None)

    def test_sequence_for_delta(self) -> None:
        """[alpha, delta] for gradient differencing."""
        coerced = coerce_hyperparameters([0.1, 1e-3], "GradDiff", True)
        assert coerced == SQNHyperparameters(0.1, None, 1e-3)

    def test_unregularized_delta_is_zero(self) -> None:
        """delta is forced to zero without regularization."""
        coerced = coerce_hyperparameters([0.1, 1e-3], "GradDiff", False)
        assert coerced.delta == 0.0
        assert coerce_hyperparameters([0.1], "GradDiff", False).delta == 0.0

    def test_record_passes_through(self) -> None:
        """A record is validated and returned."""
        record = SQNHyperparameters(alpha=0.2, curvature_length=3)
        assert coerce_hyperparameters(record, "adaQN", True) == record

    @parameterized.parameters(
        ([], "SGD", True),
        ([0.1], "HvProd", True),
        ([0.1], "GradDiff", True),
        ([-0.1], "SGD", True),
    )
    def test_missing_or_invalid(self, values, strategy, regularization):
        """Missing or out-of-range values are rejected."""
        with pytest.raises(ValueError):
            coerce_hyperparameters(values, strategy, regularization)


class TestMinimize(chex.TestCase):
    """Tests for minimize."""

    def test_rejects_non_problem(self) -> None:
        """Objects without the Problem members are rejected."""
        with pytest.raises(TypeError):
            minimize(object())

    def test_unknown_method(self) -> None:
        """The method is resolved before any work is done."""
        with pytest.raises(UnsupportedMethodError):
            minimize(
                _gaussian_problem(),
                make_sqn_options(method="Newton"),
                [0.1],
            )

    def test_divergent_step_size(self) -> None:
        """A single diverging trial surfaces as AllTrialsDivergedError."""
        options = make_sqn_options(
            method="SQN", epochs=20, batch_size=10, batch_size_hess=10
        )
        with pytest.raises(AllTrialsDivergedError):
            minimize(_gaussian_problem(), options, [100.0, 5])

    def test_tuning_returns_best_trial(self) -> None:
        """Without hyperparameters the tuner picks a finished trial."""
        options = make_sqn_options(
            method="SGD", epochs=2, batch_size=20, tuning_steps=10
        )
        result = minimize(_gaussian_problem(), options)
        assert result.loss_history.shape == (2,)
        assert bool(jnp.all(jnp.isfinite(result.loss_history)))
        assert result.final_iterate.shape == (5,)

    def test_logs_run_banner(self) -> None:
        """The method name and completion are logged."""
        options = make_sqn_options(method="SGD", epochs=1, batch_size=20)
        with self.assertLogs("sqnjax.methods.dispatch", level="INFO") as logs:
            minimize(_gaussian_problem(), options, [0.05])
        assert "=== Running SGD ===" in logs.output[0]
        assert "Optimization complete" in logs.output[-1]
