"""Plain stochastic gradient descent, the baseline for every method."""

from functools import partial

from beartype.typing import Tuple
from jaxtyping import Array, Float, Int

from sqnjax.problems import Problem
from sqnjax.types import (
    PRNGKey,
    SQNHyperparameters,
    SQNOptions,
    TrialOutcome,
)

from .sampling import sgd_batches
from .trainer import run_training_loop


def _sgd_step(
    alpha: float,
    state: None,
    w: Float[Array, " n"],
    gradient: Float[Array, " n"],
    indices: Int[Array, " b"],
    key: PRNGKey,
) -> Tuple[Float[Array, " n"], None, bool]:
    del indices, key
    return w - alpha * gradient, state, True


def run_sgd_trial(
    problem: Problem,
    options: SQNOptions,
    hyperparameters: SQNHyperparameters,
    key: PRNGKey,
) -> TrialOutcome:
    """Run one SGD trial with step size ``hyperparameters.alpha``."""
    step = partial(_sgd_step, hyperparameters.alpha)
    num_batches: int = sgd_batches(problem.m, options.batch_size)
    return run_training_loop(
        problem, options, hyperparameters, num_batches, step, None, key
    )
