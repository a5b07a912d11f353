"""Epoch and mini-batch driver shared by every method.

Extended Summary
----------------
:func:`run_training_loop` owns the iterate and the random key of a
trial. For every mini-batch it draws sample indices, evaluates the loss
and gradient at the current iterate, and hands them to a
method-specific step function together with that method's explicit
state. The loss is checked after every evaluation; a non-finite value
ends the trial with ``diverged=True`` instead of raising.

Routine Listings
----------------
run_training_loop : function
    Run one trial of a method given its step function.
StepFn : TypeAlias
    Signature of a method step.
"""

import logging
import math

import jax
import jax.numpy as jnp
from beartype.typing import Any, Callable, List, Tuple, TypeAlias
from jaxtyping import Array, Float, Int

from sqnjax.problems import Problem
from sqnjax.types import (
    PRNGKey,
    SQNHyperparameters,
    SQNOptions,
    TrialOutcome,
)

from .sampling import sample_indices

logger = logging.getLogger(__name__)

StepFn: TypeAlias = Callable[
    [Any, Float[Array, " n"], Float[Array, " n"], Int[Array, " b"], PRNGKey],
    Tuple[Float[Array, " n"], Any, bool],
]


def _outcome(
    history: List[float],
    w: Float[Array, " n"],
    hyperparameters: SQNHyperparameters,
    diverged: bool,
) -> TrialOutcome:
    return TrialOutcome(
        loss_history=jnp.asarray(history, dtype=jnp.float64),
        final_iterate=w,
        hyperparameters=hyperparameters,
        diverged=diverged,
    )


def run_training_loop(
    problem: Problem,
    options: SQNOptions,
    hyperparameters: SQNHyperparameters,
    num_batches: int,
    step_fn: StepFn,
    state: Any,
    key: PRNGKey,
) -> TrialOutcome:
    """Run ``options.epochs`` epochs of ``num_batches`` steps each.

    Parameters
    ----------
    problem : Problem
        Objective to minimize.
    options : SQNOptions
        Run configuration; ``epochs``, ``batch_size`` and ``verbose``
        are used here.
    hyperparameters : SQNHyperparameters
        Recorded in the outcome.
    num_batches : int
        Iterations per epoch.
    step_fn : StepFn
        ``step_fn(state, w, gradient, indices, key)`` returning the new
        iterate, the new state and whether the step stayed finite.
    state : Any
        Initial method state.
    key : PRNGKey
        Random key of the trial.

    Returns
    -------
    TrialOutcome
        Per-epoch average losses, final iterate and divergence flag.
        A diverged outcome keeps the epochs completed before the
        failure.

    Raises
    ------
    ValueError
        If ``num_batches`` is less than one.
    """
    if num_batches < 1:
        raise ValueError(
            f"{options.method}: the batch sizes leave {num_batches} "
            f"iterations per epoch for {problem.m} samples"
        )
    report = logger.info if options.verbose else logger.debug
    w: Float[Array, " n"] = problem.w0
    history: List[float] = []
    for epoch in range(1, options.epochs + 1):
        average_loss: float = 0.0
        for _ in range(num_batches):
            key, batch_key, step_key = jax.random.split(key, 3)
            indices: Int[Array, " b"] = sample_indices(
                batch_key, problem.m, options.batch_size
            )
            gradient: Float[Array, " n"] = problem.grad_obj(w, indices)
            loss: float = float(problem.fun_obj(w, indices))
            if not math.isfinite(loss):
                logger.debug(
                    "%s diverged in epoch %d with %s",
                    options.method,
                    epoch,
                    hyperparameters,
                )
                return _outcome(history, w, hyperparameters, True)
            average_loss += loss / num_batches
            finite: bool
            w, state, finite = step_fn(state, w, gradient, indices, step_key)
            if not finite:
                logger.debug(
                    "%s diverged in epoch %d with %s",
                    options.method,
                    epoch,
                    hyperparameters,
                )
                return _outcome(history, w, hyperparameters, True)
        history.append(average_loss)
        report("Epoch: %d, Average Loss: %f", epoch, average_loss)
    if not bool(jnp.all(jnp.isfinite(w))):
        logger.debug("%s ended on a non-finite iterate", options.method)
        return _outcome(history, w, hyperparameters, True)
    return _outcome(history, w, hyperparameters, False)
