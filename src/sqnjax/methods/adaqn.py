"""adaQN: quasi-Newton steps with empirical Fisher curvature.

Extended Summary
----------------
adaQN (Keskar and Berahas) pairs an RMSprop/Adagrad scaled two-loop
recursion with curvature pairs built from the empirical Fisher matrix
of recent gradients, so it never evaluates Hessian-vector products.
Every ``L`` iterations the averaged iterate is checked on a fixed
monitoring set: if its loss grew by more than one percent relative to
the previous average, the memory is cleared and the iterate is rolled
back to that previous average. Otherwise a pair ``(s, F s)`` is formed
and kept when ``s^T y / y^T y > 1e-4``; only an accepted pair moves the
reference average forward.

Routine Listings
----------------
AdaQNState : NamedTuple
    Explicit state carried between steps.
run_adaqn_trial : function
    Run one adaQN trial.
MONITOR_TOLERANCE : float
    Relative growth of the monitored loss that triggers a reset.
"""

import logging
import math
from functools import partial

import jax
import jax.numpy as jnp
from beartype.typing import NamedTuple, Tuple
from jaxtyping import Array, Bool, Float, Int

from sqnjax.problems import Problem
from sqnjax.quasi import (
    FISHER_RHO_THRESHOLD,
    curvature_ratio,
    fisher_product,
    push_gradient,
    reset_memory,
    store_pair_if,
    two_loop,
)
from sqnjax.types import (
    CurvatureMemory,
    FisherContainer,
    PRNGKey,
    SQNHyperparameters,
    SQNOptions,
    TrialOutcome,
    make_curvature_memory,
    make_fisher_container,
)

from .sampling import adaqn_batches, sample_indices
from .trainer import run_training_loop

logger = logging.getLogger(__name__)

MONITOR_TOLERANCE: float = 1.01


class AdaQNState(NamedTuple):
    """State of an adaQN trial.

    Attributes
    ----------
    memory : CurvatureMemory
        Curvature pairs and squared-gradient accumulators.
    fisher : FisherContainer
        Recent stochastic gradients.
    w_sum : Float[Array, " n"]
        Sum of the iterates of the current window.
    w_old : Float[Array, " n"]
        Reference average of the last accepted window.
    iteration : int
        One-based iteration counter.
    updates : int
        Number of completed windows minus one.
    """

    memory: CurvatureMemory
    fisher: FisherContainer
    w_sum: Float[Array, " n"]
    w_old: Float[Array, " n"]
    iteration: int
    updates: int


def _adaqn_step(
    problem: Problem,
    alpha: float,
    curvature_length: int,
    monitor: Int[Array, " f"],
    state: AdaQNState,
    w: Float[Array, " n"],
    gradient: Float[Array, " n"],
    indices: Int[Array, " b"],
    key: PRNGKey,
) -> Tuple[Float[Array, " n"], AdaQNState, bool]:
    del indices, key
    fisher: FisherContainer = push_gradient(state.fisher, gradient)
    w_sum: Float[Array, " n"] = state.w_sum + w
    direction, memory = two_loop(state.memory, gradient)
    w_new: Float[Array, " n"] = w - alpha * direction
    w_old: Float[Array, " n"] = state.w_old
    updates: int = state.updates
    if state.iteration % curvature_length == 0:
        updates += 1
        w_average: Float[Array, " n"] = w_sum / curvature_length
        w_sum = jnp.zeros_like(w_sum)
        if updates > 0:
            loss_new: float = float(problem.fun_obj(w_average, monitor))
            loss_old: float = float(problem.fun_obj(w_old, monitor))
            if not (math.isfinite(loss_new) and math.isfinite(loss_old)):
                return w_new, state, False
            if loss_new > MONITOR_TOLERANCE * loss_old:
                logger.debug(
                    "Monitored loss grew from %g to %g at iteration %d; "
                    "clearing memory",
                    loss_old,
                    loss_new,
                    state.iteration,
                )
                memory = reset_memory(memory)
                w_new = w_old
            else:
                s: Float[Array, " n"] = w_average - w_old
                y: Float[Array, " n"] = fisher_product(fisher, s)
                accepted: Bool[Array, " "] = (
                    curvature_ratio(s, y) > FISHER_RHO_THRESHOLD
                )
                memory = store_pair_if(memory, s, y, accepted)
                w_old = jnp.where(accepted, w_average, w_old)
        else:
            w_old = w_average
    new_state = AdaQNState(
        memory=memory,
        fisher=fisher,
        w_sum=w_sum,
        w_old=w_old,
        iteration=state.iteration + 1,
        updates=updates,
    )
    return w_new, new_state, True


def run_adaqn_trial(
    problem: Problem,
    options: SQNOptions,
    hyperparameters: SQNHyperparameters,
    key: PRNGKey,
) -> TrialOutcome:
    """Run one adaQN trial.

    Parameters
    ----------
    problem : Problem
        Objective to minimize.
    options : SQNOptions
        Resolved options; ``h0`` is RMS or ADAGRAD.
    hyperparameters : SQNHyperparameters
        ``alpha`` and ``curvature_length``.
    key : PRNGKey
        Random key of the trial. The monitoring set of
        ``batch_size_fun`` indices is drawn from it once.

    Returns
    -------
    TrialOutcome
        Outcome of the trial.

    Notes
    -----
    The iteration counter advances on every batch, including one whose
    window was rejected by the monitoring test and rolled back to
    ``w_old``, so the next curvature window starts ``L`` batches later.
    """
    monitor_key, loop_key = jax.random.split(key)
    monitor: Int[Array, " f"] = sample_indices(
        monitor_key, problem.m, options.batch_size_fun
    )
    state = AdaQNState(
        memory=make_curvature_memory(
            problem.n, int(options.lbfgs_memory), options.h0
        ),
        fisher=make_fisher_container(problem.n, options.fisher_memory),
        w_sum=jnp.zeros(problem.n, dtype=jnp.float64),
        w_old=jnp.zeros(problem.n, dtype=jnp.float64),
        iteration=1,
        updates=-1,
    )
    step = partial(
        _adaqn_step,
        problem,
        hyperparameters.alpha,
        hyperparameters.curvature_length,
        monitor,
    )
    num_batches: int = adaqn_batches(
        problem.m, options.batch_size, options.batch_size_fun
    )
    return run_training_loop(
        problem, options, hyperparameters, num_batches, step, state, loop_key
    )
