"""SQN and DSQN: curvature from subsampled Hessian-vector products.

Extended Summary
----------------
The stochastic quasi-Newton method of Byrd, Hansen, Nocedal and Singer
decouples the curvature estimate from the gradient noise. Iterates are
averaged over windows of ``L`` steps; the difference ``s`` of two
consecutive window averages is multiplied by a Hessian subsampled on a
separate ``batch_size_hess`` batch to give ``y``. Between updates the
iterate moves along ``-alpha H g`` with ``H`` the limited-memory
inverse Hessian.

DSQN is the same scheme with Powell damping, which stores every pair
in damped form instead of rejecting pairs that fail the rho test.

Routine Listings
----------------
HessianVectorState : NamedTuple
    Explicit state carried between steps.
run_hessian_vector_trial : function
    Run one SQN or DSQN trial.
"""

import logging
from functools import partial

import jax.numpy as jnp
from beartype.typing import NamedTuple, Tuple
from jaxtyping import Array, Bool, Float, Int

from sqnjax.problems import Problem
from sqnjax.quasi import hessian_vector_update, two_loop
from sqnjax.types import (
    CurvatureMemory,
    PRNGKey,
    SQNHyperparameters,
    SQNOptions,
    TrialOutcome,
    make_curvature_memory,
)

from .sampling import hessian_vector_batches, sample_indices
from .trainer import run_training_loop

logger = logging.getLogger(__name__)


class HessianVectorState(NamedTuple):
    """State of an SQN or DSQN trial.

    Attributes
    ----------
    memory : CurvatureMemory
        Curvature pairs.
    w_sum : Float[Array, " n"]
        Sum of the iterates of the current window.
    w_old : Float[Array, " n"]
        Average of the previous window.
    iteration : int
        One-based iteration counter.
    updates : int
        Number of completed windows minus one; a pair is formed once it
        is positive.
    """

    memory: CurvatureMemory
    w_sum: Float[Array, " n"]
    w_old: Float[Array, " n"]
    iteration: int
    updates: int


def _hessian_vector_step(
    problem: Problem,
    options: SQNOptions,
    alpha: float,
    curvature_length: int,
    state: HessianVectorState,
    w: Float[Array, " n"],
    gradient: Float[Array, " n"],
    indices: Int[Array, " b"],
    key: PRNGKey,
) -> Tuple[Float[Array, " n"], HessianVectorState, bool]:
    del indices
    w_sum: Float[Array, " n"] = state.w_sum + w
    direction, memory = two_loop(state.memory, gradient)
    w_new: Float[Array, " n"] = w - alpha * direction
    w_old: Float[Array, " n"] = state.w_old
    updates: int = state.updates
    if state.iteration % curvature_length == 0:
        updates += 1
        w_average: Float[Array, " n"] = w_sum / curvature_length
        if updates > 0:
            hess_indices: Int[Array, " h"] = sample_indices(
                key, problem.m, options.batch_size_hess
            )
            s: Float[Array, " n"] = w_average - w_old
            y: Float[Array, " n"] = problem.hess_obj(
                w_average, s, hess_indices
            )
            accepted: Bool[Array, " "]
            memory, accepted = hessian_vector_update(
                memory, s, y, options.damping
            )
            if not bool(accepted):
                logger.debug(
                    "Curvature pair skipped at iteration %d", state.iteration
                )
        w_old = w_average
        w_sum = jnp.zeros_like(w_sum)
    new_state = HessianVectorState(
        memory=memory,
        w_sum=w_sum,
        w_old=w_old,
        iteration=state.iteration + 1,
        updates=updates,
    )
    return w_new, new_state, True


def run_hessian_vector_trial(
    problem: Problem,
    options: SQNOptions,
    hyperparameters: SQNHyperparameters,
    key: PRNGKey,
) -> TrialOutcome:
    """Run one SQN (undamped) or DSQN (damped) trial.

    Parameters
    ----------
    problem : Problem
        Objective to minimize.
    options : SQNOptions
        Resolved options; ``damping`` selects DSQN.
    hyperparameters : SQNHyperparameters
        ``alpha`` and ``curvature_length``.
    key : PRNGKey
        Random key of the trial.

    Returns
    -------
    TrialOutcome
        Outcome of the trial.
    """
    curvature_length: int = hyperparameters.curvature_length
    state = HessianVectorState(
        memory=make_curvature_memory(
            problem.n, int(options.lbfgs_memory), options.h0
        ),
        w_sum=jnp.zeros(problem.n, dtype=jnp.float64),
        w_old=jnp.zeros(problem.n, dtype=jnp.float64),
        iteration=1,
        updates=-1,
    )
    step = partial(
        _hessian_vector_step,
        problem,
        options,
        hyperparameters.alpha,
        curvature_length,
    )
    num_batches: int = hessian_vector_batches(
        problem.m,
        options.batch_size,
        options.batch_size_hess,
        curvature_length,
    )
    return run_training_loop(
        problem, options, hyperparameters, num_batches, step, state, key
    )
