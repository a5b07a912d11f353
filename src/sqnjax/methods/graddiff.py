"""Gradient-differencing methods: oBFGS, RES, SDBFGS and relatives.

Extended Summary
----------------
These methods form the curvature pair from a single step: after moving
from ``w`` to ``w_new`` the gradient is evaluated again on the same
sample indices, and

    s = w_new - w,    y = g(w_new) - g(w) - delta s

Reusing the indices keeps ``y`` free of sampling noise between the two
evaluations, so the double evaluation per batch is intentional. Eight
variants arise from three switches:

============  ========  ==============  ========
method        damping   regularization  memory
============  ========  ==============  ========
oBFGS         no        no              dense
oLBFGS        no        no              limited
D-oBFGS       yes       no              dense
D-oLBFGS      yes       no              limited
RES           no        yes             dense
L-RES         no        yes             limited
SDBFGS        yes       yes             dense
L-SDBFGS      yes       yes             limited
============  ========  ==============  ========

Routine Listings
----------------
GradientDifferenceState : NamedTuple
    Explicit state carried between steps.
run_gradient_difference_trial : function
    Run one trial of any of the eight variants.
"""

import logging
from functools import partial

from beartype.typing import NamedTuple, Optional, Tuple
from jaxtyping import Array, Bool, Float, Int

from sqnjax.problems import Problem
from sqnjax.quasi import (
    bfgs_direction,
    bfgs_update,
    gradient_difference_pair,
    gradient_difference_update,
    make_bfgs_matrix,
    regularized_lbfgs_direction,
    two_loop,
)
from sqnjax.types import (
    CurvatureMemory,
    PRNGKey,
    SQNHyperparameters,
    SQNOptions,
    TrialOutcome,
    make_curvature_memory,
)

from .sampling import gradient_difference_batches
from .trainer import run_training_loop

logger = logging.getLogger(__name__)


class GradientDifferenceState(NamedTuple):
    """State of a gradient-differencing trial.

    Exactly one of the two fields is set, depending on whether the
    options ask for a limited or an infinite memory.

    Attributes
    ----------
    memory : CurvatureMemory, optional
        Curvature pairs of the limited-memory variants.
    hessian : Float[Array, " n n"], optional
        Dense BFGS approximation of the infinite-memory variants.
    """

    memory: Optional[CurvatureMemory] = None
    hessian: Optional[Float[Array, " n n"]] = None


def _gradient_difference_step(
    problem: Problem,
    options: SQNOptions,
    alpha: float,
    delta: float,
    state: GradientDifferenceState,
    w: Float[Array, " n"],
    gradient: Float[Array, " n"],
    indices: Int[Array, " b"],
    key: PRNGKey,
) -> Tuple[Float[Array, " n"], GradientDifferenceState, bool]:
    del key
    memory: Optional[CurvatureMemory] = state.memory
    direction: Float[Array, " n"]
    if state.hessian is not None:
        direction = bfgs_direction(state.hessian, gradient, delta)
    elif delta > 0.0:
        direction, memory = regularized_lbfgs_direction(
            memory,
            gradient,
            delta,
            options.solver_maxiter,
            options.solver_tol,
        )
    else:
        direction, memory = two_loop(memory, gradient)
    w_new: Float[Array, " n"] = w - alpha * direction
    gradient_new: Float[Array, " n"] = problem.grad_obj(w_new, indices)
    s: Float[Array, " n"] = w_new - w
    y: Float[Array, " n"] = gradient_difference_pair(
        s, gradient, gradient_new, delta
    )
    if state.hessian is not None:
        applied: Bool[Array, " "]
        hessian, applied = bfgs_update(
            state.hessian, s, y, delta, options.damping
        )
        if not bool(applied):
            logger.debug("Degenerate BFGS update skipped")
        return w_new, GradientDifferenceState(hessian=hessian), True
    memory = gradient_difference_update(memory, s, y, options.damping)
    return w_new, GradientDifferenceState(memory=memory), True


def run_gradient_difference_trial(
    problem: Problem,
    options: SQNOptions,
    hyperparameters: SQNHyperparameters,
    key: PRNGKey,
) -> TrialOutcome:
    """Run one trial of a gradient-differencing method.

    Parameters
    ----------
    problem : Problem
        Objective to minimize.
    options : SQNOptions
        Resolved options; ``damping`` and ``lbfgs_memory`` select the
        variant.
    hyperparameters : SQNHyperparameters
        ``alpha`` and ``delta``; a missing ``delta`` counts as 0.
    key : PRNGKey
        Random key of the trial.

    Returns
    -------
    TrialOutcome
        Outcome of the trial.

    Notes
    -----
    With ``delta = 0`` the limited-memory direction is the plain
    two-loop product ``H g``. With ``delta > 0`` it is the regularized
    direction of :func:`sqnjax.quasi.regularized_lbfgs_direction`.
    """
    delta: float = hyperparameters.delta or 0.0
    if options.infinite_memory:
        state = GradientDifferenceState(
            hessian=make_bfgs_matrix(problem.n, delta)
        )
    else:
        state = GradientDifferenceState(
            memory=make_curvature_memory(
                problem.n, int(options.lbfgs_memory), options.h0
            )
        )
    step = partial(
        _gradient_difference_step,
        problem,
        options,
        hyperparameters.alpha,
        delta,
    )
    num_batches: int = gradient_difference_batches(
        problem.m, options.batch_size
    )
    return run_training_loop(
        problem, options, hyperparameters, num_batches, step, state, key
    )
