"""Stochastic quasi-Newton methods and their drivers.

Extended Summary
----------------
Training loops for the eleven stochastic quasi-Newton variants and
plain SGD, the random-search tuner that runs them, and
:func:`minimize`, which selects a method by name.

Submodules
----------
sampling
    Mini-batch sampling and iterations per epoch
trainer
    Epoch and mini-batch driver
hvprod
    SQN and DSQN
graddiff
    oBFGS, oLBFGS, D-oBFGS, D-oLBFGS, RES, L-RES, SDBFGS, L-SDBFGS
adaqn
    adaQN
sgd
    Stochastic gradient descent
tuner
    Random-search hyperparameter tuning
dispatch
    Method table and minimize

Routine Listings
----------------
minimize : function
    Run a method on a problem, tuning hyperparameters if needed
resolve_method : function
    Apply a method's settings to the options
coerce_hyperparameters : function
    Normalize caller-supplied hyperparameters
run_training_loop : function
    Generic epoch and mini-batch driver
run_hessian_vector_trial : function
    One SQN or DSQN trial
run_gradient_difference_trial : function
    One trial of a gradient-differencing method
run_adaqn_trial : function
    One adaQN trial
run_sgd_trial : function
    One SGD trial
draw_hyperparameters : function
    Random hyperparameters for a strategy
select_best_trial : function
    Best finished trial of a stream of outcomes
tune : function
    Draw, run and select trials
METHODS : dict
    Table of the named methods
"""

from .adaqn import AdaQNState, run_adaqn_trial
from .dispatch import (
    METHODS,
    MethodConfiguration,
    coerce_hyperparameters,
    minimize,
    resolve_method,
)
from .graddiff import GradientDifferenceState, run_gradient_difference_trial
from .hvprod import HessianVectorState, run_hessian_vector_trial
from .sampling import (
    adaqn_batches,
    gradient_difference_batches,
    hessian_vector_batches,
    log_uniform,
    sample_indices,
    sgd_batches,
    uniform_integer,
)
from .sgd import run_sgd_trial
from .trainer import run_training_loop
from .tuner import (
    ALPHA_RANGE,
    CURVATURE_LENGTH_RANGE,
    DELTA_RANGE,
    draw_hyperparameters,
    select_best_trial,
    tune,
)

__all__: list[str] = [
    "ALPHA_RANGE",
    "CURVATURE_LENGTH_RANGE",
    "DELTA_RANGE",
    "METHODS",
    "AdaQNState",
    "GradientDifferenceState",
    "HessianVectorState",
    "MethodConfiguration",
    "adaqn_batches",
    "coerce_hyperparameters",
    "draw_hyperparameters",
    "gradient_difference_batches",
    "hessian_vector_batches",
    "log_uniform",
    "minimize",
    "resolve_method",
    "run_adaqn_trial",
    "run_gradient_difference_trial",
    "run_hessian_vector_trial",
    "run_sgd_trial",
    "run_training_loop",
    "sample_indices",
    "select_best_trial",
    "sgd_batches",
    "tune",
    "uniform_integer",
]
