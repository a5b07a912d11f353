"""Method table and the top-level :func:`minimize` entry point.

Extended Summary
----------------
A method name fixes the curvature strategy and, for the named
variants, the damping and regularization switches and whether a dense
BFGS matrix replaces the pair memory. :func:`resolve_method` applies
those settings to the caller's options, correcting inconsistent memory
choices with a :class:`sqnjax.types.ConfigurationConflictWarning`.
:func:`minimize` then runs either the supplied hyperparameters once or
a random search over ``tuning_steps`` trials.

Routine Listings
----------------
MethodConfiguration : NamedTuple
    Strategy and switches of a named method.
METHODS : dict
    Table of the named methods.
resolve_method : function
    Apply a method's settings to the options.
coerce_hyperparameters : function
    Normalize caller-supplied hyperparameters for a strategy.
minimize : function
    Run a stochastic quasi-Newton method on a problem.
"""

import logging
import math
import warnings
from functools import partial

import jax
from beartype.typing import (
    Callable,
    Dict,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    TypeAlias,
    Union,
)

from sqnjax.problems import Problem
from sqnjax.types import (
    DEFAULT_LBFGS_MEMORY,
    ConfigurationConflictWarning,
    NonJaxNumber,
    PRNGKey,
    SQNHyperparameters,
    SQNOptions,
    SQNResult,
    TrialOutcome,
    UnsupportedMethodError,
    make_hyperparameters,
    make_sqn_options,
)

from .adaqn import run_adaqn_trial
from .graddiff import run_gradient_difference_trial
from .hvprod import run_hessian_vector_trial
from .sgd import run_sgd_trial
from .tuner import draw_hyperparameters, tune

logger = logging.getLogger(__name__)


class MethodConfiguration(NamedTuple):
    """Settings imposed by a named method.

    Attributes
    ----------
    strategy : str
        ``"HvProd"``, ``"GradDiff"``, ``"adaQN"`` or ``"SGD"``.
    damping : bool, optional
        Forced damping switch; None leaves the option untouched.
    regularization : bool, optional
        Forced regularization switch; None leaves the option untouched.
    infinite_memory : bool
        Use a dense BFGS matrix.
    """

    strategy: str
    damping: Optional[bool] = None
    regularization: Optional[bool] = None
    infinite_memory: bool = False


METHODS: Dict[str, MethodConfiguration] = {
    "SGD": MethodConfiguration("SGD"),
    "SQN": MethodConfiguration("HvProd", damping=False),
    "DSQN": MethodConfiguration("HvProd", damping=True),
    "oBFGS": MethodConfiguration("GradDiff", False, False, True),
    "oLBFGS": MethodConfiguration("GradDiff", False, False),
    "D-oBFGS": MethodConfiguration("GradDiff", True, False, True),
    "D-oLBFGS": MethodConfiguration("GradDiff", True, False),
    "RES": MethodConfiguration("GradDiff", False, True, True),
    "L-RES": MethodConfiguration("GradDiff", False, True),
    "SDBFGS": MethodConfiguration("GradDiff", True, True, True),
    "L-SDBFGS": MethodConfiguration("GradDiff", True, True),
    "adaQN": MethodConfiguration("adaQN"),
}

TrialRunner: TypeAlias = Callable[
    [Problem, SQNOptions, SQNHyperparameters, PRNGKey], TrialOutcome
]

_TRIALS: Dict[str, TrialRunner] = {
    "HvProd": run_hessian_vector_trial,
    "GradDiff": run_gradient_difference_trial,
    "adaQN": run_adaqn_trial,
    "SGD": run_sgd_trial,
}


def resolve_method(options: SQNOptions) -> Tuple[SQNOptions, str]:
    """Apply the settings of ``options.method``.

    Parameters
    ----------
    options : SQNOptions
        Caller options.

    Returns
    -------
    options : SQNOptions
        Options with memory, damping, regularization and ``h0``
        adjusted to the method.
    strategy : str
        Trial runner to use.

    Raises
    ------
    UnsupportedMethodError
        If the method is unknown and ``curvature_strategy`` is unset.

    Warns
    -----
    ConfigurationConflictWarning
        If a limited-memory method was given infinite memory; 20 pairs
        are used instead. Also if adaQN was given the BB initializer;
        RMS is used instead.
    """
    configuration: Optional[MethodConfiguration] = METHODS.get(
        options.method
    )
    if configuration is not None and configuration.infinite_memory:
        options = options._replace(lbfgs_memory=math.inf)
    elif options.infinite_memory:
        warnings.warn(
            f"{options.method} needs a finite lbfgs_memory; using "
            f"{DEFAULT_LBFGS_MEMORY}",
            ConfigurationConflictWarning,
            stacklevel=3,
        )
        options = options._replace(lbfgs_memory=DEFAULT_LBFGS_MEMORY)
    if configuration is None:
        if options.curvature_strategy is None:
            raise UnsupportedMethodError(options.method)
        return options, options.curvature_strategy
    if configuration.damping is not None:
        options = options._replace(damping=configuration.damping)
    if configuration.regularization is not None:
        options = options._replace(
            regularization=configuration.regularization
        )
    if configuration.strategy == "adaQN" and options.h0 not in (
        "ADAGRAD",
        "RMS",
    ):
        warnings.warn(
            f"{options.method} scales with RMS or ADAGRAD; replacing "
            f"h0={options.h0} with RMS",
            ConfigurationConflictWarning,
            stacklevel=3,
        )
        options = options._replace(h0="RMS")
    return options, configuration.strategy


def coerce_hyperparameters(
    values: Union[SQNHyperparameters, Sequence[NonJaxNumber]],
    strategy: str,
    regularization: bool,
) -> SQNHyperparameters:
    """Normalize caller-supplied hyperparameters.

    Parameters
    ----------
    values : Union[SQNHyperparameters, Sequence[NonJaxNumber]]
        Either a record or a sequence in method order: ``[alpha, L]``
        for HvProd and adaQN, ``[alpha, delta]`` for GradDiff,
        ``[alpha]`` for SGD.
    strategy : str
        Resolved strategy.
    regularization : bool
        When False, ``delta`` is forced to 0.

    Returns
    -------
    SQNHyperparameters
        Validated hyperparameters.

    Raises
    ------
    ValueError
        If a value the strategy needs is missing or out of range.
    """
    if isinstance(values, SQNHyperparameters):
        alpha = values.alpha
        curvature_length = values.curvature_length
        delta = values.delta
    else:
        if len(values) == 0:
            raise ValueError("hyperparameters must include alpha")
        alpha = values[0]
        extra = values[1] if len(values) > 1 else None
        curvature_length = (
            int(extra)
            if strategy in ("HvProd", "adaQN") and extra is not None
            else None
        )
        delta = extra if strategy == "GradDiff" else None
    if strategy in ("HvProd", "adaQN"):
        if curvature_length is None:
            raise ValueError(f"{strategy} needs alpha and curvature_length")
        return make_hyperparameters(
            float(alpha), curvature_length=curvature_length
        )
    if strategy == "GradDiff":
        if not regularization:
            delta = 0.0
        elif delta is None:
            raise ValueError("regularized methods need alpha and delta")
        return make_hyperparameters(float(alpha), delta=float(delta))
    return make_hyperparameters(float(alpha))


def minimize(
    problem: Problem,
    options: Optional[SQNOptions] = None,
    hyperparameters: Optional[
        Union[SQNHyperparameters, Sequence[NonJaxNumber]]
    ] = None,
    key: Optional[PRNGKey] = None,
) -> SQNResult:
    """Minimize ``problem`` with a stochastic quasi-Newton method.

    Parameters
    ----------
    problem : Problem
        Objective with sample-indexed value, gradient and
        Hessian-vector product.
    options : SQNOptions, optional
        Run configuration. Default is ``make_sqn_options()`` (SQN).
    hyperparameters : Union[SQNHyperparameters, Sequence], optional
        Hyperparameters of a single trial. When omitted,
        ``options.tuning_steps`` random trials are run and the best is
        returned.
    key : PRNGKey, optional
        Random key. Default is ``jax.random.PRNGKey(options.seed)``.

    Returns
    -------
    SQNResult
        Loss history, hyperparameters and final iterate of the best
        trial.

    Raises
    ------
    TypeError
        If ``problem`` does not provide the Problem interface.
    UnsupportedMethodError
        If the method is unknown and no curvature strategy is given.
    AllTrialsDivergedError
        If every trial diverged.
    ValueError
        If the hyperparameters or batch sizes are unusable.

    Examples
    --------
    >>> import jax
    >>> import sqnjax as sq
    >>> X = jax.random.normal(jax.random.PRNGKey(0), (1000, 10))
    >>> y = X @ jax.numpy.ones(10)
    >>> problem = sq.problems.make_least_squares(X, y)
    >>> options = sq.types.make_sqn_options(method="L-SDBFGS", batch_size=20)
    >>> result = sq.methods.minimize(problem, options, [0.1, 1e-3])
    """
    if not isinstance(problem, Problem):
        raise TypeError(
            "problem must provide w0, n, m, fun_obj, grad_obj and hess_obj"
        )
    if options is None:
        options = make_sqn_options()
    options, strategy = resolve_method(options)
    if key is None:
        key = jax.random.PRNGKey(options.seed)
    logger.info("=== Running %s ===", options.method)
    if hyperparameters is None:
        logger.warning(
            "Hyperparameters not provided for %s; tuning them over %d "
            "trials. Tuning takes time.",
            options.method,
            options.tuning_steps,
        )
        draw = partial(
            draw_hyperparameters,
            strategy=strategy,
            regularization=options.regularization,
        )
        num_trials: int = options.tuning_steps
    else:
        fixed: SQNHyperparameters = coerce_hyperparameters(
            hyperparameters, strategy, options.regularization
        )

        def draw(_key: PRNGKey) -> SQNHyperparameters:
            return fixed

        num_trials = 1
    run_trial = partial(_TRIALS[strategy], problem, options)
    result: SQNResult = tune(
        run_trial, draw, num_trials, key, method=options.method
    )
    logger.info("Optimization complete :: Reached maximum number of epochs")
    return result
