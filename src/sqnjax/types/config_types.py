"""Run configuration, hyperparameters and result records.

Extended Summary
----------------
Immutable records describing one optimization run: the options that
select and configure the method, the hyperparameters of one trial, the
outcome of one trial, and the result returned to the caller. These are
plain NamedTuples holding Python values or concrete arrays; they are
never traced.

Routine Listings
----------------
SQNOptions : NamedTuple
    Per-run configuration.
SQNHyperparameters : NamedTuple
    Step size, curvature update length and regularization of one trial.
TrialOutcome : NamedTuple
    Loss history, final iterate and divergence flag of one trial.
SQNResult : NamedTuple
    Best trial promoted to the caller.
make_sqn_options : function
    Factory function to create validated SQNOptions.
make_hyperparameters : function
    Factory function to create validated SQNHyperparameters.
CURVATURE_STRATEGIES : tuple
    Strategies accepted for custom method names.
"""

import math

from beartype import beartype
from beartype.typing import NamedTuple, Optional, Tuple
from jaxtyping import Array, Float, jaxtyped

from .common_types import NonJaxNumber
from .optim_types import INITIALIZATION_METHODS

CURVATURE_STRATEGIES: Tuple[str, ...] = ("GradDiff", "HvProd")
DEFAULT_LBFGS_MEMORY: int = 20


class SQNOptions(NamedTuple):
    """Configuration of one optimization run.

    Attributes
    ----------
    method : str
        Method name, e.g. ``"SQN"``, ``"L-SDBFGS"`` or ``"adaQN"``.
    epochs : int
        Number of passes over the data per trial.
    batch_size : int
        Gradient batch size.
    batch_size_hess : int
        Batch size of Hessian-vector products.
    batch_size_fun : int
        Size of the adaQN monitoring set.
    lbfgs_memory : Union[int, float]
        Number of curvature pairs kept; ``math.inf`` selects a dense
        BFGS matrix.
    fisher_memory : int
        Number of gradients kept by adaQN.
    damping : bool
        Apply Powell damping to curvature pairs.
    regularization : bool
        Apply the delta-regularized BFGS update.
    h0 : str
        Initial inverse Hessian scaling: BB, ADAGRAD or RMS.
    verbose : bool
        Report per-epoch losses at INFO instead of DEBUG.
    tuning_steps : int
        Number of random trials when hyperparameters are not given.
    curvature_strategy : str, optional
        ``"GradDiff"`` or ``"HvProd"`` for method names not known to
        the dispatcher.
    seed : int
        Seed of the default random key.
    solver_maxiter : int
        Iteration cap of the regularized limited-memory linear solve.
    solver_tol : float
        Relative tolerance of that solve.
    """

    method: str
    epochs: int
    batch_size: int
    batch_size_hess: int
    batch_size_fun: int
    lbfgs_memory: NonJaxNumber
    fisher_memory: int
    damping: bool
    regularization: bool
    h0: str
    verbose: bool
    tuning_steps: int
    curvature_strategy: Optional[str]
    seed: int
    solver_maxiter: int
    solver_tol: float

    @property
    def infinite_memory(self) -> bool:
        """Whether the dense BFGS matrix replaces the pair memory."""
        return math.isinf(self.lbfgs_memory)


class SQNHyperparameters(NamedTuple):
    """Hyperparameters of one trial.

    Attributes
    ----------
    alpha : float
        Step size.
    curvature_length : int, optional
        Iterations between curvature updates (``L``), for the
        Hessian-vector and adaQN methods.
    delta : float, optional
        Regularization of the gradient-differencing methods.
    """

    alpha: float
    curvature_length: Optional[int] = None
    delta: Optional[float] = None


class TrialOutcome(NamedTuple):
    """Result of a single training trial.

    Attributes
    ----------
    loss_history : Float[Array, " E"]
        Average stochastic loss of every completed epoch.
    final_iterate : Float[Array, " n"]
        Iterate when the trial stopped.
    hyperparameters : SQNHyperparameters
        Hyperparameters the trial ran with.
    diverged : bool
        True when a non-finite loss or iterate stopped the trial.
    """

    loss_history: Float[Array, " E"]
    final_iterate: Float[Array, " n"]
    hyperparameters: SQNHyperparameters
    diverged: bool


class SQNResult(NamedTuple):
    """Best trial of a run.

    Attributes
    ----------
    loss_history : Float[Array, " E"]
        Per-epoch average loss, one entry per epoch.
    hyperparameters : SQNHyperparameters
        Hyperparameters of the winning trial.
    final_iterate : Float[Array, " n"]
        Final iterate of the winning trial.
    """

    loss_history: Float[Array, " E"]
    hyperparameters: SQNHyperparameters
    final_iterate: Float[Array, " n"]


def _check_positive(name: str, value: int) -> None:
    if value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")


@beartype
def make_sqn_options(
    method: str = "SQN",
    epochs: int = 20,
    batch_size: int = 256,
    batch_size_hess: Optional[int] = None,
    batch_size_fun: Optional[int] = None,
    lbfgs_memory: NonJaxNumber = DEFAULT_LBFGS_MEMORY,
    fisher_memory: int = 100,
    damping: bool = True,
    regularization: bool = True,
    h0: str = "BB",
    verbose: bool = False,
    tuning_steps: int = 10,
    curvature_strategy: Optional[str] = None,
    seed: int = 0,
    solver_maxiter: int = 20,
    solver_tol: float = 1e-6,
) -> SQNOptions:
    """Create validated SQNOptions.

    Parameters
    ----------
    method : str, optional
        Method name. Default is ``"SQN"``.
    epochs : int, optional
        Default is 20.
    batch_size : int, optional
        Default is 256.
    batch_size_hess : int, optional
        Default is ``10 * batch_size``.
    batch_size_fun : int, optional
        Default is ``batch_size``.
    lbfgs_memory : Union[int, float], optional
        Positive integer or ``math.inf``. Default is 20.
    fisher_memory : int, optional
        Default is 100.
    damping : bool, optional
        Default is True. Overridden per method by the dispatcher.
    regularization : bool, optional
        Default is True. Overridden per method by the dispatcher.
    h0 : str, optional
        BB, ADAGRAD or RMS. Default is ``"BB"``.
    verbose : bool, optional
        Default is False.
    tuning_steps : int, optional
        Default is 10.
    curvature_strategy : str, optional
        GradDiff or HvProd for custom method names. Default is None.
    seed : int, optional
        Default is 0.
    solver_maxiter : int, optional
        Default is 20.
    solver_tol : float, optional
        Default is 1e-6.

    Returns
    -------
    SQNOptions
        Validated options.

    Raises
    ------
    ValueError
        If a count is not positive, ``lbfgs_memory`` is neither a
        positive integer nor infinite, or a name is not recognized.
    """
    if batch_size_hess is None:
        batch_size_hess = 10 * batch_size
    if batch_size_fun is None:
        batch_size_fun = batch_size
    for name, value in (
        ("epochs", epochs),
        ("batch_size", batch_size),
        ("batch_size_hess", batch_size_hess),
        ("batch_size_fun", batch_size_fun),
        ("fisher_memory", fisher_memory),
        ("tuning_steps", tuning_steps),
        ("solver_maxiter", solver_maxiter),
    ):
        _check_positive(name, value)
    if isinstance(lbfgs_memory, float):
        if not math.isinf(lbfgs_memory) or lbfgs_memory < 0:
            raise ValueError(
                "lbfgs_memory must be a positive integer or math.inf, "
                f"got {lbfgs_memory}"
            )
    else:
        _check_positive("lbfgs_memory", lbfgs_memory)
    if h0 not in INITIALIZATION_METHODS:
        raise ValueError(
            f"Unknown h0: {h0}. Expected one of {INITIALIZATION_METHODS}"
        )
    if (
        curvature_strategy is not None
        and curvature_strategy not in CURVATURE_STRATEGIES
    ):
        raise ValueError(
            f"Unknown curvature_strategy: {curvature_strategy}. "
            f"Expected one of {CURVATURE_STRATEGIES}"
        )
    if solver_tol <= 0.0:
        raise ValueError(f"solver_tol must be positive, got {solver_tol}")
    return SQNOptions(
        method=method,
        epochs=epochs,
        batch_size=batch_size,
        batch_size_hess=batch_size_hess,
        batch_size_fun=batch_size_fun,
        lbfgs_memory=lbfgs_memory,
        fisher_memory=fisher_memory,
        damping=damping,
        regularization=regularization,
        h0=h0,
        verbose=verbose,
        tuning_steps=tuning_steps,
        curvature_strategy=curvature_strategy,
        seed=seed,
        solver_maxiter=solver_maxiter,
        solver_tol=solver_tol,
    )


@jaxtyped(typechecker=beartype)
def make_hyperparameters(
    alpha: NonJaxNumber,
    curvature_length: Optional[int] = None,
    delta: Optional[NonJaxNumber] = None,
) -> SQNHyperparameters:
    """Create validated SQNHyperparameters.

    Parameters
    ----------
    alpha : Union[int, float]
        Step size, must be positive.
    curvature_length : int, optional
        Curvature update length ``L``, at least 1.
    delta : Union[int, float], optional
        Regularization, must be non-negative.

    Returns
    -------
    SQNHyperparameters
        Hyperparameters with ``alpha`` and ``delta`` as floats.

    Raises
    ------
    ValueError
        If a value is out of range.
    """
    if not alpha > 0.0:
        raise ValueError(f"alpha must be positive, got {alpha}")
    if curvature_length is not None and curvature_length < 1:
        raise ValueError(
            f"curvature_length must be at least 1, got {curvature_length}"
        )
    if delta is not None and not delta >= 0.0:
        raise ValueError(f"delta must be non-negative, got {delta}")
    return SQNHyperparameters(
        alpha=float(alpha),
        curvature_length=curvature_length,
        delta=None if delta is None else float(delta),
    )


__all__: list[str] = [
    "CURVATURE_STRATEGIES",
    "DEFAULT_LBFGS_MEMORY",
    "SQNHyperparameters",
    "SQNOptions",
    "SQNResult",
    "TrialOutcome",
    "make_hyperparameters",
    "make_sqn_options",
]
