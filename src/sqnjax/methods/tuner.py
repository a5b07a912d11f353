"""Random-search hyperparameter tuning.

Extended Summary
----------------
When the caller does not supply hyperparameters, a run consists of
``tuning_steps`` independent trials whose hyperparameters are drawn at
random. The trial with the strictly lowest final-epoch loss wins;
diverged trials are skipped, and a run in which every trial diverged
raises :class:`sqnjax.types.AllTrialsDivergedError`.

Routine Listings
----------------
draw_hyperparameters : function
    Draw a random hyperparameter set for a strategy.
select_best_trial : function
    Pick the best finished trial from a stream of outcomes.
tune : function
    Draw, run and select trials.
ALPHA_RANGE : tuple
    Log-uniform range of the step size.
CURVATURE_LENGTH_RANGE : tuple
    Closed integer range of ``L``.
DELTA_RANGE : tuple
    Log-uniform range of the regularization.
"""

import logging
import math

import jax
from beartype.typing import Callable, Iterable, Optional, Tuple

from sqnjax.types import (
    AllTrialsDivergedError,
    PRNGKey,
    SQNHyperparameters,
    SQNResult,
    TrialOutcome,
)

from .sampling import log_uniform, uniform_integer

logger = logging.getLogger(__name__)

ALPHA_RANGE: Tuple[float, float] = (1e-6, 1e2)
CURVATURE_LENGTH_RANGE: Tuple[int, int] = (2, 64)
DELTA_RANGE: Tuple[float, float] = (1e-5, 1e-1)


def draw_hyperparameters(
    key: PRNGKey, strategy: str, regularization: bool
) -> SQNHyperparameters:
    """Draw hyperparameters for one trial.

    Parameters
    ----------
    key : PRNGKey
        Random key.
    strategy : str
        ``"HvProd"`` and ``"adaQN"`` draw ``alpha`` and ``L``;
        ``"GradDiff"`` draws ``alpha`` and ``delta``; ``"SGD"`` draws
        ``alpha`` only.
    regularization : bool
        When False, ``delta`` is fixed at 0.

    Returns
    -------
    SQNHyperparameters
        Random hyperparameters.
    """
    alpha_key, extra_key = jax.random.split(key)
    alpha: float = log_uniform(alpha_key, *ALPHA_RANGE)
    if strategy in ("HvProd", "adaQN"):
        return SQNHyperparameters(
            alpha=alpha,
            curvature_length=uniform_integer(
                extra_key, *CURVATURE_LENGTH_RANGE
            ),
        )
    if strategy == "GradDiff":
        delta: float = (
            log_uniform(extra_key, *DELTA_RANGE) if regularization else 0.0
        )
        return SQNHyperparameters(alpha=alpha, delta=delta)
    return SQNHyperparameters(alpha=alpha)


def select_best_trial(
    outcomes: Iterable[TrialOutcome], method: str = "method"
) -> SQNResult:
    """Return the finished trial with the lowest final-epoch loss.

    Parameters
    ----------
    outcomes : Iterable[TrialOutcome]
        Trial outcomes, consumed lazily in order.
    method : str, optional
        Method name used in the error message.

    Returns
    -------
    SQNResult
        The winning trial. Ties keep the earlier trial.

    Raises
    ------
    AllTrialsDivergedError
        If every outcome diverged or there were none.
    """
    best: Optional[TrialOutcome] = None
    best_loss: float = math.inf
    num_trials: int = 0
    for outcome in outcomes:
        num_trials += 1
        if outcome.diverged or outcome.loss_history.shape[0] == 0:
            continue
        final_loss: float = float(outcome.loss_history[-1])
        if final_loss < best_loss:
            best, best_loss = outcome, final_loss
    if best is None:
        raise AllTrialsDivergedError(method, num_trials)
    return SQNResult(
        loss_history=best.loss_history,
        hyperparameters=best.hyperparameters,
        final_iterate=best.final_iterate,
    )


def tune(
    run_trial: Callable[[SQNHyperparameters, PRNGKey], TrialOutcome],
    draw: Callable[[PRNGKey], SQNHyperparameters],
    num_trials: int,
    key: PRNGKey,
    method: str = "method",
) -> SQNResult:
    """Run ``num_trials`` trials and keep the best.

    Parameters
    ----------
    run_trial : Callable[[SQNHyperparameters, PRNGKey], TrialOutcome]
        Runs one trial.
    draw : Callable[[PRNGKey], SQNHyperparameters]
        Produces the hyperparameters of a trial.
    num_trials : int
        Number of trials.
    key : PRNGKey
        Random key; every trial gets an independent split.
    method : str, optional
        Method name used in log and error messages.

    Returns
    -------
    SQNResult
        Best trial.

    Raises
    ------
    AllTrialsDivergedError
        If no trial finished with a finite loss.
    """
    trial_keys = jax.random.split(key, num_trials)

    def outcomes() -> Iterable[TrialOutcome]:
        for index in range(num_trials):
            draw_key, run_key = jax.random.split(trial_keys[index])
            hyperparameters: SQNHyperparameters = draw(draw_key)
            outcome: TrialOutcome = run_trial(hyperparameters, run_key)
            if num_trials > 1:
                logger.info(
                    "Tuning :: Percent done: %3.1f",
                    100.0 * (index + 1) / num_trials,
                )
            yield outcome

    return select_best_trial(outcomes(), method)
