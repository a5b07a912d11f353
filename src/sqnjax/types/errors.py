"""Exceptions and warnings raised by sqnjax.

Routine Listings
----------------
SQNError : class
    Base class for all sqnjax errors.
AllTrialsDivergedError : class
    Every tuning trial produced a non-finite loss.
UnsupportedMethodError : class
    Unknown method name without a declared curvature strategy.
ConfigurationConflictWarning : class
    An option was auto-corrected to stay consistent with the method.

Notes
-----
A single diverging trial is not an error: it is reported through
``TrialOutcome.diverged`` and the tuner moves on. Only the case where
no trial survives is raised.
"""


class SQNError(Exception):
    """Base class for errors raised by sqnjax."""


class AllTrialsDivergedError(SQNError, RuntimeError):
    """Raised when no tuning trial finished with a finite loss."""

    def __init__(self, method: str, num_trials: int) -> None:
        self.method: str = method
        self.num_trials: int = num_trials
        super().__init__(
            f"All {num_trials} trial(s) of {method} diverged. Provide "
            "different hyperparameters, increase tuning_steps, or change "
            "the random seed."
        )


class UnsupportedMethodError(SQNError, ValueError):
    """Raised for an unknown method name with no curvature strategy."""

    def __init__(self, method: str) -> None:
        self.method: str = method
        super().__init__(
            f"Method {method!r} is not implemented. Pass one of the known "
            "methods or set curvature_strategy to 'GradDiff' or 'HvProd'."
        )


class ConfigurationConflictWarning(UserWarning):
    """Emitted when an option is overridden to fit the chosen method."""


__all__: list[str] = [
    "AllTrialsDivergedError",
    "ConfigurationConflictWarning",
    "SQNError",
    "UnsupportedMethodError",
]
