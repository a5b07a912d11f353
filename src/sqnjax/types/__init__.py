"""Type definitions and factory functions for sqnjax.

Extended Summary
----------------
Core type definitions for the sqnjax package including PyTree
containers for curvature information, configuration and result
records, scalar type aliases, and the exception hierarchy.

Routine Listings
----------------
:func:`make_curvature_memory`
    Factory function for CurvatureMemory creation.
:func:`make_fisher_container`
    Factory function for FisherContainer creation.
:func:`make_sqn_options`
    Factory function for SQNOptions creation.
:func:`make_hyperparameters`
    Factory function for SQNHyperparameters creation.
:class:`CurvatureMemory`
    PyTree ring buffer of (s, y) curvature pairs.
:class:`FisherContainer`
    PyTree ring buffer of recent stochastic gradients.
:class:`SQNOptions`
    Per-run configuration record.
:class:`SQNHyperparameters`
    Hyperparameters of a single trial.
:class:`TrialOutcome`
    Outcome of a single trial.
:class:`SQNResult`
    Best trial returned to the caller.
:class:`SQNError`
    Base exception.
:class:`AllTrialsDivergedError`
    Raised when every tuning trial diverged.
:class:`UnsupportedMethodError`
    Raised for unknown methods without a curvature strategy.
:class:`ConfigurationConflictWarning`
    Warning for auto-corrected options.
:obj:`NonJaxNumber`
    Type alias for Python numeric types.
:obj:`PRNGKey`
    Type alias for JAX random keys.
:obj:`ScalarBool`
    Type alias for boolean scalars.
:obj:`ScalarFloat`
    Type alias for floating scalars.
:obj:`ScalarInteger`
    Type alias for integer scalars.
:obj:`ScalarNumeric`
    Type alias for real scalars.
"""

from .common_types import (
    NonJaxNumber,
    PRNGKey,
    ScalarBool,
    ScalarFloat,
    ScalarInteger,
    ScalarNumeric,
)
from .config_types import (
    CURVATURE_STRATEGIES,
    DEFAULT_LBFGS_MEMORY,
    SQNHyperparameters,
    SQNOptions,
    SQNResult,
    TrialOutcome,
    make_hyperparameters,
    make_sqn_options,
)
from .errors import (
    AllTrialsDivergedError,
    ConfigurationConflictWarning,
    SQNError,
    UnsupportedMethodError,
)
from .optim_types import (
    INITIALIZATION_METHODS,
    CurvatureMemory,
    FisherContainer,
    make_curvature_memory,
    make_fisher_container,
)

__all__: list[str] = [
    "CURVATURE_STRATEGIES",
    "DEFAULT_LBFGS_MEMORY",
    "INITIALIZATION_METHODS",
    "AllTrialsDivergedError",
    "ConfigurationConflictWarning",
    "CurvatureMemory",
    "FisherContainer",
    "NonJaxNumber",
    "PRNGKey",
    "SQNError",
    "SQNHyperparameters",
    "SQNOptions",
    "SQNResult",
    "ScalarBool",
    "ScalarFloat",
    "ScalarInteger",
    "ScalarNumeric",
    "TrialOutcome",
    "UnsupportedMethodError",
    "make_curvature_memory",
    "make_fisher_container",
    "make_hyperparameters",
    "make_sqn_options",
]
