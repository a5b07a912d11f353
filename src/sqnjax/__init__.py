"""Stochastic quasi-Newton optimization in JAX.

Extended Summary
----------------
A collection of stochastic quasi-Newton methods for empirical risk
minimization: SQN and DSQN (Hessian-vector curvature), oBFGS, oLBFGS,
RES, SDBFGS and their damped and limited-memory variants (gradient
differencing), and adaQN (empirical Fisher curvature), together with a
random-search hyperparameter tuner. Curvature kernels are jitted and
all randomness is driven by explicit JAX keys.

Routine Listings
----------------
:mod:`methods`
    Training loops, tuner and the minimize entry point.
:mod:`problems`
    Problem interface and reference objectives.
:mod:`quasi`
    Curvature memory, pair rules and search directions.
:mod:`types`
    PyTrees, configuration records and exceptions.
:mod:`utils`
    Common utility functions used throughout the code.

Examples
--------
>>> import jax
>>> import sqnjax as sq
>>> X = jax.random.normal(jax.random.PRNGKey(0), (2000, 20))
>>> y = X @ jax.numpy.linspace(-1.0, 1.0, 20)
>>> problem = sq.problems.make_least_squares(X, y)
>>> options = sq.types.make_sqn_options(method="SQN", batch_size=50)
>>> result = sq.methods.minimize(problem, options, [0.05, 10])
>>> result.loss_history.shape
(20,)

Notes
-----
Importing the package enables 64-bit precision in JAX.
"""

import os
from importlib.metadata import version

# Enable multi-threaded CPU execution for JAX (before importing JAX)
os.environ.setdefault(
    "XLA_FLAGS",
    "--xla_cpu_multi_thread_eigen=true intra_op_parallelism_threads=0",
)

# Enable 64-bit precision in JAX (must be set before importing submodules)
import jax  # noqa: E402

jax.config.update("jax_enable_x64", True)

from . import (  # noqa: E402, I001
    types,
    utils,
    quasi,
    problems,
    methods,
)

__version__: str = version("sqnjax")

__all__: list[str] = [
    "__version__",
    "methods",
    "problems",
    "quasi",
    "types",
    "utils",
]
