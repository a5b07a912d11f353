"""Random sampling and epoch accounting.

Extended Summary
----------------
All randomness in sqnjax flows from explicit ``jax.random`` keys, so a
run is reproducible from its key alone. Mini-batches are drawn
uniformly with replacement. Each method family consumes a different
number of samples per iteration, which fixes how many iterations make
up one epoch.

Routine Listings
----------------
sample_indices : function
    Draw a mini-batch of sample indices with replacement.
log_uniform : function
    Draw a float whose base-10 logarithm is uniform.
uniform_integer : function
    Draw an integer uniformly from a closed range.
sgd_batches : function
    Iterations per epoch of SGD.
hessian_vector_batches : function
    Iterations per epoch of SQN and DSQN.
gradient_difference_batches : function
    Iterations per epoch of the gradient-differencing methods.
adaqn_batches : function
    Iterations per epoch of adaQN.
"""

import math

import jax
from beartype import beartype
from jaxtyping import Array, Int, jaxtyped

from sqnjax.types import PRNGKey


@jaxtyped(typechecker=beartype)
def sample_indices(
    key: PRNGKey, num_samples: int, batch_size: int
) -> Int[Array, " b"]:
    """Draw ``batch_size`` indices from ``[0, num_samples)``."""
    return jax.random.randint(key, (batch_size,), 0, num_samples)


@beartype
def log_uniform(key: PRNGKey, low: float, high: float) -> float:
    """Return ``10**u`` with ``u`` uniform on ``[log10 low, log10 high]``."""
    exponent = jax.random.uniform(
        key, minval=math.log10(low), maxval=math.log10(high)
    )
    return float(10.0**exponent)


@beartype
def uniform_integer(key: PRNGKey, low: int, high: int) -> int:
    """Return an integer drawn uniformly from ``[low, high]``."""
    return int(jax.random.randint(key, (), low, high + 1))


def sgd_batches(num_samples: int, batch_size: int) -> int:
    return num_samples // batch_size


def hessian_vector_batches(
    num_samples: int,
    batch_size: int,
    batch_size_hess: int,
    curvature_length: int,
) -> int:
    """Iterations per epoch when every ``L`` steps add a Hessian batch.

    Each iteration costs one gradient batch plus ``1 / L`` of a
    Hessian-vector batch.
    """
    return math.floor(
        num_samples / (batch_size + batch_size_hess / curvature_length)
    )


def gradient_difference_batches(num_samples: int, batch_size: int) -> int:
    """Two gradient evaluations per iteration."""
    return num_samples // (2 * batch_size)


def adaqn_batches(
    num_samples: int, batch_size: int, batch_size_fun: int
) -> int:
    """Gradient batches left after paying for the monitoring set."""
    return math.floor(num_samples // batch_size - batch_size_fun / batch_size)
