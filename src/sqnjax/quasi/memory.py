"""Limited-memory inverse Hessian built from curvature pairs.

Extended Summary
----------------
Operations on :class:`sqnjax.types.CurvatureMemory`: storing and
evicting (s, y) pairs, resetting the memory, and applying the implied
inverse Hessian approximation to a vector with the L-BFGS two-loop
recursion. Every operation is a pure function returning a new memory,
and every array keeps a fixed shape so the kernels compile once per
memory capacity.

Routine Listings
----------------
two_loop : function
    Apply the inverse Hessian approximation to a gradient and update
    the squared-gradient accumulators.
apply_inverse_hessian : function
    Apply the inverse Hessian approximation without touching the
    accumulators.
store_pair : function
    Append a pair, evicting the oldest once the memory is full.
store_pair_if : function
    Append a pair only where a boolean flag is set.
reset_memory : function
    Drop every pair while keeping the accumulators.
memory_pairs : function
    Return the live pairs ordered oldest to newest.

Notes
-----
The initial scaling H0 of the recursion is selected by the memory's
static ``initialization`` field:

- ``BB``: ``gamma = s^T y / y^T y`` of the newest pair, or 1 while the
  memory is empty (so an empty memory returns the gradient unchanged).
- ``ADAGRAD``: ``1 / sqrt(adagrad_sum + sqrt(eps))``, elementwise.
- ``RMS``: ``1 / sqrt(rms_sum + sqrt(eps))``, elementwise.

The accumulators are advanced by :func:`two_loop` only when the
initializer is BB or RMS. With ADAGRAD selected, ``adagrad_sum`` is
never advanced and H0 stays at ``eps**-0.25``.
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Tuple
from jax import lax
from jaxtyping import Array, Float, Int, jaxtyped

from sqnjax.types import CurvatureMemory, ScalarBool
from sqnjax.utils.math import SQRT_EPS, safe_divide, safe_reciprocal

RMS_DECAY: float = 0.9
_ACCUMULATING_INITIALIZERS: Tuple[str, ...] = ("BB", "RMS")


def _slot(
    memory: CurvatureMemory, position: Int[Array, " "]
) -> Int[Array, " "]:
    """Row index of the pair at ``position`` (0 is the oldest)."""
    return jnp.mod(memory.cursor - memory.count + position, memory.capacity)


def _initial_scaling(memory: CurvatureMemory) -> Float[Array, " ..."]:
    if memory.initialization == "ADAGRAD":
        return 1.0 / jnp.sqrt(memory.adagrad_sum + SQRT_EPS)
    if memory.initialization == "RMS":
        return 1.0 / jnp.sqrt(memory.rms_sum + SQRT_EPS)
    newest: Int[Array, " "] = _slot(memory, memory.count - 1)
    s_last: Float[Array, " n"] = memory.s_pairs[newest]
    y_last: Float[Array, " n"] = memory.y_pairs[newest]
    gamma: Float[Array, " "] = safe_divide(
        jnp.dot(s_last, y_last), jnp.dot(y_last, y_last), 1.0
    )
    return jnp.where(memory.count > 0, gamma, 1.0)


def _recursion(
    memory: CurvatureMemory,
    vector: Float[Array, " n"],
    initial_scaling: Float[Array, " ..."],
) -> Float[Array, " n"]:
    capacity: int = memory.capacity
    rho: Float[Array, " M"] = safe_reciprocal(
        jnp.sum(memory.s_pairs * memory.y_pairs, axis=1)
    )

    def newest_to_oldest(
        step: int, carry: Tuple[Float[Array, " n"], Float[Array, " M"]]
    ) -> Tuple[Float[Array, " n"], Float[Array, " M"]]:
        q, alphas = carry
        row = _slot(memory, memory.count - 1 - step)
        alpha = jnp.where(
            step < memory.count,
            rho[row] * jnp.dot(memory.s_pairs[row], q),
            0.0,
        )
        return q - alpha * memory.y_pairs[row], alphas.at[row].set(alpha)

    q, alphas = lax.fori_loop(
        0,
        capacity,
        newest_to_oldest,
        (vector, jnp.zeros(capacity, dtype=vector.dtype)),
    )

    def oldest_to_newest(
        step: int, r: Float[Array, " n"]
    ) -> Float[Array, " n"]:
        row = _slot(memory, step)
        beta = rho[row] * jnp.dot(memory.y_pairs[row], r)
        coefficient = jnp.where(step < memory.count, alphas[row] - beta, 0.0)
        return r + coefficient * memory.s_pairs[row]

    return lax.fori_loop(0, capacity, oldest_to_newest, initial_scaling * q)


@jax.jit
@jaxtyped(typechecker=beartype)
def two_loop(
    memory: CurvatureMemory,
    gradient: Float[Array, " n"],
) -> Tuple[Float[Array, " n"], CurvatureMemory]:
    """Apply the inverse Hessian approximation to a gradient.

    Parameters
    ----------
    memory : CurvatureMemory
        Current curvature memory.
    gradient : Float[Array, " n"]
        Stochastic gradient at the current iterate.

    Returns
    -------
    direction : Float[Array, " n"]
        ``H @ gradient``; the caller steps along ``-direction``.
    memory : CurvatureMemory
        Memory with the squared-gradient accumulators advanced when the
        initializer is BB or RMS, unchanged otherwise.

    Notes
    -----
    The accumulators are advanced before H0 is formed, so the RMS
    scaling already includes the current gradient. Pairs whose
    ``s^T y`` is zero contribute nothing to either loop.
    """
    if memory.initialization in _ACCUMULATING_INITIALIZERS:
        squared: Float[Array, " n"] = gradient**2
        memory = memory._replace(
            adagrad_sum=memory.adagrad_sum + squared,
            rms_sum=RMS_DECAY * memory.rms_sum + (1.0 - RMS_DECAY) * squared,
        )
    direction: Float[Array, " n"] = _recursion(
        memory, gradient, _initial_scaling(memory)
    )
    return direction, memory


@jax.jit
@jaxtyped(typechecker=beartype)
def apply_inverse_hessian(
    memory: CurvatureMemory,
    vector: Float[Array, " n"],
) -> Float[Array, " n"]:
    """Return ``H @ vector`` with the accumulators left untouched."""
    return _recursion(memory, vector, _initial_scaling(memory))


@jax.jit
@jaxtyped(typechecker=beartype)
def store_pair(
    memory: CurvatureMemory,
    s: Float[Array, " n"],
    y: Float[Array, " n"],
) -> CurvatureMemory:
    """Append ``(s, y)`` as the newest pair.

    Once the memory holds ``capacity`` pairs the oldest one is
    overwritten.

    Parameters
    ----------
    memory : CurvatureMemory
        Current curvature memory.
    s : Float[Array, " n"]
        Step vector.
    y : Float[Array, " n"]
        Curvature vector.

    Returns
    -------
    memory : CurvatureMemory
        Memory holding the new pair.
    """
    return memory._replace(
        s_pairs=memory.s_pairs.at[memory.cursor].set(s),
        y_pairs=memory.y_pairs.at[memory.cursor].set(y),
        count=jnp.minimum(memory.count + 1, memory.capacity),
        cursor=jnp.mod(memory.cursor + 1, memory.capacity),
    )


@jax.jit
@jaxtyped(typechecker=beartype)
def store_pair_if(
    memory: CurvatureMemory,
    s: Float[Array, " n"],
    y: Float[Array, " n"],
    accept: ScalarBool,
) -> CurvatureMemory:
    """Append ``(s, y)`` when ``accept`` holds, else return ``memory``."""
    stored: CurvatureMemory = store_pair(memory, s, y)
    return jax.tree_util.tree_map(
        lambda new, old: jnp.where(accept, new, old), stored, memory
    )


@jax.jit
@jaxtyped(typechecker=beartype)
def reset_memory(memory: CurvatureMemory) -> CurvatureMemory:
    """Drop all pairs; the accumulators are kept."""
    return memory._replace(
        s_pairs=jnp.zeros_like(memory.s_pairs),
        y_pairs=jnp.zeros_like(memory.y_pairs),
        count=jnp.zeros_like(memory.count),
        cursor=jnp.zeros_like(memory.cursor),
    )


@jaxtyped(typechecker=beartype)
def memory_pairs(
    memory: CurvatureMemory,
) -> Tuple[Float[Array, " k n"], Float[Array, " k n"]]:
    """Return the live pairs as ``(S, Y)``, oldest row first.

    Not jittable: the number of rows depends on ``memory.count``.
    """
    count: int = int(memory.count)
    rows: Int[Array, " k"] = jnp.mod(
        memory.cursor - count + jnp.arange(count), memory.capacity
    )
    return memory.s_pairs[rows], memory.y_pairs[rows]

