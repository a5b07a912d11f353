"""Curvature pair construction and acceptance.

Extended Summary
----------------
Stochastic quasi-Newton methods differ mainly in how they turn a step
``s`` and a curvature vector ``y`` into an update of the Hessian
approximation. This module collects those rules:

- Powell damping, which blends ``s`` with ``H y`` (limited memory) or
  ``y`` with ``B s`` (dense BFGS) so that the stored pair keeps enough
  positive curvature.
- The rho test, which keeps an undamped pair only if
  ``s^T y / y^T y`` exceeds a threshold.
- The regularized dense BFGS update used by RES and SDBFGS.

Routine Listings
----------------
powell_theta : function
    Powell damping coefficient.
curvature_ratio : function
    ``s^T y / y^T y`` with a zero fallback.
powell_damped_pair : function
    Damped step ``r = theta s + (1 - theta) H y``.
hessian_vector_update : function
    Memory update of the Hessian-vector-product methods (SQN, DSQN).
gradient_difference_pair : function
    Regularized gradient difference ``g_new - g_old - delta s``.
gradient_difference_update : function
    Memory update of the limited-memory gradient-differencing methods.
bfgs_update : function
    Damped, regularized rank-two update of a dense BFGS matrix.
POWELL_FACTOR : float
    Curvature fraction enforced by Powell damping.
FISHER_RHO_THRESHOLD : float
    Rho threshold of adaQN.

Notes
-----
With ``lhs = s^T y`` and ``rhs = 0.2 y^T H y``, the damping coefficient
is 1 when ``lhs >= rhs`` and otherwise

.. math::
    \\theta = \\frac{0.8\\, y^T H y}{y^T H y - s^T y}

which is the same as ``4 rhs / (rhs / 0.2 - lhs)``. The coefficient is
clipped to ``[0, 1]``.
"""

from functools import partial

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Tuple
from jaxtyping import Array, Bool, Float, jaxtyped

from sqnjax.types import CurvatureMemory, ScalarFloat
from sqnjax.utils.math import SQRT_EPS, safe_divide

from .memory import store_pair, store_pair_if, two_loop

POWELL_FACTOR: float = 0.2
HESSIAN_RHO_THRESHOLD: float = SQRT_EPS
FISHER_RHO_THRESHOLD: float = 1e-4


@jax.jit
@jaxtyped(typechecker=beartype)
def powell_theta(lhs: ScalarFloat, rhs: ScalarFloat) -> Float[Array, " "]:
    """Powell damping coefficient.

    Parameters
    ----------
    lhs : ScalarFloat
        Curvature along the step, ``s^T y``.
    rhs : ScalarFloat
        ``POWELL_FACTOR`` times the curvature of the current
        approximation (``y^T H y`` or ``s^T B s``).

    Returns
    -------
    theta : Float[Array, " "]
        1 when ``lhs >= rhs``, otherwise the Powell coefficient, always
        within ``[0, 1]``.
    """
    lhs_arr: Float[Array, " "] = jnp.asarray(lhs, dtype=jnp.float64)
    rhs_arr: Float[Array, " "] = jnp.asarray(rhs, dtype=jnp.float64)
    damped: Float[Array, " "] = safe_divide(
        (1.0 - POWELL_FACTOR) / POWELL_FACTOR * rhs_arr,
        rhs_arr / POWELL_FACTOR - lhs_arr,
        1.0,
    )
    theta: Float[Array, " "] = jnp.where(lhs_arr >= rhs_arr, 1.0, damped)
    return jnp.clip(theta, 0.0, 1.0)


@jax.jit
@jaxtyped(typechecker=beartype)
def curvature_ratio(
    s: Float[Array, " n"], y: Float[Array, " n"]
) -> Float[Array, " "]:
    """Return ``s^T y / y^T y``, or 0 when ``y`` vanishes."""
    return safe_divide(jnp.dot(s, y), jnp.dot(y, y), 0.0)


@jax.jit
@jaxtyped(typechecker=beartype)
def powell_damped_pair(
    memory: CurvatureMemory,
    s: Float[Array, " n"],
    y: Float[Array, " n"],
) -> Tuple[Float[Array, " n"], Float[Array, " "], CurvatureMemory]:
    """Damped step for a limited-memory approximation.

    Parameters
    ----------
    memory : CurvatureMemory
        Memory defining the current inverse Hessian ``H``.
    s : Float[Array, " n"]
        Step.
    y : Float[Array, " n"]
        Curvature vector.

    Returns
    -------
    r : Float[Array, " n"]
        ``theta s + (1 - theta) H y``.
    theta : Float[Array, " "]
        Damping coefficient.
    memory : CurvatureMemory
        Memory with its squared-gradient accumulators advanced.

    Notes
    -----
    ``H y`` is taken from :func:`sqnjax.quasi.memory.two_loop` twice,
    once for ``theta`` and once for ``r``, and each evaluation advances
    the accumulators. Under ``RMS`` scaling the second product is
    therefore computed with the updated diagonal.
    """
    hy: Float[Array, " n"]
    hy, memory = two_loop(memory, y)
    theta: Float[Array, " "] = powell_theta(
        jnp.dot(s, y), POWELL_FACTOR * jnp.dot(y, hy)
    )
    hy, memory = two_loop(memory, y)
    return theta * s + (1.0 - theta) * hy, theta, memory


@partial(jax.jit, static_argnums=(3,))
@jaxtyped(typechecker=beartype)
def hessian_vector_update(
    memory: CurvatureMemory,
    s: Float[Array, " n"],
    y: Float[Array, " n"],
    damping: bool,
) -> Tuple[CurvatureMemory, Bool[Array, " "]]:
    """Update the memory with a Hessian-vector-product pair.

    Parameters
    ----------
    memory : CurvatureMemory
        Current memory.
    s : Float[Array, " n"]
        Difference of two consecutive averaged iterates.
    y : Float[Array, " n"]
        Subsampled Hessian applied to ``s``.
    damping : bool
        Store the Powell-damped pair ``(r, y)`` unconditionally instead
        of testing the undamped pair. Static.

    Returns
    -------
    memory : CurvatureMemory
        Updated memory. Damping also advances its accumulators.
    accepted : Bool[Array, " "]
        Whether a pair was stored.
    """
    if damping:
        r: Float[Array, " n"]
        r, _, memory = powell_damped_pair(memory, s, y)
        return store_pair(memory, r, y), jnp.asarray(True)
    accepted: Bool[Array, " "] = (
        curvature_ratio(s, y) > HESSIAN_RHO_THRESHOLD
    )
    return store_pair_if(memory, s, y, accepted), accepted


@jax.jit
@jaxtyped(typechecker=beartype)
def gradient_difference_pair(
    s: Float[Array, " n"],
    gradient_old: Float[Array, " n"],
    gradient_new: Float[Array, " n"],
    delta: ScalarFloat,
) -> Float[Array, " n"]:
    """Return ``gradient_new - gradient_old - delta * s``.

    Both gradients must come from the same sample indices.
    """
    return gradient_new - gradient_old - delta * s


@partial(jax.jit, static_argnums=(3,))
@jaxtyped(typechecker=beartype)
def gradient_difference_update(
    memory: CurvatureMemory,
    s: Float[Array, " n"],
    y: Float[Array, " n"],
    damping: bool,
) -> CurvatureMemory:
    """Store ``(r, y)``, with ``r`` the damped step or ``s`` itself."""
    if damping:
        r: Float[Array, " n"]
        r, _, memory = powell_damped_pair(memory, s, y)
        return store_pair(memory, r, y)
    return store_pair(memory, s, y)


@partial(jax.jit, static_argnums=(4,))
@jaxtyped(typechecker=beartype)
def bfgs_update(
    hessian: Float[Array, " n n"],
    s: Float[Array, " n"],
    y: Float[Array, " n"],
    delta: ScalarFloat,
    damping: bool,
) -> Tuple[Float[Array, " n n"], Bool[Array, " "]]:
    """Rank-two update of a dense BFGS Hessian approximation.

    Parameters
    ----------
    hessian : Float[Array, " n n"]
        Current approximation ``B``.
    s : Float[Array, " n"]
        Step.
    y : Float[Array, " n"]
        Regularized gradient difference.
    delta : ScalarFloat
        Regularization added as ``delta * I`` after the update.
    damping : bool
        Replace ``y`` by ``r = theta y + (1 - theta) B s``. Static.

    Returns
    -------
    hessian : Float[Array, " n n"]
        ``B + r r^T / s^T r - B s s^T B / s^T B s + delta I``, or the
        input unchanged when a denominator vanishes or the result is
        not finite.
    applied : Bool[Array, " "]
        Whether the update was applied.
    """
    bs: Float[Array, " n"] = hessian @ s
    sbs: Float[Array, " "] = jnp.dot(s, bs)
    r: Float[Array, " n"] = y
    if damping:
        theta: Float[Array, " "] = powell_theta(
            jnp.dot(s, y), POWELL_FACTOR * sbs
        )
        r = theta * y + (1.0 - theta) * bs
    sr: Float[Array, " "] = jnp.dot(s, r)
    updated: Float[Array, " n n"] = (
        hessian
        + jnp.outer(r, r) / jnp.where(sr != 0.0, sr, 1.0)
        - jnp.outer(bs, bs) / jnp.where(sbs != 0.0, sbs, 1.0)
        + delta * jnp.eye(hessian.shape[0], dtype=hessian.dtype)
    )
    applied: Bool[Array, " "] = (
        (sr != 0.0) & (sbs != 0.0) & jnp.all(jnp.isfinite(updated))
    )
    return jnp.where(applied, updated, hessian), applied
