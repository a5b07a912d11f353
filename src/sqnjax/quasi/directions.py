"""Search directions of the regularized gradient-differencing methods.

Extended Summary
----------------
RES and SDBFGS (and their limited-memory versions) precondition the
stochastic gradient with a regularized quasi-Newton matrix and add a
small multiple ``Gamma = 0.1 delta`` of the gradient itself. With a
dense approximation ``B`` the direction is

    d = B^{-1} g + Gamma g

With a limited memory the inverse Hessian ``H`` of the two-loop
recursion is available instead, and the regularized inverse
``(H^{-1} + delta I)^{-1}`` is expanded with the Woodbury identity:

    d = g / delta - (H + I / delta)^{-1} g / delta^2 + Gamma g

The inner system is not necessarily definite when undamped pairs carry
negative curvature, and under ``RMS`` scaling every product moves the
diagonal of ``H``, so it is solved with conjugate gradients squared
(CGS) rather than plain conjugate gradients.

Routine Listings
----------------
make_bfgs_matrix : function
    Initial dense approximation, ``delta I`` or ``I``.
bfgs_direction : function
    Direction of the dense (infinite memory) methods.
regularized_lbfgs_direction : function
    Direction of the limited-memory methods with ``delta > 0``.
GAMMA_FACTOR : float
    Ratio ``Gamma / delta``.
"""

from functools import partial

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Tuple
from jaxtyping import Array, Bool, Float, jaxtyped

from sqnjax.types import CurvatureMemory, ScalarFloat
from sqnjax.utils.math import safe_divide

from .memory import two_loop

GAMMA_FACTOR: float = 0.1


@jaxtyped(typechecker=beartype)
def make_bfgs_matrix(
    dimension: int, delta: ScalarFloat
) -> Float[Array, " n n"]:
    """Return ``delta * I`` when ``delta > 0``, else the identity."""
    scale: Float[Array, " "] = jnp.where(
        jnp.asarray(delta) > 0.0, jnp.asarray(delta, dtype=jnp.float64), 1.0
    )
    return scale * jnp.eye(dimension, dtype=jnp.float64)


@jax.jit
@jaxtyped(typechecker=beartype)
def bfgs_direction(
    hessian: Float[Array, " n n"],
    gradient: Float[Array, " n"],
    delta: ScalarFloat,
) -> Float[Array, " n"]:
    """Return ``B^{-1} g + 0.1 delta g``."""
    return (
        jnp.linalg.solve(hessian, gradient)
        + GAMMA_FACTOR * delta * gradient
    )


@partial(jax.jit, static_argnums=(3, 4))
@jaxtyped(typechecker=beartype)
def regularized_lbfgs_direction(
    memory: CurvatureMemory,
    gradient: Float[Array, " n"],
    delta: ScalarFloat,
    solver_maxiter: int = 20,
    solver_tol: float = 1e-6,
) -> Tuple[Float[Array, " n"], CurvatureMemory]:
    """Direction of the regularized limited-memory methods.

    Parameters
    ----------
    memory : CurvatureMemory
        Memory defining the inverse Hessian ``H``.
    gradient : Float[Array, " n"]
        Stochastic gradient ``g``.
    delta : ScalarFloat
        Regularization, strictly positive.
    solver_maxiter : int, optional
        CGS iteration cap. Static. Default is 20.
    solver_tol : float, optional
        CGS relative residual tolerance. Static. Default is 1e-6.

    Returns
    -------
    direction : Float[Array, " n"]
        ``g / delta - (H + I / delta)^{-1} g / delta^2 + 0.1 delta g``.
    memory : CurvatureMemory
        Memory with its squared-gradient accumulators advanced once per
        operator application.

    Notes
    -----
    Every application of ``H`` goes through
    :func:`sqnjax.quasi.memory.two_loop`, which may move the ``RMS``
    diagonal between iterations. The memory therefore travels in the
    solver state, and the system is solved with the conjugate gradient
    squared method written as a ``jax.lax.while_loop``.
    """
    gradient_norm: Float[Array, " "] = jnp.linalg.norm(gradient)
    zeros: Float[Array, " n"] = jnp.zeros_like(gradient)

    def matvec(
        state_memory: CurvatureMemory, v: Float[Array, " n"]
    ) -> Tuple[Float[Array, " n"], CurvatureMemory]:
        hv, state_memory = two_loop(state_memory, v)
        return hv + v / delta, state_memory

    def cond_fn(carry: tuple) -> Bool[Array, " "]:
        _, residual, _, _, _, iteration, _, breakdown = carry
        return (
            (iteration < solver_maxiter)
            & (~breakdown)
            & (jnp.linalg.norm(residual) > solver_tol * gradient_norm)
        )

    def body_fn(carry: tuple) -> tuple:
        x, residual, p, q, rho_old, iteration, state_memory, _ = carry
        rho: Float[Array, " "] = jnp.dot(gradient, residual)
        beta: Float[Array, " "] = jnp.where(
            iteration == 0, 0.0, safe_divide(rho, rho_old, 0.0)
        )
        u: Float[Array, " n"] = residual + beta * q
        p = u + beta * (q + beta * p)
        v_hat: Float[Array, " n"]
        v_hat, state_memory = matvec(state_memory, p)
        sigma: Float[Array, " "] = jnp.dot(gradient, v_hat)
        alpha: Float[Array, " "] = safe_divide(rho, sigma, 0.0)
        q = u - alpha * v_hat
        u_hat: Float[Array, " n"] = u + q
        q_hat: Float[Array, " n"]
        q_hat, state_memory = matvec(state_memory, u_hat)
        x = x + alpha * u_hat
        residual = residual - alpha * q_hat
        breakdown: Bool[Array, " "] = (rho == 0.0) | (sigma == 0.0)
        return (
            x,
            residual,
            p,
            q,
            rho,
            iteration + 1,
            state_memory,
            breakdown,
        )

    initial: tuple = (
        zeros,
        gradient,
        zeros,
        zeros,
        jnp.asarray(1.0, dtype=gradient.dtype),
        jnp.asarray(0, dtype=jnp.int32),
        memory,
        jnp.asarray(False),
    )
    solution: Float[Array, " n"]
    solution, _, _, _, _, _, memory, _ = jax.lax.while_loop(
        cond_fn, body_fn, initial
    )
    direction: Float[Array, " n"] = (
        gradient / delta
        - solution / delta**2
        + GAMMA_FACTOR * delta * gradient
    )
    return direction, memory
