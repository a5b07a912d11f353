"""Guarded arithmetic used by the curvature kernels.

Extended Summary
----------------
Quasi-Newton updates divide by inner products such as ``s^T y`` or
``y^T y`` that can vanish for degenerate curvature pairs. The helpers
here return a caller-chosen fallback instead of ``inf`` or ``nan`` so
that a degenerate pair never poisons a search direction.

Routine Listings
----------------
safe_divide : function
    Divide, returning a fallback where the result is not finite.
safe_reciprocal : function
    Reciprocal that yields zero for zero or overflowing inputs.
SQRT_EPS : float
    Square root of float64 machine epsilon.
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, Bool, Float, jaxtyped

from sqnjax.types import ScalarFloat

SQRT_EPS: float = float(jnp.sqrt(jnp.finfo(jnp.float64).eps))


@jax.jit
@jaxtyped(typechecker=beartype)
def safe_divide(
    numerator: Float[Array, " ..."],
    denominator: Float[Array, " ..."],
    fallback: ScalarFloat = 0.0,
) -> Float[Array, " ..."]:
    """Elementwise ``numerator / denominator`` with a finite fallback.

    Parameters
    ----------
    numerator : Float[Array, " ..."]
        Dividend.
    denominator : Float[Array, " ..."]
        Divisor, broadcast against ``numerator``.
    fallback : ScalarFloat, optional
        Value used where the divisor is zero or the quotient is not
        finite. Default is 0.0.

    Returns
    -------
    quotient : Float[Array, " ..."]
        Guarded quotient.
    """
    nonzero: Bool[Array, " ..."] = denominator != 0.0
    quotient: Float[Array, " ..."] = numerator / jnp.where(
        nonzero, denominator, 1.0
    )
    valid: Bool[Array, " ..."] = jnp.logical_and(
        nonzero, jnp.isfinite(quotient)
    )
    return jnp.where(valid, quotient, fallback)


@jax.jit
@jaxtyped(typechecker=beartype)
def safe_reciprocal(value: Float[Array, " ..."]) -> Float[Array, " ..."]:
    """Return ``1 / value``, or zero where that is not finite."""
    return safe_divide(jnp.ones_like(value), value, 0.0)
