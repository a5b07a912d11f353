"""Empirical Fisher curvature for adaQN.

Extended Summary
----------------
adaQN replaces Hessian-vector products by the empirical Fisher matrix
``G^T G`` of the most recent stochastic gradients (rows of ``G``).
Applying it to a step needs two matrix-vector products and no
additional sampling.

Routine Listings
----------------
push_gradient : function
    Append a gradient, evicting the oldest once the container is full.
fisher_product : function
    Return ``G^T (G s)``.
fisher_gradients : function
    Return the live gradients ordered oldest to newest.
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, Float, Int, jaxtyped

from sqnjax.types import FisherContainer


@jax.jit
@jaxtyped(typechecker=beartype)
def push_gradient(
    container: FisherContainer, gradient: Float[Array, " n"]
) -> FisherContainer:
    """Append ``gradient`` as the newest row."""
    return container._replace(
        gradients=container.gradients.at[container.cursor].set(gradient),
        count=jnp.minimum(container.count + 1, container.capacity),
        cursor=jnp.mod(container.cursor + 1, container.capacity),
    )


@jax.jit
@jaxtyped(typechecker=beartype)
def fisher_product(
    container: FisherContainer, s: Float[Array, " n"]
) -> Float[Array, " n"]:
    """Apply the empirical Fisher matrix to ``s``.

    Empty rows are zero and contribute nothing.
    """
    return container.gradients.T @ (container.gradients @ s)


@jaxtyped(typechecker=beartype)
def fisher_gradients(container: FisherContainer) -> Float[Array, " k n"]:
    """Return the live gradients, oldest row first. Not jittable."""
    count: int = int(container.count)
    rows: Int[Array, " k"] = jnp.mod(
        container.cursor - count + jnp.arange(count), container.capacity
    )
    return container.gradients[rows]
