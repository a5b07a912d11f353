"""PyTree containers for quasi-Newton curvature information.

Extended Summary
----------------
This module provides the immutable PyTree structures that carry
curvature information between training steps. All of them are
fixed-capacity ring buffers so that they can be updated inside jitted
kernels without changing shape: a write cursor marks the slot that will
be overwritten next and a count tracks how many slots hold live data.

Routine Listings
----------------
CurvatureMemory : NamedTuple
    Bounded FIFO store of (s, y) curvature pairs plus the running
    gradient accumulators used by the ADAGRAD and RMS initializers.
FisherContainer : NamedTuple
    Bounded FIFO store of recent stochastic gradients (adaQN).
make_curvature_memory : function
    Factory function to create an empty CurvatureMemory.
make_fisher_container : function
    Factory function to create an empty FisherContainer.
INITIALIZATION_METHODS : tuple
    Recognized initial inverse Hessian scalings.

Notes
-----
The position of the i-th oldest live entry (i = 0 is the oldest) is
``(cursor - count + i) mod capacity``. Unused slots are kept at zero.
"""

import jax.numpy as jnp
from beartype import beartype
from beartype.typing import NamedTuple, Tuple
from jax.tree_util import register_pytree_node_class
from jaxtyping import Array, Float, Int, jaxtyped

INITIALIZATION_METHODS: Tuple[str, ...] = ("BB", "ADAGRAD", "RMS")


@register_pytree_node_class
class CurvatureMemory(NamedTuple):
    """Immutable ring buffer of curvature pairs.

    Attributes
    ----------
    s_pairs : Float[Array, " M n"]
        Step vectors, one per row.
    y_pairs : Float[Array, " M n"]
        Curvature vectors matching ``s_pairs`` row by row.
    count : Int[Array, " "]
        Number of live pairs, never larger than M.
    cursor : Int[Array, " "]
        Row that the next stored pair will occupy.
    adagrad_sum : Float[Array, " n"]
        Running sum of squared gradients.
    rms_sum : Float[Array, " n"]
        Exponential moving average of squared gradients.
    initialization : str
        Initial scaling rule, one of BB, ADAGRAD or RMS. Static.
    """

    s_pairs: Float[Array, " M n"]
    y_pairs: Float[Array, " M n"]
    count: Int[Array, " "]
    cursor: Int[Array, " "]
    adagrad_sum: Float[Array, " n"]
    rms_sum: Float[Array, " n"]
    initialization: str

    def tree_flatten(
        self,
    ) -> Tuple[
        Tuple[
            Float[Array, " M n"],
            Float[Array, " M n"],
            Int[Array, " "],
            Int[Array, " "],
            Float[Array, " n"],
            Float[Array, " n"],
        ],
        str,
    ]:
        """Flatten the CurvatureMemory, keeping the initializer static."""
        return (
            (
                self.s_pairs,
                self.y_pairs,
                self.count,
                self.cursor,
                self.adagrad_sum,
                self.rms_sum,
            ),
            self.initialization,
        )

    @classmethod
    def tree_unflatten(
        cls,
        aux_data: str,
        children: Tuple[
            Float[Array, " M n"],
            Float[Array, " M n"],
            Int[Array, " "],
            Int[Array, " "],
            Float[Array, " n"],
            Float[Array, " n"],
        ],
    ) -> "CurvatureMemory":
        """Unflatten the CurvatureMemory from its components."""
        return cls(*children, aux_data)

    @property
    def capacity(self) -> int:
        """Maximum number of pairs held at once."""
        return self.s_pairs.shape[0]


@register_pytree_node_class
class FisherContainer(NamedTuple):
    """Immutable ring buffer of recent stochastic gradients.

    Attributes
    ----------
    gradients : Float[Array, " F n"]
        Stored gradients, one per row.
    count : Int[Array, " "]
        Number of live gradients.
    cursor : Int[Array, " "]
        Row that the next gradient will occupy.
    """

    gradients: Float[Array, " F n"]
    count: Int[Array, " "]
    cursor: Int[Array, " "]

    def tree_flatten(
        self,
    ) -> Tuple[
        Tuple[Float[Array, " F n"], Int[Array, " "], Int[Array, " "]],
        None,
    ]:
        """Flatten the FisherContainer into a tuple of its components."""
        return ((self.gradients, self.count, self.cursor), None)

    @classmethod
    def tree_unflatten(
        cls,
        _aux_data: None,
        children: Tuple[
            Float[Array, " F n"], Int[Array, " "], Int[Array, " "]
        ],
    ) -> "FisherContainer":
        """Unflatten the FisherContainer from a tuple of its components."""
        return cls(*children)

    @property
    def capacity(self) -> int:
        """Maximum number of gradients held at once."""
        return self.gradients.shape[0]


@jaxtyped(typechecker=beartype)
def make_curvature_memory(
    dimension: int,
    capacity: int,
    initialization: str = "BB",
) -> CurvatureMemory:
    """Create an empty CurvatureMemory.

    Parameters
    ----------
    dimension : int
        Length n of the iterate.
    capacity : int
        Number of (s, y) pairs retained before the oldest is evicted.
    initialization : str, optional
        Initial inverse Hessian scaling used by the two-loop recursion:
        ``"BB"`` (Barzilai-Borwein scalar from the newest pair),
        ``"ADAGRAD"`` or ``"RMS"`` (diagonal from squared gradients).
        Default is ``"BB"``.

    Returns
    -------
    CurvatureMemory
        Memory with no live pairs and zeroed accumulators.

    Raises
    ------
    ValueError
        If ``dimension`` or ``capacity`` is not positive, or the
        initializer is unknown.
    """
    if dimension < 1:
        raise ValueError(f"dimension must be positive, got {dimension}")
    if capacity < 1:
        raise ValueError(f"capacity must be positive, got {capacity}")
    if initialization not in INITIALIZATION_METHODS:
        raise ValueError(
            f"Unknown initialization: {initialization}. "
            f"Expected one of {INITIALIZATION_METHODS}"
        )
    pairs: Float[Array, " M n"] = jnp.zeros(
        (capacity, dimension), dtype=jnp.float64
    )
    accumulator: Float[Array, " n"] = jnp.zeros(dimension, dtype=jnp.float64)
    return CurvatureMemory(
        s_pairs=pairs,
        y_pairs=pairs,
        count=jnp.asarray(0, dtype=jnp.int32),
        cursor=jnp.asarray(0, dtype=jnp.int32),
        adagrad_sum=accumulator,
        rms_sum=accumulator,
        initialization=initialization,
    )


@jaxtyped(typechecker=beartype)
def make_fisher_container(dimension: int, capacity: int) -> FisherContainer:
    """Create an empty FisherContainer.

    Parameters
    ----------
    dimension : int
        Length n of each stored gradient.
    capacity : int
        Number of gradients retained (``fisher_memory``).

    Returns
    -------
    FisherContainer
        Container with no live gradients.

    Raises
    ------
    ValueError
        If ``dimension`` or ``capacity`` is not positive.
    """
    if dimension < 1:
        raise ValueError(f"dimension must be positive, got {dimension}")
    if capacity < 1:
        raise ValueError(f"capacity must be positive, got {capacity}")
    return FisherContainer(
        gradients=jnp.zeros((capacity, dimension), dtype=jnp.float64),
        count=jnp.asarray(0, dtype=jnp.int32),
        cursor=jnp.asarray(0, dtype=jnp.int32),
    )
