"""Ridge-regularized linear least squares.

Extended Summary
----------------
The objective on a sample subset ``I`` is

    f_I(w) = 1 / (2 |I|) ||X_I w - y_I||^2 + (lambda / 2) ||w||^2

with gradient ``X_I^T (X_I w - y_I) / |I| + lambda w`` and Hessian
``X_I^T X_I / |I| + lambda I``. It is the reference problem for
convergence tests because its minimizer is available in closed form.

Routine Listings
----------------
LeastSquares : NamedTuple
    PyTree holding the data, regularization and starting point.
make_least_squares : function
    Factory function to create a validated LeastSquares problem.
least_squares_value : function
    Objective value on a data subset.
least_squares_gradient : function
    Gradient on a data subset.
least_squares_hvp : function
    Hessian-vector product on a data subset.
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import NamedTuple, Optional, Tuple
from jax.tree_util import register_pytree_node_class
from jaxtyping import Array, Float, Int, jaxtyped

from sqnjax.types import ScalarFloat


@jax.jit
@jaxtyped(typechecker=beartype)
def least_squares_value(
    features: Float[Array, " b n"],
    targets: Float[Array, " b"],
    regularization: Float[Array, " "],
    w: Float[Array, " n"],
) -> Float[Array, " "]:
    """Objective value on the rows of ``features``."""
    residual: Float[Array, " b"] = features @ w - targets
    return 0.5 * jnp.mean(residual**2) + 0.5 * regularization * jnp.dot(w, w)


@jax.jit
@jaxtyped(typechecker=beartype)
def least_squares_gradient(
    features: Float[Array, " b n"],
    targets: Float[Array, " b"],
    regularization: Float[Array, " "],
    w: Float[Array, " n"],
) -> Float[Array, " n"]:
    """Gradient on the rows of ``features``."""
    residual: Float[Array, " b"] = features @ w - targets
    return features.T @ residual / features.shape[0] + regularization * w


@jax.jit
@jaxtyped(typechecker=beartype)
def least_squares_hvp(
    features: Float[Array, " b n"],
    regularization: Float[Array, " "],
    v: Float[Array, " n"],
) -> Float[Array, " n"]:
    """Hessian-vector product on the rows of ``features``."""
    return features.T @ (features @ v) / features.shape[0] + (
        regularization * v
    )


@register_pytree_node_class
class LeastSquares(NamedTuple):
    """Least-squares problem.

    Attributes
    ----------
    features : Float[Array, " m n"]
        Design matrix, one sample per row.
    targets : Float[Array, " m"]
        Responses.
    regularization : Float[Array, " "]
        Ridge coefficient lambda.
    w0 : Float[Array, " n"]
        Starting iterate.
    """

    features: Float[Array, " m n"]
    targets: Float[Array, " m"]
    regularization: Float[Array, " "]
    w0: Float[Array, " n"]

    def tree_flatten(
        self,
    ) -> Tuple[
        Tuple[
            Float[Array, " m n"],
            Float[Array, " m"],
            Float[Array, " "],
            Float[Array, " n"],
        ],
        None,
    ]:
        """Flatten the LeastSquares into a tuple of its components."""
        return (
            (self.features, self.targets, self.regularization, self.w0),
            None,
        )

    @classmethod
    def tree_unflatten(
        cls,
        _aux_data: None,
        children: Tuple[
            Float[Array, " m n"],
            Float[Array, " m"],
            Float[Array, " "],
            Float[Array, " n"],
        ],
    ) -> "LeastSquares":
        """Unflatten the LeastSquares from a tuple of its components."""
        return cls(*children)

    @property
    def n(self) -> int:
        """Number of parameters."""
        return self.features.shape[1]

    @property
    def m(self) -> int:
        """Number of samples."""
        return self.features.shape[0]

    def _subset(
        self, indices: Optional[Int[Array, " b"]]
    ) -> Tuple[Float[Array, " b n"], Float[Array, " b"]]:
        if indices is None:
            return self.features, self.targets
        return self.features[indices], self.targets[indices]

    def fun_obj(
        self,
        w: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " "]:
        """Objective value on ``indices`` (all samples if None)."""
        features, targets = self._subset(indices)
        return least_squares_value(features, targets, self.regularization, w)

    def grad_obj(
        self,
        w: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " n"]:
        """Gradient on ``indices`` (all samples if None)."""
        features, targets = self._subset(indices)
        return least_squares_gradient(
            features, targets, self.regularization, w
        )

    def hess_obj(
        self,
        w: Float[Array, " n"],
        v: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " n"]:
        """Hessian-vector product on ``indices``; independent of ``w``."""
        features, _ = self._subset(indices)
        return least_squares_hvp(features, self.regularization, v)


@jaxtyped(typechecker=beartype)
def make_least_squares(
    features: Float[Array, " m n"],
    targets: Float[Array, " m"],
    regularization: Optional[ScalarFloat] = None,
    w0: Optional[Float[Array, " n"]] = None,
) -> LeastSquares:
    """Create a validated LeastSquares problem.

    Parameters
    ----------
    features : Float[Array, " m n"]
        Design matrix, one sample per row.
    targets : Float[Array, " m"]
        Responses.
    regularization : ScalarFloat, optional
        Ridge coefficient lambda. Default is ``1 / m``.
    w0 : Float[Array, " n"], optional
        Starting iterate. Default is zeros.

    Returns
    -------
    LeastSquares
        Problem with float64 data.

    Raises
    ------
    ValueError
        If the regularization is negative.
    """
    features_arr: Float[Array, " m n"] = jnp.asarray(
        features, dtype=jnp.float64
    )
    targets_arr: Float[Array, " m"] = jnp.asarray(targets, dtype=jnp.float64)
    if regularization is None:
        regularization = 1.0 / features_arr.shape[0]
    if float(regularization) < 0.0:
        raise ValueError(
            f"regularization must be non-negative, got {regularization}"
        )
    if w0 is None:
        w0 = jnp.zeros(features_arr.shape[1], dtype=jnp.float64)
    return LeastSquares(
        features=features_arr,
        targets=targets_arr,
        regularization=jnp.asarray(regularization, dtype=jnp.float64),
        w0=jnp.asarray(w0, dtype=jnp.float64),
    )
