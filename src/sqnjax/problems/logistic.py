"""Multinomial logistic (softmax) regression.

Extended Summary
----------------
Cross-entropy of a linear softmax classifier with an intercept. The
design matrix is augmented with a column of ones, and the parameter
vector holds the ``(f, c)`` weight matrix in row-major order, where
``f`` is the number of features plus one and ``c`` the number of
classes. On a sample subset ``I`` with one-hot labels ``Y``:

    f_I(w) = -(1 / |I|) sum_i sum_k Y_ik log softmax(X_i W)_k
             + (lambda / 2) ||w||^2

The gradient is ``X_I^T (P - Y_I) / |I|`` (flattened) and the exact
Hessian-vector product is ``X_I^T (P o Z - P o rowsum(P o Z)) / |I|``
with ``Z = X_I V`` and ``P`` the softmax probabilities.

Routine Listings
----------------
LogisticRegression : NamedTuple
    PyTree holding the augmented data, labels and starting point.
make_logistic_regression : function
    Factory function to create a validated LogisticRegression problem.
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import NamedTuple, Optional, Tuple, Union
from jax.tree_util import register_pytree_node_class
from jaxtyping import Array, Float, Int, jaxtyped

from sqnjax.types import ScalarFloat


def _weights(
    w: Float[Array, " n"], features: Float[Array, " b f"], labels: Array
) -> Float[Array, " f c"]:
    return w.reshape(features.shape[1], labels.shape[1])


@jax.jit
@jaxtyped(typechecker=beartype)
def _softmax_value(
    features: Float[Array, " b f"],
    labels: Float[Array, " b c"],
    regularization: Float[Array, " "],
    w: Float[Array, " n"],
) -> Float[Array, " "]:
    log_probs: Float[Array, " b c"] = jax.nn.log_softmax(
        features @ _weights(w, features, labels), axis=1
    )
    cross_entropy: Float[Array, " "] = -jnp.mean(
        jnp.sum(labels * log_probs, axis=1)
    )
    return cross_entropy + 0.5 * regularization * jnp.dot(w, w)


@jax.jit
@jaxtyped(typechecker=beartype)
def _softmax_gradient(
    features: Float[Array, " b f"],
    labels: Float[Array, " b c"],
    regularization: Float[Array, " "],
    w: Float[Array, " n"],
) -> Float[Array, " n"]:
    probs: Float[Array, " b c"] = jax.nn.softmax(
        features @ _weights(w, features, labels), axis=1
    )
    grad: Float[Array, " f c"] = (
        features.T @ (probs - labels) / features.shape[0]
    )
    return grad.ravel() + regularization * w


@jax.jit
@jaxtyped(typechecker=beartype)
def _softmax_hvp(
    features: Float[Array, " b f"],
    labels: Float[Array, " b c"],
    regularization: Float[Array, " "],
    w: Float[Array, " n"],
    v: Float[Array, " n"],
) -> Float[Array, " n"]:
    probs: Float[Array, " b c"] = jax.nn.softmax(
        features @ _weights(w, features, labels), axis=1
    )
    directional: Float[Array, " b c"] = features @ _weights(
        v, features, labels
    )
    weighted: Float[Array, " b c"] = probs * directional
    curvature: Float[Array, " b c"] = weighted - probs * jnp.sum(
        weighted, axis=1, keepdims=True
    )
    hv: Float[Array, " f c"] = features.T @ curvature / features.shape[0]
    return hv.ravel() + regularization * v


@register_pytree_node_class
class LogisticRegression(NamedTuple):
    """Softmax regression problem.

    Attributes
    ----------
    features : Float[Array, " m f"]
        Design matrix with a trailing column of ones.
    labels : Float[Array, " m c"]
        One-hot labels.
    regularization : Float[Array, " "]
        Ridge coefficient lambda.
    w0 : Float[Array, " n"]
        Starting iterate, ``n = f * c``.
    """

    features: Float[Array, " m f"]
    labels: Float[Array, " m c"]
    regularization: Float[Array, " "]
    w0: Float[Array, " n"]

    def tree_flatten(
        self,
    ) -> Tuple[
        Tuple[
            Float[Array, " m f"],
            Float[Array, " m c"],
            Float[Array, " "],
            Float[Array, " n"],
        ],
        None,
    ]:
        """Flatten the LogisticRegression into its components."""
        return (
            (self.features, self.labels, self.regularization, self.w0),
            None,
        )

    @classmethod
    def tree_unflatten(
        cls,
        _aux_data: None,
        children: Tuple[
            Float[Array, " m f"],
            Float[Array, " m c"],
            Float[Array, " "],
            Float[Array, " n"],
        ],
    ) -> "LogisticRegression":
        """Unflatten the LogisticRegression from its components."""
        return cls(*children)

    @property
    def n(self) -> int:
        """Number of parameters."""
        return self.features.shape[1] * self.labels.shape[1]

    @property
    def m(self) -> int:
        """Number of samples."""
        return self.features.shape[0]

    @property
    def num_classes(self) -> int:
        """Number of classes."""
        return self.labels.shape[1]

    def _subset(
        self, indices: Optional[Int[Array, " b"]]
    ) -> Tuple[Float[Array, " b f"], Float[Array, " b c"]]:
        if indices is None:
            return self.features, self.labels
        return self.features[indices], self.labels[indices]

    def fun_obj(
        self,
        w: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " "]:
        """Cross-entropy on ``indices`` (all samples if None)."""
        features, labels = self._subset(indices)
        return _softmax_value(features, labels, self.regularization, w)

    def grad_obj(
        self,
        w: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " n"]:
        """Gradient on ``indices`` (all samples if None)."""
        features, labels = self._subset(indices)
        return _softmax_gradient(features, labels, self.regularization, w)

    def hess_obj(
        self,
        w: Float[Array, " n"],
        v: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " n"]:
        """Hessian-vector product on ``indices`` (all samples if None)."""
        features, labels = self._subset(indices)
        return _softmax_hvp(features, labels, self.regularization, w, v)

    def predict(self, w: Float[Array, " n"]) -> Int[Array, " m"]:
        """Most probable class of every sample."""
        return jnp.argmax(
            self.features @ w.reshape(self.features.shape[1], -1), axis=1
        )


@jaxtyped(typechecker=beartype)
def make_logistic_regression(
    features: Float[Array, " m d"],
    labels: Union[Int[Array, " m"], Float[Array, " m c"]],
    num_classes: Optional[int] = None,
    regularization: ScalarFloat = 0.0,
    w0: Optional[Float[Array, " n"]] = None,
) -> LogisticRegression:
    """Create a validated LogisticRegression problem.

    Parameters
    ----------
    features : Float[Array, " m d"]
        Raw features; a column of ones is appended.
    labels : Union[Int[Array, " m"], Float[Array, " m c"]]
        Integer class labels in ``[0, num_classes)`` or one-hot rows.
    num_classes : int, optional
        Number of classes for integer labels. Default is
        ``max(labels) + 1``.
    regularization : ScalarFloat, optional
        Ridge coefficient lambda. Default is 0.0.
    w0 : Float[Array, " n"], optional
        Starting iterate of length ``(d + 1) * c``. Default is zeros.

    Returns
    -------
    LogisticRegression
        Problem with float64 data.

    Raises
    ------
    ValueError
        If fewer than two classes are present, the regularization is
        negative, or ``w0`` has the wrong length.
    """
    features_arr: Float[Array, " m d"] = jnp.asarray(
        features, dtype=jnp.float64
    )
    augmented: Float[Array, " m f"] = jnp.concatenate(
        [features_arr, jnp.ones((features_arr.shape[0], 1), jnp.float64)],
        axis=1,
    )
    if labels.ndim == 1:
        if num_classes is None:
            num_classes = int(jnp.max(labels)) + 1
        one_hot: Float[Array, " m c"] = jax.nn.one_hot(
            labels, num_classes, dtype=jnp.float64
        )
    else:
        one_hot = jnp.asarray(labels, dtype=jnp.float64)
    if one_hot.shape[1] < 2:
        raise ValueError(
            f"at least two classes are required, got {one_hot.shape[1]}"
        )
    if float(regularization) < 0.0:
        raise ValueError(
            f"regularization must be non-negative, got {regularization}"
        )
    size: int = augmented.shape[1] * one_hot.shape[1]
    if w0 is None:
        w0 = jnp.zeros(size, dtype=jnp.float64)
    if w0.shape[0] != size:
        raise ValueError(f"w0 must have length {size}, got {w0.shape[0]}")
    return LogisticRegression(
        features=augmented,
        labels=one_hot,
        regularization=jnp.asarray(regularization, dtype=jnp.float64),
        w0=jnp.asarray(w0, dtype=jnp.float64),
    )
