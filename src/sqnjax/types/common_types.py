"""Scalar and key type aliases shared across sqnjax.

Extended Summary
----------------
Type aliases used in the jaxtyping/beartype annotations of every
sqnjax module. Scalars may arrive either as Python numbers (static
hyperparameters, option values) or as zero-dimensional JAX arrays
(values traced inside jitted kernels), so each alias accepts both.

Routine Listings
----------------
NonJaxNumber : TypeAlias
    Python int or float.
ScalarBool : TypeAlias
    Python bool or 0-d boolean array.
ScalarFloat : TypeAlias
    Python float or 0-d floating array.
ScalarInteger : TypeAlias
    Python int or 0-d integer array.
ScalarNumeric : TypeAlias
    Any real scalar, Python or JAX.
PRNGKey : TypeAlias
    A JAX random key (legacy uint32 pair or typed key).
"""

from beartype.typing import TypeAlias, Union
from jaxtyping import Array, Bool, Float, Int, Num, PRNGKeyArray

NonJaxNumber: TypeAlias = Union[int, float]
ScalarBool: TypeAlias = Union[bool, Bool[Array, " "]]
ScalarFloat: TypeAlias = Union[float, Float[Array, " "]]
ScalarInteger: TypeAlias = Union[int, Int[Array, " "]]
ScalarNumeric: TypeAlias = Union[int, float, Num[Array, " "]]
PRNGKey: TypeAlias = PRNGKeyArray

__all__: list[str] = [
    "NonJaxNumber",
    "PRNGKey",
    "ScalarBool",
    "ScalarFloat",
    "ScalarInteger",
    "ScalarNumeric",
]
