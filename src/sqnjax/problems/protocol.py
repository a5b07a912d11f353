"""Interface every objective must provide.

Extended Summary
----------------
The optimizers only need sample-indexed evaluations of an empirical
risk ``f(w) = (1/m) sum_i f_i(w)``: its value, gradient and
Hessian-vector product on a subset of the ``m`` samples. Any object
with the members below qualifies; no base class is required.

Routine Listings
----------------
Problem : Protocol
    Structural type of an objective.
"""

from beartype.typing import Optional, Protocol, runtime_checkable
from jaxtyping import Array, Float, Int


@runtime_checkable
class Problem(Protocol):
    """Sample-indexed objective.

    Attributes
    ----------
    w0 : Float[Array, " n"]
        Starting iterate.
    n : int
        Number of parameters.
    m : int
        Number of samples.

    Notes
    -----
    ``indices`` holds sample indices in ``[0, m)``, possibly repeated.
    ``None`` means the full dataset. Values are averaged over the
    selected samples.
    """

    w0: Float[Array, " n"]

    @property
    def n(self) -> int: ...

    @property
    def m(self) -> int: ...

    def fun_obj(
        self,
        w: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " "]: ...

    def grad_obj(
        self,
        w: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " n"]: ...

    def hess_obj(
        self,
        w: Float[Array, " n"],
        v: Float[Array, " n"],
        indices: Optional[Int[Array, " b"]] = None,
    ) -> Float[Array, " n"]: ...
