"""Common utility functions used throughout the code.

Submodules
----------
math
    Guarded arithmetic for curvature kernels

Routine Listings
----------------
safe_divide : function
    Division with a finite fallback
safe_reciprocal : function
    Reciprocal that yields zero where it would not be finite
SQRT_EPS : float
    Square root of float64 machine epsilon
"""

from .math import SQRT_EPS, safe_divide, safe_reciprocal

__all__: list[str] = [
    "SQRT_EPS",
    "safe_divide",
    "safe_reciprocal",
]
