"""Objectives accepted by the optimizers.

Extended Summary
----------------
Defines the structural :class:`Problem` interface and two reference
empirical-risk problems with exact gradients and Hessian-vector
products.

Submodules
----------
protocol
    The Problem interface
least_squares
    Ridge-regularized linear least squares
logistic
    Multinomial logistic regression with intercept

Routine Listings
----------------
Problem : Protocol
    Sample-indexed objective with value, gradient and Hessian-vector
    product
LeastSquares : PyTree
    Linear least-squares problem
LogisticRegression : PyTree
    Softmax regression problem
make_least_squares : function
    Factory function for LeastSquares creation
make_logistic_regression : function
    Factory function for LogisticRegression creation
"""

from .least_squares import (
    LeastSquares,
    least_squares_gradient,
    least_squares_hvp,
    least_squares_value,
    make_least_squares,
)
from .logistic import LogisticRegression, make_logistic_regression
from .protocol import Problem

__all__: list[str] = [
    "LeastSquares",
    "LogisticRegression",
    "Problem",
    "least_squares_gradient",
    "least_squares_hvp",
    "least_squares_value",
    "make_least_squares",
    "make_logistic_regression",
]
