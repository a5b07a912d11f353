"""Quasi-Newton building blocks.

Extended Summary
----------------
Jittable kernels that maintain curvature information and turn it into
search directions: the limited-memory two-loop recursion, the curvature
pair rules of the different method families, the dense BFGS update and
its regularized directions, and the empirical Fisher product of adaQN.

Submodules
----------
memory
    Ring-buffer storage of curvature pairs and the two-loop recursion
pairs
    Powell damping, acceptance tests and BFGS matrix updates
directions
    Regularized search directions
fisher
    Empirical Fisher matrix of recent gradients

Routine Listings
----------------
apply_inverse_hessian : function
    Apply the limited-memory inverse Hessian without side effects
bfgs_direction : function
    Direction of the dense regularized methods
bfgs_update : function
    Damped, regularized rank-two BFGS update
curvature_ratio : function
    Ratio s^T y / y^T y used by the acceptance tests
fisher_gradients : function
    Live gradients of a FisherContainer, oldest first
fisher_product : function
    Empirical Fisher matrix applied to a vector
gradient_difference_pair : function
    Regularized gradient difference
gradient_difference_update : function
    Memory update of the gradient-differencing methods
hessian_vector_update : function
    Memory update of the Hessian-vector-product methods
make_bfgs_matrix : function
    Initial dense BFGS approximation
memory_pairs : function
    Live pairs of a CurvatureMemory, oldest first
powell_damped_pair : function
    Powell-damped step for a limited-memory approximation
powell_theta : function
    Powell damping coefficient
push_gradient : function
    Append a gradient to a FisherContainer
regularized_lbfgs_direction : function
    Direction of the regularized limited-memory methods
reset_memory : function
    Drop all curvature pairs
store_pair : function
    Append a curvature pair
store_pair_if : function
    Conditionally append a curvature pair
two_loop : function
    Two-loop recursion with accumulator update
"""

from .directions import (
    GAMMA_FACTOR,
    bfgs_direction,
    make_bfgs_matrix,
    regularized_lbfgs_direction,
)
from .fisher import fisher_gradients, fisher_product, push_gradient
from .memory import (
    apply_inverse_hessian,
    memory_pairs,
    reset_memory,
    store_pair,
    store_pair_if,
    two_loop,
)
from .pairs import (
    FISHER_RHO_THRESHOLD,
    HESSIAN_RHO_THRESHOLD,
    POWELL_FACTOR,
    bfgs_update,
    curvature_ratio,
    gradient_difference_pair,
    gradient_difference_update,
    hessian_vector_update,
    powell_damped_pair,
    powell_theta,
)

__all__: list[str] = [
    "FISHER_RHO_THRESHOLD",
    "GAMMA_FACTOR",
    "HESSIAN_RHO_THRESHOLD",
    "POWELL_FACTOR",
    "apply_inverse_hessian",
    "bfgs_direction",
    "bfgs_update",
    "curvature_ratio",
    "fisher_gradients",
    "fisher_product",
    "gradient_difference_pair",
    "gradient_difference_update",
    "hessian_vector_update",
    "make_bfgs_matrix",
    "memory_pairs",
    "powell_damped_pair",
    "powell_theta",
    "push_gradient",
    "regularized_lbfgs_direction",
    "reset_memory",
    "store_pair",
    "store_pair_if",
    "two_loop",
]
