"""poisson_fem: P1 finite elements for the 2D Poisson equation.

This package implements continuous piecewise-linear triangular elements for
-Δu = f with Dirichlet (and optional Neumann) boundary conditions.

Main components:
- Mesh2d: 2D triangular mesh generation and boundary facets
- FunctionSpace: global DOF map
- quadrature_rule, LagrangeP1, affine_map: reference element machinery
- assemble_system: global stiffness matrix and load vector assembly
- dirichlet_bc, apply_dirichlet, apply_neumann: boundary condition application
- LinearSolver: SPD sparse solve
- l2_error, max_error: error against an exact solution
- solve_poisson, convergence_study: high-level drivers

Example
-------
>>> from poisson_fem import Mesh2d, solve_poisson, QUADRATIC
>>>
>>> mesh = Mesh2d.unit_square(8, 8)
>>> result = solve_poisson(mesh, QUADRATIC.f, QUADRATIC.u_D, exact=QUADRATIC.u)
>>> result.error_max
"""

from .datastructures import (
    LEFT,
    RIGHT,
    BOTTOM,
    TOP,
    OTHER,
    BOUNDARY_TOL,
    Metrics,
    SolverParameters,
    SparseSystem,
)
from .exceptions import (
    FEMError,
    InvalidArgument,
    InconsistentMesh,
    DegenerateCell,
    SingularSystem,
    ConvergenceFailure,
)
from .mesh import Mesh2d, build_unit_square
from .quadrature import QuadratureRule, quadrature_rule, gauss_legendre
from .elements import (
    ReferenceElement,
    LagrangeP1,
    AffineMap,
    affine_map,
    affine_maps,
    get_element,
)
from .function_space import FunctionSpace
from .assembly import (
    assemble_stiffness,
    assemble_mass,
    assemble_load,
    assemble_system,
    color_cells,
)
from .boundary import (
    DirichletBC,
    locate_boundary_dofs,
    evaluate_dirichlet,
    dirichlet_bc,
    apply_dirichlet,
    apply_neumann,
)
from .linear_solver import LinearSolver, solve
from .error_norms import l2_error, max_error, h1_seminorm_error, convergence_rates
from .manufactured import (
    ManufacturedSolution,
    QUADRATIC,
    CUBIC,
    SINE,
    get_manufactured_solution,
)
from .solvers import PoissonResult, solve_poisson, convergence_study

__all__ = [
    # Constants and data structures
    "LEFT",
    "RIGHT",
    "BOTTOM",
    "TOP",
    "OTHER",
    "BOUNDARY_TOL",
    "Metrics",
    "SolverParameters",
    "SparseSystem",
    # Errors
    "FEMError",
    "InvalidArgument",
    "InconsistentMesh",
    "DegenerateCell",
    "SingularSystem",
    "ConvergenceFailure",
    # Mesh
    "Mesh2d",
    "build_unit_square",
    # Quadrature / basis
    "QuadratureRule",
    "quadrature_rule",
    "gauss_legendre",
    "ReferenceElement",
    "LagrangeP1",
    "AffineMap",
    "affine_map",
    "affine_maps",
    "get_element",
    # Function space
    "FunctionSpace",
    # Assembly
    "assemble_stiffness",
    "assemble_mass",
    "assemble_load",
    "assemble_system",
    "color_cells",
    # Boundary conditions
    "DirichletBC",
    "locate_boundary_dofs",
    "evaluate_dirichlet",
    "dirichlet_bc",
    "apply_dirichlet",
    "apply_neumann",
    # Linear solver
    "LinearSolver",
    "solve",
    # Errors
    "l2_error",
    "max_error",
    "h1_seminorm_error",
    "convergence_rates",
    # Manufactured solutions
    "ManufacturedSolution",
    "QUADRATIC",
    "CUBIC",
    "SINE",
    "get_manufactured_solution",
    # Drivers
    "PoissonResult",
    "solve_poisson",
    "convergence_study",
]
