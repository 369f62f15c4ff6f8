"""High-level Poisson solvers: full pipeline and convergence studies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .assembly import assemble_system
from .boundary import apply_dirichlet, apply_neumann, dirichlet_bc
from .datastructures import Metrics, SolverParameters
from .error_norms import convergence_rates, h1_seminorm_error, l2_error, max_error
from .function_space import FunctionSpace, ScalarField
from .linear_solver import LinearSolver
from .manufactured import ManufacturedSolution
from .mesh import Mesh2d

log = logging.getLogger(__name__)


@dataclass
class PoissonResult:
    """Outputs handed to reporting/plotting: geometry, solution and errors."""

    function_space: FunctionSpace
    solution: NDArray[np.float64]
    metrics: Metrics

    @property
    def mesh(self) -> Mesh2d:
        return self.function_space.mesh

    @property
    def error_l2(self) -> float:
        return self.metrics.error_l2

    @property
    def error_max(self) -> float:
        return self.metrics.error_max


def solve_poisson(
    mesh: Mesh2d,
    f_func: ScalarField,
    bc_func: ScalarField,
    degree: int = 1,
    exact: ScalarField | None = None,
    params: SolverParameters | None = None,
    quadrature_order: int = 2,
    dirichlet_sides: Iterable[int | str] | None = None,
    neumann_func: ScalarField | None = None,
    neumann_sides: Iterable[int | str] | None = None,
) -> PoissonResult:
    """
    Solve -Δu = f with u = bc_func on the Dirichlet boundary.

    Parameters
    ----------
    mesh : Mesh2d
        Triangulated domain
    f_func, bc_func : callable
        Source term and Dirichlet data, fn(x, y) on numpy arrays
    degree : int
        Polynomial degree of the Lagrange space
    exact : callable, optional
        Exact solution; when given, L2 and max errors are filled in
    params : SolverParameters, optional
        Linear solver configuration (direct solve by default)
    quadrature_order : int
        Degree of exactness of the assembly quadrature
    dirichlet_sides : iterable, optional
        Restrict Dirichlet data to these sides (default: whole boundary)
    neumann_func : callable, optional
        Outward normal derivative g = ∂u/∂n, applied on `neumann_sides`

    Returns
    -------
    PoissonResult
    """
    V = FunctionSpace.build(mesh, degree)
    system = assemble_system(V, f_func, quadrature_order)

    if neumann_func is not None:
        system = apply_neumann(system, V, neumann_func, neumann_sides)

    bc = dirichlet_bc(V, bc_func, dirichlet_sides)
    system = apply_dirichlet(system, bc)

    solver = LinearSolver(params)
    u = solver.solve(system.matrix, system.rhs)

    metrics = solver.metrics
    metrics.nonodes = mesh.nonodes
    metrics.noelms = mesh.noelms
    metrics.n_dirichlet = len(bc)
    metrics.h = mesh.h
    if exact is not None:
        metrics.error_l2 = l2_error(u, exact, V)
        metrics.error_max = max_error(u, exact, V.dof_coordinates)
        log.info(f"L2 error = {metrics.error_l2:.6e}, max error = {metrics.error_max:.6e}")

    return PoissonResult(V, u, metrics)


def convergence_study(
    resolutions: Iterable[int],
    problem: ManufacturedSolution,
    degree: int = 1,
    params: SolverParameters | None = None,
    quadrature_order: int = 2,
) -> pd.DataFrame:
    """
    Solve `problem` on n x n unit-square meshes and tabulate errors and rates.

    Returns
    -------
    DataFrame
        One row per resolution: n, h, dof_count, error_l2, error_max,
        error_h1, rate_l2, rate_h1 (rates are NaN on the first row).
    """
    rows = []
    for n in resolutions:
        mesh = Mesh2d.unit_square(n, n)
        result = solve_poisson(
            mesh,
            problem.f,
            problem.u_D,
            degree=degree,
            exact=problem.u,
            params=params,
            quadrature_order=quadrature_order,
        )
        error_h1 = h1_seminorm_error(result.solution, problem.grad, result.function_space)
        rows.append(
            {
                "n": n,
                "h": mesh.h,
                "dof_count": result.function_space.dof_count,
                "error_l2": result.error_l2,
                "error_max": result.error_max,
                "error_h1": error_h1,
            }
        )
        log.info(
            f"Elements: {n}x{n}, h = {mesh.h:.6f}, L2 error = {result.error_l2:.6e}, "
            f"H1 error = {error_h1:.6e}"
        )

    df = pd.DataFrame(rows)
    for norm in ("l2", "h1"):
        rates = convergence_rates(df["h"], df[f"error_{norm}"]) if len(df) > 1 else []
        df[f"rate_{norm}"] = np.concatenate([[np.nan], rates])[: len(df)]
    return df
