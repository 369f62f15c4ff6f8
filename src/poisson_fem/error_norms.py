"""Discretization error norms against a known exact solution."""

from __future__ import annotations

from typing import Callable

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .elements import affine_maps
from .exceptions import InvalidArgument
from .function_space import FunctionSpace, ScalarField, evaluate_field
from .quadrature import quadrature_rule

GradientField = Callable[
    [NDArray[np.float64], NDArray[np.float64]],
    tuple[NDArray[np.float64], NDArray[np.float64]],
]


def _check_solution(solution: ArrayLike, n: int) -> NDArray[np.float64]:
    u = np.asarray(solution, dtype=np.float64)
    if u.shape != (n,):
        raise InvalidArgument(f"Solution has shape {u.shape}, expected ({n},)")
    return u


def l2_error(
    solution: ArrayLike,
    exact_fn: ScalarField,
    V: FunctionSpace,
    quadrature_order: int = 5,
) -> float:
    """Compute L2 error ||u_h - u||_2 by cellwise quadrature."""
    u = _check_solution(solution, V.dof_count)
    rule = quadrature_rule(quadrature_order)
    maps = affine_maps(V.mesh.cell_coordinates)

    N = V.element.basis_functions(rule.points)  # (n_quad, n_loc)
    u_h = u[V.cell_to_dofs] @ N.T  # (n_cells, n_quad)

    x_phys = maps.to_physical(rule.points)
    u_e = evaluate_field(exact_fn, x_phys[..., 0], x_phys[..., 1])

    error_sq = np.abs(maps.detJ) @ ((u_h - u_e) ** 2 @ rule.weights)
    return float(np.sqrt(error_sq))


def max_error(
    solution: ArrayLike, exact_fn: ScalarField, dof_coords: NDArray[np.float64]
) -> float:
    """Compute max_d |u_h[d] - u(x_d)| over the DOFs."""
    dof_coords = np.asarray(dof_coords, dtype=np.float64)
    u = _check_solution(solution, len(dof_coords))
    u_e = evaluate_field(exact_fn, dof_coords[:, 0], dof_coords[:, 1])
    return float(np.max(np.abs(u - u_e), initial=0.0))


def h1_seminorm_error(
    solution: ArrayLike,
    grad_fn: GradientField,
    V: FunctionSpace,
    quadrature_order: int = 5,
) -> float:
    """Compute H1 seminorm error |u_h - u|_1 = ||∇(u_h - u)||_2."""
    u = _check_solution(solution, V.dof_count)
    rule = quadrature_rule(quadrature_order)
    maps = affine_maps(V.mesh.cell_coordinates)

    grads = maps.physical_gradients(V.element.gradients(rule.points))
    grad_h = np.einsum("mqak,ma->mqk", grads, u[V.cell_to_dofs])

    x_phys = maps.to_physical(rule.points)
    gx, gy = grad_fn(x_phys[..., 0], x_phys[..., 1])
    diff_x = grad_h[..., 0] - np.broadcast_to(np.asarray(gx, dtype=np.float64), grad_h.shape[:2])
    diff_y = grad_h[..., 1] - np.broadcast_to(np.asarray(gy, dtype=np.float64), grad_h.shape[:2])

    error_sq = np.abs(maps.detJ) @ ((diff_x**2 + diff_y**2) @ rule.weights)
    return float(np.sqrt(error_sq))


def convergence_rates(h: ArrayLike, errors: ArrayLike) -> NDArray[np.float64]:
    """Observed orders log(e_i/e_{i+1}) / log(h_i/h_{i+1}) between successive meshes."""
    h = np.asarray(h, dtype=np.float64)
    errors = np.asarray(errors, dtype=np.float64)
    if h.shape != errors.shape or h.ndim != 1:
        raise InvalidArgument("h and errors must be 1D arrays of equal length")
    return np.log(errors[:-1] / errors[1:]) / np.log(h[:-1] / h[1:])
