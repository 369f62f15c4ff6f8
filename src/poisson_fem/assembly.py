"""Global assembly of the Poisson bilinear and linear forms.

Element contributions are computed for all cells at once by numba kernels and
then scattered additively: a DOF shared by several cells receives the sum of
their contributions.
"""

from __future__ import annotations

import logging

import numpy as np
from numba import njit
from numpy.typing import NDArray
from scipy import sparse

from .datastructures import SparseSystem
from .elements import AffineMap, affine_maps
from .function_space import FunctionSpace, ScalarField, evaluate_field
from .quadrature import QuadratureRule, quadrature_rule

log = logging.getLogger(__name__)


@njit
def _stiffness_core(grads, weights, abs_det):
    """Ke[e, i, j] = sum_q w_q (grad N_i . grad N_j) |detJ_e|."""
    n_elem, n_quad, n_loc, _ = grads.shape
    Ke_all = np.zeros((n_elem, n_loc, n_loc))
    for e in range(n_elem):
        for q in range(n_quad):
            wq = weights[q] * abs_det[e]
            for i in range(n_loc):
                gx = grads[e, q, i, 0]
                gy = grads[e, q, i, 1]
                for j in range(n_loc):
                    Ke_all[e, i, j] += wq * (gx * grads[e, q, j, 0] + gy * grads[e, q, j, 1])
    return Ke_all


@njit
def _mass_core(N, weights, abs_det):
    """Me[e, i, j] = sum_q w_q N_i N_j |detJ_e|."""
    n_elem = abs_det.shape[0]
    n_quad, n_loc = N.shape
    Me_all = np.zeros((n_elem, n_loc, n_loc))
    for e in range(n_elem):
        for q in range(n_quad):
            wq = weights[q] * abs_det[e]
            for i in range(n_loc):
                for j in range(n_loc):
                    Me_all[e, i, j] += wq * N[q, i] * N[q, j]
    return Me_all


@njit
def _load_core(f_vals, N, weights, abs_det):
    """be[e, i] = sum_q w_q f(x_q) N_i(x_q) |detJ_e|."""
    n_elem, n_quad = f_vals.shape
    n_loc = N.shape[1]
    be_all = np.zeros((n_elem, n_loc))
    for e in range(n_elem):
        for q in range(n_quad):
            common = f_vals[e, q] * weights[q] * abs_det[e]
            for i in range(n_loc):
                be_all[e, i] += common * N[q, i]
    return be_all


def _cell_geometry(V: FunctionSpace, quadrature_order: int) -> tuple[QuadratureRule, AffineMap]:
    return quadrature_rule(quadrature_order), affine_maps(V.mesh.cell_coordinates)


def _scatter_matrix(K_all: NDArray[np.float64], V: FunctionSpace) -> sparse.csr_matrix:
    """Sum element matrices into a global CSR matrix (duplicates are added)."""
    glb = V.cell_to_dofs
    rows = np.broadcast_to(glb[:, :, np.newaxis], K_all.shape)
    cols = np.broadcast_to(glb[:, np.newaxis, :], K_all.shape)
    return sparse.csr_matrix(
        (K_all.ravel(), (rows.ravel(), cols.ravel())),
        shape=(V.dof_count, V.dof_count),
    )


def assemble_stiffness(V: FunctionSpace, quadrature_order: int = 2) -> sparse.csr_matrix:
    """Assemble A_ij = ∫ ∇φ_j · ∇φ_i dx."""
    rule, maps = _cell_geometry(V, quadrature_order)
    ref_grads = V.element.gradients(rule.points)
    grads = np.ascontiguousarray(maps.physical_gradients(ref_grads))

    Ke_all = _stiffness_core(grads, rule.weights, np.abs(maps.detJ))
    A = _scatter_matrix(Ke_all, V)
    log.debug(f"Assembled stiffness matrix: {A.shape[0]}x{A.shape[1]}, nnz={A.nnz}")
    return A


def assemble_mass(V: FunctionSpace, quadrature_order: int = 2) -> sparse.csr_matrix:
    """Assemble M_ij = ∫ φ_j φ_i dx."""
    rule, maps = _cell_geometry(V, quadrature_order)
    N = np.ascontiguousarray(V.element.basis_functions(rule.points))

    Me_all = _mass_core(N, rule.weights, np.abs(maps.detJ))
    return _scatter_matrix(Me_all, V)


def assemble_load(
    V: FunctionSpace, f_func: ScalarField, quadrature_order: int = 2
) -> NDArray[np.float64]:
    """Assemble b_i = ∫ f φ_i dx, evaluating f at the physical quadrature points."""
    rule, maps = _cell_geometry(V, quadrature_order)
    N = np.ascontiguousarray(V.element.basis_functions(rule.points))

    x_phys = maps.to_physical(rule.points)
    f_vals = np.ascontiguousarray(evaluate_field(f_func, x_phys[..., 0], x_phys[..., 1]))

    be_all = _load_core(f_vals, N, rule.weights, np.abs(maps.detJ))
    b = np.zeros(V.dof_count, dtype=np.float64)
    np.add.at(b, V.cell_to_dofs, be_all)
    return b


def assemble_system(
    V: FunctionSpace, f_func: ScalarField, quadrature_order: int = 2
) -> SparseSystem:
    """Assemble the unconstrained system for -Δu = f."""
    A = assemble_stiffness(V, quadrature_order)
    b = assemble_load(V, f_func, quadrature_order)
    log.info(
        f"Assembled system: {V.dof_count} DOFs, {V.mesh.noelms} cells, nnz={A.nnz}"
    )
    return SparseSystem(A, b)


def color_cells(V: FunctionSpace) -> NDArray[np.int64]:
    """
    Greedy cell colouring: cells of one colour share no DOF.

    Cells of the same colour can be scattered concurrently without write
    conflicts; colours are processed one after another.
    """
    colors = np.full(V.mesh.noelms, -1, dtype=np.int64)
    dof_colors: list[set[int]] = [set() for _ in range(V.dof_count)]

    for e, dofs in enumerate(V.cell_to_dofs):
        used = set().union(*(dof_colors[d] for d in dofs))
        color = 0
        while color in used:
            color += 1
        colors[e] = color
        for d in dofs:
            dof_colors[d].add(color)

    log.debug(f"Coloured {V.mesh.noelms} cells with {colors.max(initial=-1) + 1} colours")
    return colors
