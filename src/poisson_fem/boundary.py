"""Boundary conditions: Dirichlet lifting and Neumann load terms."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .datastructures import SIDE_NAMES, SparseSystem
from .exceptions import InvalidArgument
from .function_space import FunctionSpace, ScalarField, evaluate_field
from .quadrature import gauss_legendre

log = logging.getLogger(__name__)


def _side_tags(sides: Iterable[int | str]) -> list[int]:
    tags = []
    for side in sides:
        if isinstance(side, str):
            if side.lower() not in SIDE_NAMES:
                raise InvalidArgument(
                    f"Unknown side '{side}'. Use one of {sorted(SIDE_NAMES)}."
                )
            tags.append(SIDE_NAMES[side.lower()])
        else:
            tags.append(int(side))
    return tags


def _boundary_edges(
    V: FunctionSpace, sides: Iterable[int | str] | None
) -> NDArray[np.int64]:
    mesh = V.mesh
    if sides is None:
        return mesh.boundary_edges
    return mesh.boundary_edges[np.isin(mesh.boundary_sides, _side_tags(sides))]


def locate_boundary_dofs(
    V: FunctionSpace, sides: Iterable[int | str] | None = None
) -> NDArray[np.int64]:
    """Sorted DOFs on the vertices of boundary facets, optionally only on `sides`."""
    edges = _boundary_edges(V, sides)
    return np.unique(V.vertex_dofs[edges])


@dataclass(frozen=True, eq=False)
class DirichletBC:
    """Prescribed values on a set of DOFs."""

    dofs: NDArray[np.int64]
    values: NDArray[np.float64]

    def __post_init__(self) -> None:
        dofs = np.asarray(self.dofs, dtype=np.int64).ravel()
        values = np.asarray(self.values, dtype=np.float64).ravel()
        if dofs.shape != values.shape:
            raise InvalidArgument(
                f"Got {len(dofs)} Dirichlet DOFs but {len(values)} values"
            )
        dofs, first = np.unique(dofs, return_index=True)
        object.__setattr__(self, "dofs", dofs)
        object.__setattr__(self, "values", values[first])

    def __len__(self) -> int:
        return len(self.dofs)

    def as_dict(self) -> dict[int, float]:
        return {int(d): float(v) for d, v in zip(self.dofs, self.values)}


def evaluate_dirichlet(
    dofs: ArrayLike, dof_coords: NDArray[np.float64], bc_func: ScalarField
) -> DirichletBC:
    """Prescribed values bc_func(x, y) at `dofs`, located via the DOF coordinate table."""
    dofs = np.asarray(dofs, dtype=np.int64)
    xy = dof_coords[dofs]
    return DirichletBC(dofs, evaluate_field(bc_func, xy[:, 0], xy[:, 1]))


def dirichlet_bc(
    V: FunctionSpace, bc_func: ScalarField, sides: Iterable[int | str] | None = None
) -> DirichletBC:
    """Dirichlet condition u = bc_func on the whole boundary or on `sides`."""
    return evaluate_dirichlet(locate_boundary_dofs(V, sides), V.dof_coordinates, bc_func)


def apply_dirichlet(
    system: SparseSystem, bc: DirichletBC | Mapping[int, float]
) -> SparseSystem:
    """
    Impose Dirichlet values by full elimination (lifting).

    For each constrained DOF d with value v: rhs_k -= A_kd * v for all rows k,
    row d and column d are zeroed, A_dd = 1 and rhs_d = v. The result is
    symmetric whenever the input is. Applying the same condition twice leaves
    the system unchanged. The input system is not modified.
    """
    if not isinstance(bc, DirichletBC):
        bc = DirichletBC(list(bc.keys()), list(bc.values()))
    n = system.size
    if len(bc) and (bc.dofs[0] < 0 or bc.dofs[-1] >= n):
        raise InvalidArgument(f"Dirichlet DOFs out of range [0, {n})")

    A_csr = system.matrix.tocsr()

    # A[:, dofs] @ values == A @ g where g is zero except at dofs
    g = np.zeros(n)
    g[bc.dofs] = bc.values
    b = system.rhs - A_csr @ g
    b[bc.dofs] = bc.values

    # Zero constrained rows/cols and set diagonal to 1
    scale = np.ones(n)
    scale[bc.dofs] = 0.0
    row_scale = np.repeat(scale, np.diff(A_csr.indptr))
    col_scale = scale[A_csr.indices]

    A_new = A_csr.copy()
    A_new.data *= row_scale * col_scale
    diag = A_new.diagonal()
    diag[bc.dofs] = 1.0
    A_new.setdiag(diag)
    A_new.eliminate_zeros()

    log.debug(f"Applied {len(bc)} Dirichlet conditions")
    return SparseSystem(A_new, b)


def apply_neumann(
    system: SparseSystem,
    V: FunctionSpace,
    flux_func: ScalarField,
    sides: Iterable[int | str] | None = None,
    n_quad: int = 2,
) -> SparseSystem:
    """
    Add the boundary term ∫_Γ g φ_i ds for g = ∂u/∂n (outward normal derivative).

    Must be applied before Dirichlet conditions, which overwrite their rows.
    """
    edges = _boundary_edges(V, sides)
    b = system.rhs.copy()
    if len(edges) == 0:
        return SparseSystem(system.matrix, b)

    pts, wts = gauss_legendre(n_quad)
    t = 0.5 * (pts + 1.0)  # Gauss points mapped to [0, 1]

    xa = V.mesh.vertices[edges[:, 0]]
    xb = V.mesh.vertices[edges[:, 1]]
    lengths = np.sqrt(((xb - xa) ** 2).sum(axis=1))

    # Points along each edge, shape (n_edges, n_quad, 2)
    x_q = xa[:, np.newaxis, :] + t[np.newaxis, :, np.newaxis] * (xb - xa)[:, np.newaxis, :]
    g = evaluate_field(flux_func, x_q[..., 0], x_q[..., 1])

    scaled = g * wts[np.newaxis, :] * (0.5 * lengths)[:, np.newaxis]
    contrib_a = (scaled * (1.0 - t)[np.newaxis, :]).sum(axis=1)
    contrib_b = (scaled * t[np.newaxis, :]).sum(axis=1)

    np.add.at(b, V.vertex_dofs[edges[:, 0]], contrib_a)
    np.add.at(b, V.vertex_dofs[edges[:, 1]], contrib_b)
    log.debug(f"Applied Neumann data on {len(edges)} boundary edges")
    return SparseSystem(system.matrix, b)
