"""Reference elements and the affine reference-to-physical map."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .exceptions import DegenerateCell, InvalidArgument

# |detJ| <= DEGENERACY_TOL * diam^2 marks a cell as degenerate
DEGENERACY_TOL = 1e-12


class ReferenceElement(ABC):
    """Capability interface of a reference element on the unit triangle.

    Subclasses must set:
    - degree: polynomial degree
    - local_dof_count: number of local basis functions
    - nodes: reference coordinates of the local nodes, in local DOF order
    """

    degree: int
    local_dof_count: int
    nodes: NDArray[np.float64]

    @abstractmethod
    def basis_functions(self, points: ArrayLike) -> NDArray[np.float64]:
        """Basis values at reference points, shape (n_points, local_dof_count)."""

    @abstractmethod
    def gradients(self, points: ArrayLike) -> NDArray[np.float64]:
        """Reference gradients, shape (n_points, local_dof_count, 2)."""


class LagrangeP1(ReferenceElement):
    """Linear Lagrange element: N0 = 1-x-y, N1 = x, N2 = y."""

    degree = 1
    local_dof_count = 3
    nodes = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
    _REF_GRADIENTS = np.array([[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]])

    def basis_functions(self, points: ArrayLike) -> NDArray[np.float64]:
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        x, y = points[:, 0], points[:, 1]
        return np.column_stack([1.0 - x - y, x, y])

    def gradients(self, points: ArrayLike) -> NDArray[np.float64]:
        n_points = len(np.atleast_2d(points))
        return np.broadcast_to(self._REF_GRADIENTS, (n_points, 3, 2)).copy()


ELEMENTS: dict[int, ReferenceElement] = {1: LagrangeP1()}


def get_element(degree: int) -> ReferenceElement:
    """Reference element for the given polynomial degree."""
    try:
        return ELEMENTS[degree]
    except KeyError:
        raise InvalidArgument(
            f"Unsupported element degree {degree}. Available: {sorted(ELEMENTS)}"
        ) from None


@dataclass(frozen=True, eq=False)
class AffineMap:
    """
    Affine maps x = origin + J @ xi for a batch of triangles.

    Attributes
    ----------
    origin : ndarray (n_cells, 2)
        Image of the reference vertex (0, 0)
    J : ndarray (n_cells, 2, 2)
        Jacobians, columns are the edge vectors v1-v0 and v2-v0
    detJ : ndarray (n_cells,)
        Jacobian determinants (negative for clockwise cells)
    Jinv : ndarray (n_cells, 2, 2)
        Inverse Jacobians
    """

    origin: NDArray[np.float64]
    J: NDArray[np.float64]
    detJ: NDArray[np.float64]
    Jinv: NDArray[np.float64]

    def __len__(self) -> int:
        return len(self.detJ)

    def to_physical(self, points: ArrayLike) -> NDArray[np.float64]:
        """Map reference points (n_quad, 2) to physical points (n_cells, n_quad, 2)."""
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return self.origin[:, np.newaxis, :] + np.einsum("mij,qj->mqi", self.J, points)

    def physical_gradients(self, ref_grads: NDArray[np.float64]) -> NDArray[np.float64]:
        """Apply J^{-T} to reference gradients (n_quad, n_local, 2).

        Returns
        -------
        ndarray (n_cells, n_quad, n_local, 2)
        """
        return np.einsum("mki,qak->mqai", self.Jinv, ref_grads)


def affine_maps(coords: ArrayLike, eps: float = DEGENERACY_TOL) -> AffineMap:
    """
    Affine maps for triangles with vertex coordinates `coords` (n_cells, 3, 2).

    Raises DegenerateCell for the first cell with |detJ| <= eps * diam^2.
    """
    coords = np.asarray(coords, dtype=np.float64)
    if coords.ndim != 3 or coords.shape[1:] != (3, 2):
        raise InvalidArgument(f"Expected coordinates of shape (n, 3, 2), got {coords.shape}")

    origin = coords[:, 0, :]
    J = np.stack([coords[:, 1, :] - origin, coords[:, 2, :] - origin], axis=-1)
    detJ = J[:, 0, 0] * J[:, 1, 1] - J[:, 0, 1] * J[:, 1, 0]

    edges = coords[:, [1, 2, 0], :] - coords
    diam2 = (edges**2).sum(axis=-1).max(axis=-1)
    degenerate = np.abs(detJ) <= eps * diam2
    if np.any(degenerate):
        cell = int(np.argmax(degenerate))
        raise DegenerateCell(cell, detJ[cell])

    Jinv = np.empty_like(J)
    Jinv[:, 0, 0] = J[:, 1, 1] / detJ
    Jinv[:, 0, 1] = -J[:, 0, 1] / detJ
    Jinv[:, 1, 0] = -J[:, 1, 0] / detJ
    Jinv[:, 1, 1] = J[:, 0, 0] / detJ

    return AffineMap(origin, J, detJ, Jinv)


def affine_map(
    cell_vertices: ArrayLike, eps: float = DEGENERACY_TOL
) -> tuple[NDArray[np.float64], float, NDArray[np.float64]]:
    """Jacobian, its determinant and its inverse for a single triangle (3, 2)."""
    maps = affine_maps(np.asarray(cell_vertices, dtype=np.float64)[np.newaxis], eps)
    return maps.J[0], float(maps.detJ[0]), maps.Jinv[0]
