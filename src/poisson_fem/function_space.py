"""Continuous Lagrange function spaces and their global DOF map."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from .elements import ReferenceElement, get_element
from .exceptions import InconsistentMesh
from .mesh import Mesh2d

ScalarField = Callable[[NDArray[np.float64], NDArray[np.float64]], NDArray[np.float64]]


def evaluate_field(
    fn: ScalarField, x: NDArray[np.float64], y: NDArray[np.float64]
) -> NDArray[np.float64]:
    """Evaluate fn(x, y) elementwise; scalar results are broadcast to x's shape."""
    values = np.asarray(fn(x, y), dtype=np.float64)
    return np.array(np.broadcast_to(values, np.shape(x)))


@dataclass(frozen=True, eq=False)
class FunctionSpace:
    """
    Global DOF numbering for a reference element on a mesh.

    Attributes
    ----------
    mesh : Mesh2d
        Mesh the space is built on
    element : ReferenceElement
        Reference element defining the local node order
    cell_to_dofs : ndarray (noelms, local_dof_count)
        Global DOFs of each cell, in the element's local node order
    vertex_dofs : ndarray (nonodes,)
        DOF attached to each mesh vertex
    dof_coordinates : ndarray (dof_count, 2)
        Physical location of each DOF
    """

    mesh: Mesh2d
    element: ReferenceElement
    cell_to_dofs: NDArray[np.int64]
    vertex_dofs: NDArray[np.int64]
    dof_coordinates: NDArray[np.float64]

    @classmethod
    def build(cls, mesh: Mesh2d, degree: int = 1) -> FunctionSpace:
        """
        Number the DOFs of a degree-`degree` Lagrange space on `mesh`.

        Degree 1 places one DOF on every vertex, with DOF index = vertex index.
        Higher degrees plug in through the element registry in `elements`.
        """
        element = get_element(degree)

        cells = mesh.cells
        if cells.size and (cells.min() < 0 or cells.max() >= mesh.nonodes):
            bad = int(np.argmax(np.any((cells < 0) | (cells >= mesh.nonodes), axis=1)))
            raise InconsistentMesh(
                f"Cell {bad} references vertices {cells[bad].tolist()} "
                f"outside [0, {mesh.nonodes})"
            )

        vertex_dofs = np.arange(mesh.nonodes, dtype=np.int64)
        cell_to_dofs = vertex_dofs[cells]
        dof_coordinates = np.array(mesh.vertices)

        for arr in (vertex_dofs, cell_to_dofs, dof_coordinates):
            arr.setflags(write=False)
        return cls(mesh, element, cell_to_dofs, vertex_dofs, dof_coordinates)

    @property
    def degree(self) -> int:
        return self.element.degree

    @property
    def dof_count(self) -> int:
        return len(self.dof_coordinates)

    @property
    def local_dof_count(self) -> int:
        return self.element.local_dof_count

    def interpolate(self, fn: ScalarField) -> NDArray[np.float64]:
        """Nodal interpolant of fn(x, y): its values at the DOF coordinates."""
        return evaluate_field(fn, self.dof_coordinates[:, 0], self.dof_coordinates[:, 1])
