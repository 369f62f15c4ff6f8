"""2D triangular meshes for P1 finite elements."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .datastructures import (
    BOTTOM,
    BOUNDARY_TOL,
    EDGE_VERTICES,
    LEFT,
    OTHER,
    RIGHT,
    TOP,
)
from .exceptions import InconsistentMesh, InvalidArgument


def _check_resolution(n, name: str) -> None:
    if isinstance(n, (bool, np.bool_)) or not isinstance(n, (int, np.integer)) or n <= 0:
        raise InvalidArgument(f"{name} must be a positive integer, got {n!r}")


@dataclass(frozen=True, eq=False)
class Mesh2d:
    """Immutable triangulation.

    Attributes
    ----------
    vertices : ndarray (nonodes, 2)
        Vertex coordinates, indexed 0..nonodes-1
    cells : ndarray (noelms, 3)
        Cell-to-vertex connectivity (0-based)
    """

    vertices: NDArray[np.float64]
    cells: NDArray[np.int64]

    def __post_init__(self) -> None:
        vertices = np.array(self.vertices, dtype=np.float64)
        cells = np.array(self.cells, dtype=np.int64)
        if vertices.ndim != 2 or vertices.shape[1] != 2:
            raise InconsistentMesh(f"vertices must have shape (N, 2), got {vertices.shape}")
        if cells.ndim != 2 or cells.shape[1] != 3:
            raise InconsistentMesh(f"cells must have shape (M, 3), got {cells.shape}")
        vertices.setflags(write=False)
        cells.setflags(write=False)
        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "cells", cells)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_arrays(cls, vertices: ArrayLike, cells: ArrayLike) -> Mesh2d:
        return cls(np.asarray(vertices), np.asarray(cells))

    @classmethod
    def rectangle(
        cls,
        x0: float,
        y0: float,
        L1: float,
        L2: float,
        noelms1: int,
        noelms2: int,
    ) -> Mesh2d:
        """
        Uniform triangulation of [x0, x0+L1] x [y0, y0+L2].

        Vertices are numbered row-major (x fastest): v = j*(noelms1+1) + i.
        Every grid square is split along its lower-left to upper-right
        diagonal into [LL, LR, UR] and [LL, UR, UL], squares visited row-major.

        Parameters
        ----------
        x0, y0 : float
            Lower-left corner
        L1, L2 : float
            Side lengths (positive)
        noelms1, noelms2 : int
            Number of grid squares along x and y (positive)

        Returns
        -------
        Mesh2d
            Mesh with (noelms1+1)*(noelms2+1) vertices and 2*noelms1*noelms2 cells.
        """
        _check_resolution(noelms1, "noelms1")
        _check_resolution(noelms2, "noelms2")
        if not (L1 > 0 and L2 > 0):
            raise InvalidArgument(f"Side lengths must be positive, got L1={L1}, L2={L2}")

        nonodes1 = noelms1 + 1
        temp_x = np.linspace(x0, x0 + L1, nonodes1)
        temp_y = np.linspace(y0, y0 + L2, noelms2 + 1)
        XX, YY = np.meshgrid(temp_x, temp_y)
        vertices = np.column_stack([XX.ravel(), YY.ravel()])

        col, row = np.meshgrid(np.arange(noelms1), np.arange(noelms2))
        col, row = col.ravel(), row.ravel()

        LL = row * nonodes1 + col
        LR = LL + 1
        UL = LL + nonodes1
        UR = UL + 1

        cells = np.empty((2 * len(LL), 3), dtype=np.int64)
        # Lower-right triangles: [LL, LR, UR]
        cells[0::2, 0] = LL
        cells[0::2, 1] = LR
        cells[0::2, 2] = UR
        # Upper-left triangles: [LL, UR, UL]
        cells[1::2, 0] = LL
        cells[1::2, 1] = UR
        cells[1::2, 2] = UL

        return cls(vertices, cells)

    @classmethod
    def unit_square(cls, nx: int, ny: int) -> Mesh2d:
        """Uniform triangulation of [0,1] x [0,1] with nx x ny grid squares."""
        return cls.rectangle(0.0, 0.0, 1.0, 1.0, nx, ny)

    # ------------------------------------------------------------------
    # Sizes and aliases
    # ------------------------------------------------------------------

    @property
    def nonodes(self) -> int:
        return len(self.vertices)

    @property
    def noelms(self) -> int:
        return len(self.cells)

    @property
    def VX(self) -> NDArray[np.float64]:
        return self.vertices[:, 0]

    @property
    def VY(self) -> NDArray[np.float64]:
        return self.vertices[:, 1]

    @property
    def EToV(self) -> NDArray[np.int64]:
        return self.cells

    @property
    def cell_coordinates(self) -> NDArray[np.float64]:
        """Vertex coordinates per cell, shape (noelms, 3, 2)."""
        return self.vertices[self.cells]

    # ------------------------------------------------------------------
    # Edges and boundary
    # ------------------------------------------------------------------

    @cached_property
    def _edge_table(self) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
        all_edges = np.sort(self.cells[:, EDGE_VERTICES].reshape(-1, 2), axis=1)
        edges, counts = np.unique(all_edges, axis=0, return_counts=True)
        if counts.size and counts.max() > 2:
            bad = edges[counts > 2][0]
            raise InconsistentMesh(
                f"Edge ({bad[0]}, {bad[1]}) is shared by more than two cells"
            )
        edges.setflags(write=False)
        counts.setflags(write=False)
        return edges, counts

    @property
    def edges(self) -> NDArray[np.int64]:
        """Unique edges as sorted vertex pairs, lexicographically ordered."""
        return self._edge_table[0]

    @cached_property
    def boundary_edges(self) -> NDArray[np.int64]:
        """Edges incident to exactly one cell, shape (n_boundary, 2)."""
        edges, counts = self._edge_table
        boundary = edges[counts == 1]
        boundary.setflags(write=False)
        return boundary

    def boundary_facets(self) -> frozenset[tuple[int, int]]:
        """Set of boundary edges, each a sorted vertex-index pair."""
        return frozenset((int(a), int(b)) for a, b in self.boundary_edges)

    @cached_property
    def boundary_vertices(self) -> NDArray[np.int64]:
        vertices = np.unique(self.boundary_edges)
        vertices.setflags(write=False)
        return vertices

    @cached_property
    def boundary_sides(self) -> NDArray[np.int64]:
        """Side tag (LEFT/RIGHT/BOTTOM/TOP, else OTHER) of each boundary edge.

        Sides are those of the bounding box, matched within BOUNDARY_TOL.
        """
        x_min, y_min = self.vertices.min(axis=0)
        x_max, y_max = self.vertices.max(axis=0)
        a = self.vertices[self.boundary_edges[:, 0]]
        b = self.vertices[self.boundary_edges[:, 1]]

        def on_line(axis: int, value: float) -> NDArray[np.bool_]:
            return (np.abs(a[:, axis] - value) < BOUNDARY_TOL) & (
                np.abs(b[:, axis] - value) < BOUNDARY_TOL
            )

        sides = np.full(len(self.boundary_edges), OTHER, dtype=np.int64)
        sides[on_line(1, y_max)] = TOP
        sides[on_line(1, y_min)] = BOTTOM
        sides[on_line(0, x_max)] = RIGHT
        sides[on_line(0, x_min)] = LEFT
        sides.setflags(write=False)
        return sides

    @cached_property
    def h(self) -> float:
        """Mesh size: the longest edge."""
        diff = self.vertices[self.edges[:, 1]] - self.vertices[self.edges[:, 0]]
        return float(np.sqrt((diff**2).sum(axis=1)).max())


def build_unit_square(nx: int, ny: int) -> Mesh2d:
    """Uniform triangulation of the unit square (see Mesh2d.rectangle)."""
    return Mesh2d.unit_square(nx, ny)
