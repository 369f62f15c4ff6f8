"""Tests for the global DOF map.

Run with: uv run pytest tests/test_function_space.py -v
"""

import numpy as np
import pytest

from poisson_fem import (
    FunctionSpace,
    InconsistentMesh,
    InvalidArgument,
    Mesh2d,
    build_unit_square,
)


@pytest.fixture
def space():
    return FunctionSpace.build(build_unit_square(3, 2))


class TestFunctionSpace:
    """Test P1 DOF numbering."""

    def test_one_dof_per_vertex(self, space):
        assert space.dof_count == space.mesh.nonodes == 12
        assert space.local_dof_count == 3
        assert space.degree == 1

    def test_cell_to_dofs_matches_cells(self, space):
        assert np.array_equal(space.cell_to_dofs, space.mesh.cells)
        assert np.array_equal(space.vertex_dofs, np.arange(12))

    def test_dof_coordinates(self, space):
        assert np.allclose(space.dof_coordinates, space.mesh.vertices)

    def test_dof_map_is_read_only(self, space):
        with pytest.raises(ValueError):
            space.cell_to_dofs[0, 0] = 3

    def test_unsupported_degree(self):
        with pytest.raises(InvalidArgument):
            FunctionSpace.build(build_unit_square(2, 2), degree=2)

    @pytest.mark.parametrize("cell", [[0, 1, 3], [-1, 1, 2]])
    def test_cell_references_missing_vertex(self, cell):
        mesh = Mesh2d.from_arrays([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], [cell])
        with pytest.raises(InconsistentMesh):
            FunctionSpace.build(mesh)


class TestInterpolate:
    """Test nodal interpolation."""

    def test_linear_function(self, space):
        u = space.interpolate(lambda x, y: x + 2 * y)
        xy = space.dof_coordinates
        assert np.allclose(u, xy[:, 0] + 2 * xy[:, 1])

    def test_constant_is_broadcast(self, space):
        u = space.interpolate(lambda x, y: 3.0)
        assert u.shape == (space.dof_count,)
        assert np.allclose(u, 3.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
