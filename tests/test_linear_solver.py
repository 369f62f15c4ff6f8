"""Tests for the SPD sparse linear solver.

Run with: uv run pytest tests/test_linear_solver.py -v
"""

import numpy as np
import pytest
from scipy import sparse

from poisson_fem import (
    ConvergenceFailure,
    FunctionSpace,
    InvalidArgument,
    LinearSolver,
    SingularSystem,
    SolverParameters,
    apply_dirichlet,
    assemble_stiffness,
    assemble_system,
    build_unit_square,
    dirichlet_bc,
    solve,
)


@pytest.fixture
def poisson_system():
    """Lifted 8x8 unit-square system for u = 1 + x² + 2y²."""
    V = FunctionSpace.build(build_unit_square(8, 8))
    system = assemble_system(V, lambda x, y: -6.0)
    bc = dirichlet_bc(V, lambda x, y: 1 + x**2 + 2 * y**2)
    return apply_dirichlet(system, bc)


class TestDirectSolver:
    """Test SuperLU solve with positive-definiteness checks."""

    def test_small_spd_system(self):
        A = sparse.csr_matrix([[4.0, 1.0], [1.0, 3.0]])
        x = solve(A, [1.0, 2.0])
        assert np.allclose(x, [1 / 11, 7 / 11])

    def test_metrics(self, poisson_system):
        solver = LinearSolver()
        solver.solve(poisson_system.matrix, poisson_system.rhs)
        assert solver.metrics.converged
        assert solver.metrics.dof_count == 81
        assert solver.metrics.final_residual < 1e-12
        assert solver.metrics.wall_time_seconds >= 0.0

    def test_pure_neumann_is_singular(self):
        """The unconstrained Laplacian has constants in its kernel."""
        A = assemble_stiffness(FunctionSpace.build(build_unit_square(1, 1)))
        with pytest.raises(SingularSystem):
            solve(A, np.zeros(4))

    def test_pure_neumann_larger_mesh(self):
        A = assemble_stiffness(FunctionSpace.build(build_unit_square(4, 4)))
        with pytest.raises(SingularSystem):
            solve(A, np.ones(25))

    def test_indefinite(self):
        A = sparse.csr_matrix([[1.0, 2.0], [2.0, 1.0]])
        with pytest.raises(SingularSystem):
            solve(A, [1.0, 1.0])

    def test_non_symmetric(self):
        A = sparse.csr_matrix([[2.0, 1.0], [0.0, 2.0]])
        with pytest.raises(SingularSystem):
            solve(A, [1.0, 1.0])

    def test_zero_matrix(self):
        with pytest.raises(SingularSystem):
            solve(sparse.csr_matrix((3, 3)), np.zeros(3))

    def test_non_square(self):
        with pytest.raises(InvalidArgument):
            solve(sparse.csr_matrix(np.ones((2, 3))), np.ones(2))

    def test_rhs_mismatch(self):
        with pytest.raises(InvalidArgument):
            solve(sparse.identity(3, format="csr"), np.ones(4))


class TestCGSolver:
    """Test Jacobi-preconditioned conjugate gradients."""

    def test_small_spd_system(self):
        A = sparse.csr_matrix([[4.0, 1.0], [1.0, 3.0]])
        x = LinearSolver(method="cg").solve(A, [1.0, 2.0])
        assert np.allclose(x, [1 / 11, 7 / 11])

    def test_agrees_with_direct(self, poisson_system):
        A, b = poisson_system.matrix, poisson_system.rhs
        x_direct = LinearSolver(method="direct").solve(A, b)
        solver = LinearSolver(method="cg", rtol=1e-12)
        x_cg = solver.solve(A, b)
        assert np.allclose(x_cg, x_direct, atol=1e-8)
        assert solver.metrics.iterations > 0
        assert solver.metrics.final_residual < 1e-10

    def test_iteration_budget(self, poisson_system):
        solver = LinearSolver(SolverParameters(method="cg", max_iterations=1))
        with pytest.raises(ConvergenceFailure) as exc_info:
            solver.solve(poisson_system.matrix, poisson_system.rhs)
        err = exc_info.value
        assert err.iterations == 1
        assert err.residual > 1e-10
        assert err.solution.shape == (81,)

    def test_non_positive_diagonal(self):
        A = sparse.csr_matrix([[-1.0, 0.0], [0.0, 1.0]])
        with pytest.raises(SingularSystem):
            LinearSolver(method="cg").solve(A, [1.0, 1.0])

    def test_indefinite_positive_diagonal(self):
        A = sparse.csr_matrix([[1.0, 2.0], [2.0, 1.0]])
        with pytest.raises(SingularSystem):
            LinearSolver(method="cg").solve(A, [1.0, 1.0])


class TestCGSingular:
    """Test that CG rejects the unconstrained (pure Neumann) Laplacian."""

    @pytest.fixture
    def neumann(self):
        V = FunctionSpace.build(build_unit_square(4, 4))
        return V, assemble_stiffness(V)

    def test_pure_neumann_is_singular(self):
        A = assemble_stiffness(FunctionSpace.build(build_unit_square(1, 1)))
        with pytest.raises(SingularSystem):
            LinearSolver(method="cg").solve(A, np.zeros(4))

    def test_inconsistent_rhs(self, neumann):
        V, _ = neumann
        system = assemble_system(V, lambda x, y: -6.0)
        with pytest.raises(SingularSystem):
            LinearSolver(method="cg").solve(system.matrix, system.rhs)

    def test_consistent_rhs(self, neumann):
        """b in the range of A still has infinitely many solutions."""
        V, A = neumann
        b = A @ V.interpolate(lambda x, y: x + y)
        with pytest.raises(SingularSystem):
            LinearSolver(method="cg").solve(A, b)

    def test_zero_rhs(self, neumann):
        V, A = neumann
        with pytest.raises(SingularSystem):
            LinearSolver(method="cg").solve(A, np.zeros(V.dof_count))

    def test_definite_check_keeps_spd_result(self, poisson_system):
        """The extra check does not change the solution of an SPD system."""
        A, b = poisson_system.matrix, poisson_system.rhs
        with_check = LinearSolver(method="cg", rtol=1e-12).solve(A, b)
        without = LinearSolver(method="cg", rtol=1e-12, check_definite=False).solve(A, b)
        assert np.allclose(with_check, without)


class TestSolverParameters:
    """Test solver configuration."""

    def test_defaults(self):
        params = SolverParameters()
        assert params.method == "direct"
        assert params.to_mlflow()["max_iterations"] == "none"

    @pytest.mark.parametrize(
        "kwargs",
        [{"method": "gmres"}, {"rtol": 0.0}, {"max_iterations": 0}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidArgument):
            SolverParameters(**kwargs)

    def test_to_dataframe(self):
        df = SolverParameters(method="cg", max_iterations=50).to_dataframe()
        assert len(df) == 1
        assert df["method"].iloc[0] == "cg"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
