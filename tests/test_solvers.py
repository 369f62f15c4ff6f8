"""End-to-end tests for the Poisson pipeline using manufactured solutions.

Run with: uv run pytest tests/test_solvers.py -v
"""

import numpy as np
import pytest

from poisson_fem import (
    CUBIC,
    QUADRATIC,
    SINE,
    InvalidArgument,
    Mesh2d,
    SingularSystem,
    SolverParameters,
    build_unit_square,
    convergence_study,
    get_manufactured_solution,
    solve_poisson,
)


class TestManufacturedSolutions:
    """Test the analytic problem catalogue."""

    @pytest.mark.parametrize("problem", [QUADRATIC, CUBIC, SINE])
    def test_source_is_negative_laplacian(self, problem):
        """Check f = -Δu with a centred finite difference."""
        x, y = np.array([0.3, 0.7]), np.array([0.6, 0.2])
        d = 1e-3
        lap = (
            problem.u(x + d, y) + problem.u(x - d, y) + problem.u(x, y + d) + problem.u(x, y - d)
            - 4 * problem.u(x, y)
        ) / d**2
        assert np.allclose(problem.f(x, y), -lap, rtol=1e-4, atol=1e-4)

    def test_lookup(self):
        assert get_manufactured_solution("cubic") is CUBIC
        with pytest.raises(InvalidArgument):
            get_manufactured_solution("quartic")


class TestSolvePoisson:
    """Test the assemble / constrain / solve pipeline."""

    @pytest.mark.parametrize("nx, ny", [(4, 4), (8, 8), (3, 5)])
    def test_quadratic_nodally_exact(self, nx, ny):
        """P1 is nodally exact for u = 1 + x² + 2y² on uniform meshes."""
        mesh = build_unit_square(nx, ny)
        result = solve_poisson(mesh, QUADRATIC.f, QUADRATIC.u_D, exact=QUADRATIC.u)
        assert result.error_max < 1e-10
        assert result.metrics.converged

    def test_quadratic_with_cg(self):
        mesh = build_unit_square(8, 8)
        params = SolverParameters(method="cg", rtol=1e-12)
        result = solve_poisson(mesh, QUADRATIC.f, QUADRATIC.u_D, exact=QUADRATIC.u, params=params)
        assert result.error_max < 1e-8
        assert result.metrics.iterations > 0

    def test_metrics(self):
        mesh = build_unit_square(4, 4)
        result = solve_poisson(mesh, QUADRATIC.f, QUADRATIC.u_D, exact=QUADRATIC.u)
        m = result.metrics
        assert (m.nonodes, m.noelms, m.dof_count, m.n_dirichlet) == (25, 32, 25, 16)
        assert np.isclose(m.h, np.sqrt(2) / 4)
        assert result.solution.shape == (25,)
        assert result.mesh is mesh

    def test_no_exact_leaves_errors_unset(self):
        result = solve_poisson(build_unit_square(2, 2), QUADRATIC.f, QUADRATIC.u_D)
        assert result.error_l2 == float("inf")
        assert "error_l2" not in result.metrics.to_mlflow()

    @pytest.mark.parametrize("coarse, fine", [(4, 8), (8, 16)])
    def test_cubic_second_order(self, coarse, fine):
        """L2 error drops by about 4 when h is halved."""
        errors = [
            solve_poisson(build_unit_square(n, n), CUBIC.f, CUBIC.u_D, exact=CUBIC.u).error_l2
            for n in (coarse, fine)
        ]
        rate = np.log2(errors[0] / errors[1])
        assert rate > 1.8

    def test_rectangle_domain(self):
        mesh = Mesh2d.rectangle(-1.0, 0.5, 2.0, 1.5, 6, 4)
        result = solve_poisson(mesh, QUADRATIC.f, QUADRATIC.u_D, exact=QUADRATIC.u)
        assert result.error_max < 1e-10

    def test_no_dirichlet_is_singular(self):
        mesh = build_unit_square(4, 4)
        with pytest.raises(SingularSystem):
            solve_poisson(mesh, QUADRATIC.f, QUADRATIC.u_D, dirichlet_sides=[])

    def test_no_dirichlet_is_singular_with_cg(self):
        mesh = build_unit_square(4, 4)
        params = SolverParameters(method="cg")
        with pytest.raises(SingularSystem):
            solve_poisson(mesh, QUADRATIC.f, QUADRATIC.u_D, params=params, dirichlet_sides=[])

    def test_unsupported_degree(self):
        with pytest.raises(InvalidArgument):
            solve_poisson(build_unit_square(2, 2), QUADRATIC.f, QUADRATIC.u_D, degree=2)

    def test_neumann_sides(self):
        """Neumann on the right with g = ∂u/∂x = 2 stays close to the quadratic."""
        mesh = build_unit_square(8, 8)
        result = solve_poisson(
            mesh,
            QUADRATIC.f,
            QUADRATIC.u_D,
            exact=QUADRATIC.u,
            dirichlet_sides=["left", "bottom", "top"],
            neumann_func=lambda x, y: 2 * x,
            neumann_sides=["right"],
        )
        assert result.error_l2 < 1e-2
        # 9 on the left plus 8 more on each of bottom and top
        assert result.metrics.n_dirichlet == 25


class TestConvergenceStudy:
    """Test tabulated errors and observed rates."""

    def test_table(self):
        df = convergence_study([4, 8, 16], SINE)
        assert list(df.columns) == [
            "n",
            "h",
            "dof_count",
            "error_l2",
            "error_max",
            "error_h1",
            "rate_l2",
            "rate_h1",
        ]
        assert df["n"].tolist() == [4, 8, 16]
        assert np.isnan(df["rate_l2"].iloc[0])
        assert np.all(np.diff(df["error_l2"]) < 0)

    def test_rates(self):
        df = convergence_study([8, 16], SINE)
        assert df["rate_l2"].iloc[1] > 1.8
        assert 0.9 < df["rate_h1"].iloc[1] < 1.2

    def test_single_resolution(self):
        df = convergence_study([4], CUBIC)
        assert len(df) == 1
        assert np.isnan(df["rate_h1"].iloc[0])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
