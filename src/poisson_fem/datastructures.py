"""Data structures shared by the pipeline stages.

Architecture: Params vs Metrics

             Params (input/config)         Metrics (output/results)
             ─────────────────────         ────────────────────────
Solve        SolverParameters              Metrics
             method, rtol, max_iter...     iterations, residual, errors...

System       SparseSystem (matrix + rhs), handed from assembly to the solver.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import sparse

from .exceptions import InvalidArgument

# Boundary side constants
LEFT, RIGHT, BOTTOM, TOP = 0, 1, 2, 3
OTHER = -1
SIDE_NAMES = {"left": LEFT, "right": RIGHT, "bottom": BOTTOM, "top": TOP}

# Tolerance for boundary side detection (floating-point comparison)
BOUNDARY_TOL = 1e-10

# Edge k connects these local vertex positions of a triangle
EDGE_VERTICES = np.array([[0, 1], [1, 2], [2, 0]])

SOLVER_METHODS = ("direct", "cg")


# ============================================================================
# Linear system
# ============================================================================


@dataclass(frozen=True)
class SparseSystem:
    """Global matrix and right-hand side of size dof_count."""

    matrix: sparse.csr_matrix
    rhs: NDArray[np.float64]

    def __post_init__(self) -> None:
        n_rows, n_cols = self.matrix.shape
        if n_rows != n_cols:
            raise InvalidArgument(f"Matrix must be square, got {self.matrix.shape}")
        if self.rhs.shape != (n_rows,):
            raise InvalidArgument(
                f"rhs shape {self.rhs.shape} does not match matrix size {n_rows}"
            )

    @property
    def size(self) -> int:
        return self.matrix.shape[0]

    def copy(self) -> SparseSystem:
        return SparseSystem(self.matrix.copy(), self.rhs.copy())


# ============================================================================
# Parameters (Input Configuration) - logged to MLflow as params
# ============================================================================


@dataclass
class SolverParameters:
    """Linear solver configuration."""

    method: str = "direct"
    rtol: float = 1e-10
    max_iterations: int | None = None
    pivot_tol: float = 1e-12  # relative to the largest pivot (CG: to the diagonal)
    symmetry_tol: float = 1e-12  # relative to the largest matrix entry
    check_definite: bool = True  # CG: extra solve with a random rhs

    def __post_init__(self) -> None:
        if self.method not in SOLVER_METHODS:
            raise InvalidArgument(
                f"Unknown solver method '{self.method}'. Use one of {SOLVER_METHODS}."
            )
        if self.rtol <= 0:
            raise InvalidArgument(f"rtol must be positive, got {self.rtol}")
        if self.max_iterations is not None and self.max_iterations <= 0:
            raise InvalidArgument(
                f"max_iterations must be positive, got {self.max_iterations}"
            )

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible params dict."""
        return {k: ("none" if v is None else v) for k, v in self.__dict__.items()}

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([self.to_mlflow()])


# ============================================================================
# Metrics (Output Results) - logged to MLflow as metrics
# ============================================================================


@dataclass
class Metrics:
    """Solve metrics - sizes, solver diagnostics and discretization errors."""

    nonodes: int = 0
    noelms: int = 0
    dof_count: int = 0
    n_dirichlet: int = 0
    h: float = 0.0
    iterations: int = 0
    converged: bool = False
    final_residual: float = float("inf")
    wall_time_seconds: float = 0.0
    error_l2: float = float("inf")
    error_max: float = float("inf")

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible dict (bools as int, skip inf)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
            if v != float("inf")  # Skip unset values
        }

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([self.to_mlflow()])
