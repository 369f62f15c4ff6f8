"""Error taxonomy for the finite element pipeline."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


class FEMError(Exception):
    """Base class for all errors raised by poisson_fem."""


class InvalidArgument(FEMError, ValueError):
    """Bad input such as a non-positive mesh resolution or unsupported degree."""


class InconsistentMesh(FEMError):
    """Connectivity does not match the vertex table or DOF map."""


class DegenerateCell(FEMError):
    """A cell with zero (or numerically negligible) area."""

    def __init__(self, cell: int, detJ: float):
        self.cell = int(cell)
        self.detJ = float(detJ)
        super().__init__(f"Cell {self.cell} is degenerate (detJ={self.detJ:.3e})")


class SingularSystem(FEMError):
    """The system handed to the solver is not symmetric positive-definite."""


class ConvergenceFailure(FEMError):
    """Iterative solve stopped at its iteration budget above tolerance.

    The achieved relative residual and the last iterate are kept so callers
    can decide to accept the result or retry with other settings.
    """

    def __init__(
        self,
        residual: float,
        iterations: int,
        solution: NDArray[np.float64] | None = None,
    ):
        self.residual = float(residual)
        self.iterations = int(iterations)
        self.solution = solution
        super().__init__(
            f"No convergence after {self.iterations} iterations "
            f"(relative residual {self.residual:.3e})"
        )
