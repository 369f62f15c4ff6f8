"""
Manufactured solutions for -Δu = f on the unit square.

Each entry fixes an exact solution u, derives f = -Δu analytically, and uses
u itself as Dirichlet data.

- quadratic: u = 1 + x² + 2y²,  f = -6 (nodally exact for P1 on uniform meshes)
- cubic:     u = x³ + 2y³ + xy, f = -6x - 12y
- sine:      u = sin(πx) sin(πy), f = 2π² sin(πx) sin(πy)
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .error_norms import GradientField
from .exceptions import InvalidArgument
from .function_space import ScalarField


@dataclass(frozen=True)
class ManufacturedSolution:
    name: str
    u: ScalarField
    f: ScalarField
    grad: GradientField

    def u_D(self, x, y):
        """Dirichlet data: the exact solution."""
        return self.u(x, y)


QUADRATIC = ManufacturedSolution(
    name="quadratic",
    u=lambda x, y: 1 + x**2 + 2 * y**2,
    f=lambda x, y: np.full_like(x, -6.0),
    grad=lambda x, y: (2 * x, 4 * y),
)

CUBIC = ManufacturedSolution(
    name="cubic",
    u=lambda x, y: x**3 + 2 * y**3 + x * y,
    f=lambda x, y: -6 * x - 12 * y,
    grad=lambda x, y: (3 * x**2 + y, 6 * y**2 + x),
)

SINE = ManufacturedSolution(
    name="sine",
    u=lambda x, y: np.sin(np.pi * x) * np.sin(np.pi * y),
    f=lambda x, y: 2 * np.pi**2 * np.sin(np.pi * x) * np.sin(np.pi * y),
    grad=lambda x, y: (
        np.pi * np.cos(np.pi * x) * np.sin(np.pi * y),
        np.pi * np.sin(np.pi * x) * np.cos(np.pi * y),
    ),
)

MANUFACTURED_SOLUTIONS = {m.name: m for m in (QUADRATIC, CUBIC, SINE)}


def get_manufactured_solution(name: str) -> ManufacturedSolution:
    try:
        return MANUFACTURED_SOLUTIONS[name]
    except KeyError:
        raise InvalidArgument(
            f"Unknown manufactured solution '{name}'. "
            f"Available: {sorted(MANUFACTURED_SOLUTIONS)}"
        ) from None
