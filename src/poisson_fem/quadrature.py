"""Quadrature rules on the reference triangle and the reference interval."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .exceptions import InvalidArgument

REFERENCE_AREA = 0.5


@dataclass(frozen=True, eq=False)
class QuadratureRule:
    """
    Quadrature on the reference triangle (0,0), (1,0), (0,1).

    Attributes
    ----------
    points : ndarray (n_quad, 2)
        Reference coordinates of the quadrature points
    weights : ndarray (n_quad,)
        Weights, summing to the reference area 0.5
    degree : int
        Highest total polynomial degree integrated exactly
    """

    points: NDArray[np.float64]
    weights: NDArray[np.float64]
    degree: int

    @property
    def n_points(self) -> int:
        return len(self.weights)


def _symmetric_rule(
    degree: int, orbits: list[tuple[float, float]], centroid_weight: float = 0.0
) -> QuadratureRule:
    """Build a rule from (a, w) orbits: points (a,a), (1-2a,a), (a,1-2a), each with weight w.

    Weights are given for unit area and scaled to the reference triangle.
    """
    points, weights = [], []
    if centroid_weight:
        points.append((1.0 / 3.0, 1.0 / 3.0))
        weights.append(centroid_weight)
    for a, w in orbits:
        points.extend([(a, a), (1.0 - 2.0 * a, a), (a, 1.0 - 2.0 * a)])
        weights.extend([w, w, w])
    pts = np.array(points, dtype=np.float64)
    wts = REFERENCE_AREA * np.array(weights, dtype=np.float64)
    pts.setflags(write=False)
    wts.setflags(write=False)
    return QuadratureRule(pts, wts, degree)


_SQRT15 = np.sqrt(15.0)

# Built-in rules keyed by degree of exactness (Strang-Fix / Dunavant)
_TRIANGLE_RULES = {
    1: _symmetric_rule(1, [], centroid_weight=1.0),
    2: _symmetric_rule(2, [(1.0 / 6.0, 1.0 / 3.0)]),
    4: _symmetric_rule(
        4,
        [
            (0.445948490915965, 0.223381589678011),
            (0.091576213509771, 0.109951743655322),
        ],
    ),
    5: _symmetric_rule(
        5,
        [
            ((6.0 + _SQRT15) / 21.0, (155.0 + _SQRT15) / 1200.0),
            ((6.0 - _SQRT15) / 21.0, (155.0 - _SQRT15) / 1200.0),
        ],
        centroid_weight=9.0 / 40.0,
    ),
}

MAX_ORDER = max(_TRIANGLE_RULES)


def quadrature_rule(order: int) -> QuadratureRule:
    """
    Cheapest built-in triangle rule exact for polynomials of total degree `order`.

    Order 2 is enough for P1 stiffness and a constant or linear source term.
    """
    if order < 0 or order > MAX_ORDER:
        raise InvalidArgument(
            f"Unsupported quadrature order {order}. Use 0..{MAX_ORDER}."
        )
    degree = min(d for d in _TRIANGLE_RULES if d >= order)
    return _TRIANGLE_RULES[degree]


# Gauss-Legendre points and weights on [-1, 1]
_GAUSS_QUAD = {
    1: (np.array([0.0]), np.array([2.0])),
    2: (np.array([-1.0 / np.sqrt(3), 1.0 / np.sqrt(3)]), np.array([1.0, 1.0])),
    3: (np.array([-np.sqrt(3 / 5), 0.0, np.sqrt(3 / 5)]), np.array([5 / 9, 8 / 9, 5 / 9])),
}


def gauss_legendre(n_quad: int) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """1D Gauss-Legendre rule with n_quad points on [-1, 1]."""
    if n_quad not in _GAUSS_QUAD:
        raise InvalidArgument(f"Unsupported n_quad={n_quad}. Use 1, 2 or 3.")
    return _GAUSS_QUAD[n_quad]
