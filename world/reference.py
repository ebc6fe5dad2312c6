"""
Local reference curve: least-squares polynomial fit through waypoints.

polyeval/polyderiv accept plain sequences, numpy arrays and CasADi
symbols for both the coefficients and x, so the optimizer evaluates the
same curve it was fit with.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy.linalg import solve_triangular

from control.exceptions import FitDegenerateError, MalformedInputError


REFERENCE_ORDER = 3


def _n_coeffs(coeffs) -> int:
    if hasattr(coeffs, "shape"):
        return int(coeffs.shape[0])
    return len(coeffs)


def polyeval(coeffs, x):
    """Evaluate c0 + c1 x + c2 x^2 + ... (Horner)."""
    n = _n_coeffs(coeffs)
    result = coeffs[n - 1]
    for i in range(n - 2, -1, -1):
        result = result * x + coeffs[i]
    return result


def polyderiv(coeffs, x):
    """Evaluate the first derivative c1 + 2 c2 x + 3 c3 x^2 + ..."""
    n = _n_coeffs(coeffs)
    if n < 2:
        return 0.0 * x
    result = (n - 1) * coeffs[n - 1]
    for i in range(n - 2, 0, -1):
        result = result * x + i * coeffs[i]
    return result


def polyfit(xs, ys, order: int = REFERENCE_ORDER) -> np.ndarray:
    """
    Fit a polynomial of the given order by QR least squares.

    Args:
        xs, ys: Sample points (equal length, at least order + 1)
        order: Polynomial order (>= 1)

    Returns:
        Coefficients [c0, ..., c_order] in increasing power

    Raises:
        MalformedInputError: lengths differ, too few points or non-finite values
        FitDegenerateError: fewer than order + 1 distinct x values, or a
            numerically rank-deficient design matrix
    """
    xs = np.asarray(xs, dtype=float).ravel()
    ys = np.asarray(ys, dtype=float).ravel()

    if order < 1:
        raise ValueError(f"order must be >= 1, got {order}")
    if xs.shape != ys.shape:
        raise MalformedInputError(f"x and y must have same length, got {xs.size} vs {ys.size}")
    if xs.size < order + 1:
        raise MalformedInputError(f"need at least {order + 1} points for order {order}, got {xs.size}")
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        raise MalformedInputError("waypoints contain non-finite values")
    if np.unique(xs).size < order + 1:
        raise FitDegenerateError(f"need {order + 1} distinct x values, got {np.unique(xs).size}")

    # Vandermonde design matrix, columns 1, x, x^2, ...
    A = np.vander(xs, order + 1, increasing=True)
    Q, R = np.linalg.qr(A)

    diag = np.abs(np.diag(R))
    if diag.min() <= np.finfo(float).eps * diag.max() * A.shape[0]:
        raise FitDegenerateError("reference fit is rank deficient")

    return solve_triangular(R, Q.T @ ys)


@dataclass(frozen=True, eq=False)
class ReferenceCurve:
    """Cubic reference y = f(x), valid only in the frame it was fit in."""
    coeffs: np.ndarray

    def __call__(self, x):
        return polyeval(self.coeffs, x)

    def slope(self, x):
        return polyderiv(self.coeffs, x)

    def heading(self, x):
        """Tangent angle atan(f'(x)) [rad]."""
        return np.arctan(self.slope(x))

    def sample(self, step: float, count: int) -> Tuple[np.ndarray, np.ndarray]:
        """Points at x = step * i for i = 1..count-1 (display path)."""
        xs = step * np.arange(1, count, dtype=float)
        return xs, np.asarray(self(xs), dtype=float)


def fit_reference_curve(xs, ys, order: int = REFERENCE_ORDER) -> ReferenceCurve:
    """Fit the local reference curve through vehicle-frame waypoints."""
    return ReferenceCurve(coeffs=polyfit(xs, ys, order))
