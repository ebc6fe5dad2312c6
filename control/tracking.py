"""Cross-track and heading error against the local reference curve."""

import math
from dataclasses import replace
from typing import Tuple

from models.vehicle import VehicleState
from world.reference import ReferenceCurve


def estimate_errors(curve: ReferenceCurve, x: float, y: float, psi: float) -> Tuple[float, float]:
    """
    Signed tracking errors at a local-frame pose.

    cte  = f(x) - y
    epsi = psi - atan(f'(x))
    """
    cte = float(curve(x)) - y
    epsi = psi - math.atan(float(curve.slope(x)))
    return cte, epsi


def refresh_errors(curve: ReferenceCurve, state: VehicleState) -> VehicleState:
    """Replace cte/epsi with the values at the state's own pose."""
    cte, epsi = estimate_errors(curve, state.x, state.y, state.psi)
    return replace(state, cte=cte, epsi=epsi)


def check_path_departure(cte: float, threshold: float) -> bool:
    """True when |cte| exceeds the threshold (vehicle must be reset)."""
    return abs(cte) > threshold
