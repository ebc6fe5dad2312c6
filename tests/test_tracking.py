import math

import numpy as np
import pytest

from control.tracking import check_path_departure, estimate_errors, refresh_errors
from models.vehicle import VehicleState
from world.reference import ReferenceCurve


def test_errors_against_offset_straight_line():
    curve = ReferenceCurve(coeffs=np.array([1.0, 0.0, 0.0, 0.0]))

    cte, epsi = estimate_errors(curve, 0.0, 0.0, 0.0)

    assert cte == pytest.approx(1.0)
    assert epsi == pytest.approx(0.0)


def test_heading_error_against_diagonal():
    curve = ReferenceCurve(coeffs=np.array([0.0, 1.0, 0.0, 0.0]))

    cte, epsi = estimate_errors(curve, 0.0, 0.0, 0.0)

    assert cte == pytest.approx(0.0)
    assert epsi == pytest.approx(-math.pi / 4)


def test_refresh_errors_uses_state_pose():
    curve = ReferenceCurve(coeffs=np.array([0.0, 0.0, 0.1, 0.0]))
    state = VehicleState(x=2.0, y=0.1, psi=0.05, v=8.0, cte=99.0, epsi=99.0)

    refreshed = refresh_errors(curve, state)

    assert refreshed.cte == pytest.approx(0.4 - 0.1)
    assert refreshed.epsi == pytest.approx(0.05 - math.atan(0.4))
    assert (refreshed.x, refreshed.y, refreshed.v) == (2.0, 0.1, 8.0)


@pytest.mark.parametrize("cte, expected", [
    (4.99, False),
    (-4.99, False),
    (5.0, False),
    (5.01, True),
    (-5.01, True),
])
def test_path_departure_threshold(cte, expected):
    assert check_path_departure(cte, 5.0) is expected
