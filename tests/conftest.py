import dataclasses

import pytest

from control.loop import ControlLoop
from control.messages import TelemetryRecord
from models.vehicle import ControlParameters


@pytest.fixture
def params():
    """Default parameters with telemetry speed already in m/s."""
    return dataclasses.replace(ControlParameters(), speed_scale=1.0)


@pytest.fixture
def control_loop(params):
    return ControlLoop(params)


@pytest.fixture
def scenario_telemetry():
    """Four waypoints ahead, vehicle at the origin heading +x at 10 m/s."""
    return TelemetryRecord(
        waypoints_x=[10.0, 20.0, 30.0, 40.0],
        waypoints_y=[5.0, 6.0, 4.0, 2.0],
        x=0.0,
        y=0.0,
        heading=0.0,
        speed=10.0,
        prior_steering=0.0,
        prior_throttle=0.0,
    )


def straight_telemetry(offset, speed=10.0, prior_steering=0.0, prior_throttle=0.0):
    """Straight road parallel to +x at lateral offset `offset`."""
    return TelemetryRecord(
        waypoints_x=[5.0, 15.0, 25.0, 35.0, 45.0],
        waypoints_y=[offset] * 5,
        x=0.0,
        y=0.0,
        heading=0.0,
        speed=speed,
        prior_steering=prior_steering,
        prior_throttle=prior_throttle,
    )
