import dataclasses
from pathlib import Path

import numpy as np
import pytest

from models.vehicle import ControlParameters
from utils.visualization import ClosedLoopVisualizer
from world.road import SyntheticRoad
from world.simulator import ClosedLoopSimulator, rk4_step


@pytest.fixture(scope="module")
def road():
    return SyntheticRoad()


@pytest.fixture(scope="module")
def tracking_run(road):
    simulator = ClosedLoopSimulator(road, ControlParameters())
    return simulator.run(duration_s=3.0, initial_speed_mps=10.0)


# =============================================================================
# Road
# =============================================================================

def test_project_start_pose(road):
    px, py, _ = road.start_pose()
    s_m, e_m = road.project(px, py)

    assert s_m == pytest.approx(0.0)
    assert e_m == pytest.approx(0.0, abs=1e-9)


def test_project_sign_is_positive_left(road):
    # Centerline heads up-right at x = 0; a point straight above is on the left
    _, e_left = road.project(0.0, 1.0)
    _, e_right = road.project(0.0, -1.0)

    assert e_left > 0.0
    assert e_right < 0.0


def test_waypoints_ahead_are_spaced_along_road(road):
    wx, wy = road.waypoints_ahead(road.posX_m[250], road.posY_m[250], count=6)

    assert len(wx) == len(wy) == 6
    assert np.all(np.diff(wx) > 0.0)
    steps = np.hypot(np.diff(wx), np.diff(wy))
    np.testing.assert_allclose(steps, road.waypoint_spacing_m, rtol=0.02)


def test_rejects_bad_geometry():
    with pytest.raises(ValueError):
        SyntheticRoad(wavelength_m=0.0)


def test_rk4_step_integrates_linear_ode_exactly():
    x = rk4_step(lambda x, u: u * np.ones_like(x), np.zeros(2), 2.0, 0.5)
    np.testing.assert_allclose(x, [1.0, 1.0])


# =============================================================================
# Closed loop
# =============================================================================

def test_closed_loop_tracks_without_resets(tracking_run):
    assert tracking_run.resets == 0
    assert len(tracking_run.t) == 30
    assert np.max(np.abs(tracking_run.lateral_error)) < 2.0
    assert np.all(np.abs(tracking_run.steering) <= 1.0)
    assert np.all(np.abs(tracking_run.throttle) <= 1.0)
    # Accelerates toward the reference speed
    assert tracking_run.v[-1] > tracking_run.v[0]


def test_predicted_paths_are_recorded_in_world_frame(tracking_run):
    assert len(tracking_run.predicted_paths) == 30
    px, py = tracking_run.predicted_paths[0]
    assert len(px) == ControlParameters().n_steps
    assert px[0] > tracking_run.x[0]


def test_tiny_threshold_forces_resets(road):
    params = dataclasses.replace(ControlParameters(), cte_threshold_m=1e-6)
    simulator = ClosedLoopSimulator(road, params)

    result = simulator.run(duration_s=0.5)

    assert result.resets > 0
    assert np.all(result.steering == 0.0)


def test_invalid_sim_step_rejected(road):
    with pytest.raises(ValueError):
        ClosedLoopSimulator(road, ControlParameters(), control_period_s=0.01, sim_dt=0.1)


def test_report_writes_plots(road, tracking_run, tmp_path):
    visualizer = ClosedLoopVisualizer(road, output_dir=str(tmp_path))

    paths = visualizer.generate_full_report(tracking_run, prefix="run", ref_v_mps=20.0)

    assert set(paths) == {"overhead", "errors", "controls"}
    for path in paths.values():
        assert Path(path).exists()
