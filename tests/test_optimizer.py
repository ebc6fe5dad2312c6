import dataclasses

import numpy as np
import pytest

from models.vehicle import VehicleState
from planning.optimizer import TIMEOUT_STATUSES, TrajectoryOptimizer


@pytest.fixture
def optimizer(params):
    return TrajectoryOptimizer(params)


def test_on_centerline_at_reference_speed_needs_no_control(optimizer, params):
    state = VehicleState(v=params.ref_v_mps)

    result = optimizer.solve(state, np.zeros(4))

    assert result.success
    assert result.X.shape == (6, params.n_steps + 1)
    assert result.U.shape == (2, params.n_steps)
    np.testing.assert_allclose(result.U, 0.0, atol=1e-3)
    assert abs(result.steer) < 1e-3
    assert abs(result.accel) < 1e-3


def test_predicted_path_has_horizon_length(optimizer, params):
    result = optimizer.solve(VehicleState(v=10.0), np.array([0.0, 0.0, 0.005, 0.0]))

    assert len(result.predicted_x) == params.n_steps
    assert len(result.predicted_y) == params.n_steps
    assert result.predicted_x[0] > 0.0


def test_steers_toward_road_on_the_left(optimizer):
    result = optimizer.solve(VehicleState(v=10.0, cte=1.0), np.array([1.0, 0.0, 0.0, 0.0]))

    assert result.success
    assert result.steer > 0.0


def test_steers_toward_road_on_the_right(optimizer):
    result = optimizer.solve(VehicleState(v=10.0, cte=-1.0), np.array([-1.0, 0.0, 0.0, 0.0]))

    assert result.success
    assert result.steer < 0.0


def test_controls_respect_bounds(optimizer, params):
    # Far off a steep curve and well below reference speed: bounds are active
    coeffs = np.array([4.0, 0.8, 0.0, 0.0])
    state = VehicleState(v=5.0, cte=4.0, epsi=-np.arctan(0.8))

    result = optimizer.solve(state, coeffs)

    tol = 1e-6
    assert np.all(np.abs(result.U[0]) <= params.max_steer_rad + tol)
    assert np.all(result.U[1] >= params.accel_min - tol)
    assert np.all(result.U[1] <= params.accel_max + tol)


def test_warm_start_is_kept_after_success_and_cleared_by_reset(optimizer):
    optimizer.solve(VehicleState(v=10.0, cte=0.5), np.array([0.5, 0.0, 0.0, 0.0]))
    assert optimizer._U_guess is not None
    assert optimizer._U_guess.shape == (2, optimizer.params.n_steps)

    optimizer.reset()
    assert optimizer._U_guess is None


def test_iteration_budget_exhaustion_is_reported(params):
    optimizer = TrajectoryOptimizer(dataclasses.replace(params, solver_max_iter=1))
    coeffs = np.array([-2.0, 1.1, -0.045, 0.0005])

    result = optimizer.solve(VehicleState(v=10.0, cte=-2.0, epsi=-np.arctan(1.1)), coeffs)

    assert not result.success
    assert not result.timed_out
    assert result.cost == float("inf")
    assert result.U.shape == (2, params.n_steps)
    assert optimizer._U_guess is None


def test_rejects_wrong_coefficient_count(optimizer):
    with pytest.raises(ValueError):
        optimizer.solve(VehicleState(v=10.0), np.zeros(3))


def test_rollout_matches_horizon(optimizer, params):
    U = np.zeros((2, params.n_steps))
    X = optimizer.rollout(VehicleState(v=10.0).as_array(), np.zeros(4), U)

    assert X.shape == (6, params.n_steps + 1)
    np.testing.assert_allclose(X[0], np.arange(params.n_steps + 1) * 10.0 * params.dt_s)
    np.testing.assert_allclose(X[1], 0.0)


def test_cpu_time_budget_exhaustion_is_a_timeout(params):
    tight = dataclasses.replace(params, solver_max_time_s=1e-6, n_steps=40)
    optimizer = TrajectoryOptimizer(tight)
    coeffs = np.array([-2.0, 1.1, -0.045, 0.0005])

    # Seed a warm start first so the failure has something to clear
    optimizer._U_guess = np.zeros((2, tight.n_steps))
    result = optimizer.solve(VehicleState(v=10.0, cte=-2.0, epsi=-np.arctan(1.1)), coeffs)

    assert not result.success
    assert result.timed_out
    assert result.status in TIMEOUT_STATUSES
    assert result.U.shape == (2, tight.n_steps)
    assert optimizer._U_guess is None
