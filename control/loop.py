"""
One control cycle per telemetry record.

transform -> fit -> pre-latency errors -> departure check -> latency
prediction -> post-latency errors -> solve -> command.
"""

import logging
import math
from typing import Optional

import numpy as np

from models.vehicle import ControlParameters, KinematicBicycleModel, VehicleState
from planning.optimizer import TrajectoryOptimizer
from world.frames import to_vehicle_frame
from world.reference import REFERENCE_ORDER, ReferenceCurve, fit_reference_curve

from .exceptions import MalformedInputError
from .messages import (
    ActuatorCommand,
    CommandRecord,
    ControlOutput,
    CycleDiagnostics,
    ManualModeSignal,
    ResetSignal,
    TelemetryRecord,
)
from .tracking import check_path_departure, estimate_errors, refresh_errors


logger = logging.getLogger(__name__)


def validate_telemetry(telemetry: TelemetryRecord) -> None:
    """Raise MalformedInputError if the record cannot drive a cycle."""
    n_x = len(telemetry.waypoints_x)
    n_y = len(telemetry.waypoints_y)
    if n_x != n_y:
        raise MalformedInputError(f"waypoint arrays differ in length: {n_x} vs {n_y}")
    if n_x < REFERENCE_ORDER + 1:
        raise MalformedInputError(f"need at least {REFERENCE_ORDER + 1} waypoints, got {n_x}")

    scalars = {
        "x": telemetry.x,
        "y": telemetry.y,
        "heading": telemetry.heading,
        "speed": telemetry.speed,
        "prior_steering": telemetry.prior_steering,
        "prior_throttle": telemetry.prior_throttle,
    }
    for name, value in scalars.items():
        if not math.isfinite(value):
            raise MalformedInputError(f"telemetry field {name} is not finite: {value}")


class ControlLoop:
    """
    Latency-compensated MPC loop for a single vehicle.

    Owns the previous emitted command and the optimizer (and so its warm
    start). Not thread-safe; one instance per vehicle.
    """

    def __init__(
        self,
        params: ControlParameters,
        optimizer: Optional[TrajectoryOptimizer] = None,
        verbose: bool = False
    ):
        self.params = params
        self.model = KinematicBicycleModel(params.lf_m)
        self.optimizer = optimizer or TrajectoryOptimizer(params, verbose=verbose)
        self.previous_command: Optional[ActuatorCommand] = None

    def reset(self) -> None:
        """Forget the previous command and warm start (vehicle respawned)."""
        self.previous_command = None
        self.optimizer.reset()

    def _command_in_effect(self, telemetry: TelemetryRecord) -> ActuatorCommand:
        if self.previous_command is not None:
            return self.previous_command
        return ActuatorCommand(telemetry.prior_steering, telemetry.prior_throttle).clipped()

    def step(self, telemetry: Optional[TelemetryRecord]) -> ControlOutput:
        """
        Run one cycle.

        Args:
            telemetry: Decoded telemetry, or None when the inbound frame had
                no payload (manual driving)

        Returns:
            CommandRecord, ResetSignal on path departure, or ManualModeSignal

        Raises:
            MalformedInputError: inconsistent or degenerate input, or a state
                that overflows during latency prediction; no command is
                produced and the stored previous command is unchanged
        """
        if telemetry is None:
            return ManualModeSignal()

        validate_telemetry(telemetry)
        p = self.params

        local_x, local_y = to_vehicle_frame(
            telemetry.waypoints_x, telemetry.waypoints_y,
            telemetry.x, telemetry.y, telemetry.heading
        )
        curve = fit_reference_curve(local_x, local_y)

        # Vehicle sits at the local origin with zero heading
        cte, epsi = estimate_errors(curve, 0.0, 0.0, 0.0)
        if check_path_departure(cte, p.cte_threshold_m):
            logger.warning("Path departure: |cte| = %.2f m > %.2f m, requesting reset",
                           abs(cte), p.cte_threshold_m)
            self.reset()
            return ResetSignal(cte=cte)

        in_effect = self._command_in_effect(telemetry)
        current = VehicleState(v=telemetry.speed * p.speed_scale, cte=cte, epsi=epsi)
        predicted = self.model.predict(
            current,
            in_effect.steering * p.max_steer_rad,
            in_effect.throttle,
            p.latency_s,
        )
        predicted = refresh_errors(curve, predicted)
        if not np.all(np.isfinite(predicted.as_array())):
            raise MalformedInputError(f"predicted state is not finite: {predicted}")

        result = self.optimizer.solve(predicted, curve.coeffs)

        if result.success:
            command = ActuatorCommand(result.steer / p.max_steer_rad, result.accel).clipped()
            path_x, path_y = result.predicted_x, result.predicted_y
        else:
            reason = "timed out" if result.timed_out else "did not converge"
            logger.warning("MPC solve %s (%s after %d iterations), holding previous command",
                           reason, result.status, result.iterations)
            command = in_effect.clipped()
            path_x, path_y = self._hold_path(predicted, curve, command)

        self.previous_command = command

        ref_x, ref_y = curve.sample(p.reference_path_step, p.reference_path_points)
        diagnostics = CycleDiagnostics(
            cte=cte,
            epsi=epsi,
            cte_predicted=predicted.cte,
            epsi_predicted=predicted.epsi,
            solver_status=result.status,
            solve_time=result.solve_time,
            iterations=result.iterations,
        )
        logger.debug("cte=%.3f epsi=%.4f steer=%.3f throttle=%.3f solve=%.1fms [%s]",
                     predicted.cte, predicted.epsi, command.steering, command.throttle,
                     result.solve_time * 1000.0, result.status)

        return CommandRecord(
            steering_angle=command.steering,
            throttle=command.throttle,
            predicted_path_x=[float(v) for v in path_x],
            predicted_path_y=[float(v) for v in path_y],
            reference_path_x=[float(v) for v in ref_x],
            reference_path_y=[float(v) for v in ref_y],
            degraded=not result.success,
            diagnostics=diagnostics,
        )

    def _hold_path(self, state: VehicleState, curve: ReferenceCurve, command: ActuatorCommand):
        """Predicted path if the held command stays in effect over the horizon."""
        p = self.params
        U = np.tile(
            np.array([[command.steering * p.max_steer_rad], [command.throttle]]),
            (1, p.n_steps),
        )
        X = self.optimizer.rollout(state.as_array(), curve.coeffs, U)
        return X[0, 1:], X[1, 1:]
