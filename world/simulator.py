"""
Closed-loop kinematic simulation of the MPC controller on a synthetic road.

The controller sees the same telemetry the simulator sends (waypoints ahead,
world pose, speed in simulator units, command in effect). Each emitted
command takes effect latency_s after it was computed.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from control.loop import ControlLoop
from control.messages import ActuatorCommand, CommandRecord, ResetSignal, TelemetryRecord
from models.vehicle import ControlParameters, KinematicBicycleModel
from world.frames import to_world_frame
from world.road import SyntheticRoad


@dataclass
class SimulationResult:
    """Container for closed-loop results, one entry per control cycle."""
    t: np.ndarray              # Time [s]
    x: np.ndarray              # World x [m]
    y: np.ndarray              # World y [m]
    psi: np.ndarray            # Heading [rad]
    v: np.ndarray              # Speed [m/s]
    steering: np.ndarray       # Emitted steering [-1, 1]
    throttle: np.ndarray       # Emitted throttle [-1, 1]
    lateral_error: np.ndarray  # Signed offset from the centerline [m]
    solve_time: np.ndarray     # Optimizer wall time [s]
    degraded: np.ndarray       # Held previous command
    resets: int = 0
    predicted_paths: List[Tuple[np.ndarray, np.ndarray]] = field(default_factory=list)


def rk4_step(f, x, u, dt):
    """
    Fourth-order Runge-Kutta integration step.
    """
    k1 = f(x, u)
    k2 = f(x + dt/2 * k1, u)
    k3 = f(x + dt/2 * k2, u)
    k4 = f(x + dt * k3, u)
    return x + dt/6 * (k1 + 2*k2 + 2*k3 + k4)


class ClosedLoopSimulator:

    def __init__(
        self,
        road: SyntheticRoad,
        params: ControlParameters,
        control_loop: Optional[ControlLoop] = None,
        control_period_s: float = 0.1,
        sim_dt: float = 0.01,
        num_waypoints: int = 6
    ):
        """
        Initialize the simulator.

        Args:
            road: Road providing the centerline and waypoints
            params: Controller parameters (latency, units, steering bound)
            control_loop: Controller under test (new one if not given)
            control_period_s: Time between telemetry messages [s]
            sim_dt: Integration step [s]
            num_waypoints: Waypoints per telemetry message
        """
        if sim_dt <= 0 or control_period_s < sim_dt:
            raise ValueError("need 0 < sim_dt <= control_period_s")

        self.road = road
        self.params = params
        self.control_loop = control_loop or ControlLoop(params)
        self.control_period_s = control_period_s
        self.sim_dt = sim_dt
        self.num_waypoints = num_waypoints

        model = KinematicBicycleModel(params.lf_m)
        self.f: Callable[[np.ndarray, np.ndarray], np.ndarray] = model.derivatives

    def _telemetry(self, x: np.ndarray, in_effect: ActuatorCommand) -> TelemetryRecord:
        wx, wy = self.road.waypoints_ahead(x[0], x[1], self.num_waypoints)
        return TelemetryRecord(
            waypoints_x=[float(v) for v in wx],
            waypoints_y=[float(v) for v in wy],
            x=float(x[0]),
            y=float(x[1]),
            heading=float(x[2]),
            speed=float(x[3]) / self.params.speed_scale,
            prior_steering=in_effect.steering,
            prior_throttle=in_effect.throttle,
        )

    def _respawn(self, x: np.ndarray) -> np.ndarray:
        s_m, _ = self.road.project(x[0], x[1])
        return np.array([
            float(self.road.posX_m_interp_fcn(s_m)),
            float(self.road.posY_m_interp_fcn(s_m)),
            float(self.road.psi_rad_interp_fcn(s_m)),
            x[3],
        ])

    def run(self, duration_s: float = 20.0, initial_speed_mps: float = 10.0) -> SimulationResult:
        """
        Simulate until duration_s or until the waypoints run off the road end.

        Returns:
            SimulationResult with one sample per control cycle
        """
        p = self.params
        px, py, psi = self.road.start_pose()
        x = np.array([px, py, psi, initial_speed_mps])

        in_effect = ActuatorCommand()
        pending: List[Tuple[float, ActuatorCommand]] = []
        n_sub = max(1, int(round(self.control_period_s / self.sim_dt)))
        s_end = self.road.length_m - self.road.waypoint_spacing_m * self.num_waypoints

        log = {k: [] for k in ("t", "x", "y", "psi", "v", "steering", "throttle",
                               "lateral_error", "solve_time", "degraded")}
        resets = 0
        predicted_paths = []
        t = 0.0

        for _ in range(int(round(duration_s / self.control_period_s))):
            s_m, e_m = self.road.project(x[0], x[1])
            if s_m >= s_end:
                break

            output = self.control_loop.step(self._telemetry(x, in_effect))

            if isinstance(output, ResetSignal):
                resets += 1
                x = self._respawn(x)
                in_effect = ActuatorCommand()
                pending.clear()
                s_m, e_m = self.road.project(x[0], x[1])
            elif isinstance(output, CommandRecord):
                pending.append((t + p.latency_s, output.command))
                predicted_paths.append(
                    to_world_frame(output.predicted_path_x, output.predicted_path_y, x[0], x[1], x[2])
                )

            cmd = output.command if isinstance(output, CommandRecord) else in_effect
            diag = output.diagnostics if isinstance(output, CommandRecord) else None
            log["t"].append(t)
            log["x"].append(x[0])
            log["y"].append(x[1])
            log["psi"].append(x[2])
            log["v"].append(x[3])
            log["steering"].append(cmd.steering)
            log["throttle"].append(cmd.throttle)
            log["lateral_error"].append(e_m)
            log["solve_time"].append(diag.solve_time if diag is not None else 0.0)
            log["degraded"].append(bool(getattr(output, "degraded", False)))

            for _ in range(n_sub):
                while pending and pending[0][0] <= t + 1e-9:
                    in_effect = pending.pop(0)[1]
                u = np.array([in_effect.steering * p.max_steer_rad, in_effect.throttle])
                x = rk4_step(self.f, x, u, self.sim_dt)
                # Kinematic model is forward-only
                x[3] = max(x[3], 0.0)
                t += self.sim_dt

        arrays = {k: np.asarray(v) for k, v in log.items()}
        return SimulationResult(resets=resets, predicted_paths=predicted_paths, **arrays)
