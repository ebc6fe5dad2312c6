"""
Kinematic Bicycle Model and Controller Parameters

Kinematic (no tyre slip) single-track model used both for latency
compensation and as the equality constraint of the trajectory optimizer.

State vector:  [x, y, psi, v, cte, epsi] (6 states)
Control:       [steer_rad, accel] (2 inputs)

Sign convention: psi and steer are positive counter-clockwise. The simulator
reports steering positive clockwise; the transport codec flips it.
"""

from __future__ import annotations
from dataclasses import dataclass, astuple
from pathlib import Path
from typing import Union
import math

import numpy as np
from yaml import safe_load

import casadi as ca

from world.reference import polyeval, polyderiv


MPH_TO_MPS = 0.44704


# =============================================================================
# Controller Parameters
# =============================================================================

@dataclass(frozen=True)
class ControlParameters:
    """
    Process-wide controller constants - immutable dataclass.

    Loaded once at start-up; use dataclasses.replace() to derive variants.
    """

    # Horizon
    n_steps: int = 10           # horizon length N
    dt_s: float = 0.1           # optimizer step [s]
    latency_s: float = 0.1      # actuation latency [s]

    # Vehicle
    lf_m: float = 2.67          # front axle to CG [m]
    max_steer_deg: float = 25.0
    accel_min: float = -1.0
    accel_max: float = 1.0

    # Reference and fault detection
    ref_v_mps: float = 20.0
    cte_threshold_m: float = 5.0
    speed_scale: float = MPH_TO_MPS  # telemetry speed -> m/s

    # Cost weights
    w_cte: float = 2000.0
    w_epsi: float = 2000.0
    w_v: float = 1.0
    w_steer: float = 5.0
    w_accel: float = 5.0
    w_dsteer: float = 200.0
    w_daccel: float = 10.0

    # Solver budget
    solver_max_iter: int = 200
    solver_max_time_s: float = 0.5

    # Reference path display sampling
    reference_path_step: float = 2.5
    reference_path_points: int = 25

    def __post_init__(self):
        if self.n_steps < 2:
            raise ValueError(f"n_steps must be >= 2, got {self.n_steps}")
        if self.dt_s <= 0 or self.lf_m <= 0:
            raise ValueError("dt_s and lf_m must be positive")
        if self.latency_s < 0:
            raise ValueError(f"latency_s must be >= 0, got {self.latency_s}")
        if not 0 < self.max_steer_deg < 90:
            raise ValueError(f"max_steer_deg must be in (0, 90), got {self.max_steer_deg}")
        if self.accel_min >= self.accel_max:
            raise ValueError("accel_min must be below accel_max")
        if self.cte_threshold_m <= 0:
            raise ValueError("cte_threshold_m must be positive")
        if self.solver_max_iter < 1 or self.solver_max_time_s <= 0:
            raise ValueError("solver budget must be positive")

    @property
    def max_steer_rad(self) -> float:
        return math.radians(self.max_steer_deg)

    @staticmethod
    def load_from_yaml(yaml_file: Union[str, Path]) -> ControlParameters:
        """
        Load controller parameters from YAML file.

        Args:
            yaml_file: Path to YAML config file with a ``controller`` mapping

        Returns:
            ControlParameters instance
        """
        with open(yaml_file, "r") as stream:
            data = safe_load(stream)
        ctrl_dict = data["controller"]

        # Filter to only include fields that ControlParameters accepts
        valid_fields = {f.name for f in ControlParameters.__dataclass_fields__.values()}
        filtered_dict = {k: v for k, v in ctrl_dict.items() if k in valid_fields}

        return ControlParameters(**filtered_dict)


# =============================================================================
# State
# =============================================================================

@dataclass(frozen=True)
class VehicleState:
    """Vehicle state in the local frame of the current cycle."""
    x: float = 0.0
    y: float = 0.0
    psi: float = 0.0
    v: float = 0.0      # [m/s]
    cte: float = 0.0
    epsi: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array(astuple(self), dtype=float)


class StateIndex:
    """Index definitions for state and control vectors."""

    X = 0
    Y = 1
    PSI = 2
    V = 3
    CTE = 4
    EPSI = 5
    SIZE = 6

    class Control:
        STEER = 0
        ACCEL = 1
        SIZE = 2


# =============================================================================
# Kinematic Bicycle Model
# =============================================================================

class KinematicBicycleModel:
    """
    Kinematic bicycle model parameterised by the CG-to-front-axle length Lf.

    Provides the numeric latency predictor and the symbolic one-step update
    used as the optimizer's dynamics constraint.
    """

    def __init__(self, lf_m: float):
        if lf_m <= 0:
            raise ValueError(f"lf_m must be positive, got {lf_m}")
        self.lf_m = lf_m

    def predict(
        self,
        state: VehicleState,
        steer_rad: float,
        accel: float,
        dt: float
    ) -> VehicleState:
        """
        Advance the state by dt holding the command currently in effect.

        Args:
            state: State at sensing time
            steer_rad: Previous steering command [rad]
            accel: Previous throttle command
            dt: Prediction interval [s] (actuation latency)

        Returns:
            State at actuation time. dt == 0 returns an equal state.
            cte/epsi are a first-order propagation only; the control loop
            re-derives both from the curve at the predicted pose.
        """
        if dt == 0.0:
            return state

        v = state.v
        yaw_step = v / self.lf_m * steer_rad * dt
        return VehicleState(
            x=state.x + v * math.cos(state.psi) * dt,
            y=state.y + v * math.sin(state.psi) * dt,
            psi=state.psi + yaw_step,
            v=v + accel * dt,
            cte=state.cte + v * math.sin(state.epsi) * dt,
            epsi=state.epsi + yaw_step,
        )

    def dynamics_vec(self, x, u, coeffs, dt):
        """
        Symbolic one-step update x_{t+1} = F(x_t, u_t) against a reference curve.

        cte and epsi are re-derived from the curve at x_t so the tracking
        terms stay coupled to the reference along the whole horizon. With
        cte = f(x) - y, heading left of the tangent (epsi > 0) shrinks cte,
        hence the minus sign on the v sin(epsi) term.

        Args:
            x: State vector [x, y, psi, v, cte, epsi] (6,)
            u: Control vector [steer_rad, accel] (2,)
            coeffs: Cubic reference coefficients (4,)
            dt: Step [s]

        Returns:
            Next state vector (6,)
        """
        px, py, psi, v, epsi = x[0], x[1], x[2], x[3], x[5]
        steer, accel = u[0], u[1]

        f0 = polyeval(coeffs, px)
        psides0 = ca.atan(polyderiv(coeffs, px))
        yaw_step = v / self.lf_m * steer * dt

        return ca.vertcat(
            px + v * ca.cos(psi) * dt,
            py + v * ca.sin(psi) * dt,
            psi + yaw_step,
            v + accel * dt,
            (f0 - py) - v * ca.sin(epsi) * dt,
            (psi - psides0) + yaw_step,
        )

    def derivatives(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """World-frame derivative of the pose state [x, y, psi, v] (simulation)."""
        _, _, psi, v = x
        steer, accel = u
        return np.array([
            v * np.cos(psi),
            v * np.sin(psi),
            v / self.lf_m * steer,
            accel,
        ])

    def __repr__(self):
        return f"KinematicBicycleModel(lf_m={self.lf_m})"
