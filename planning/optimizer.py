"""
Trajectory Optimizer - Receding-Horizon MPC

Solves the finite-horizon tracking problem for the kinematic bicycle model.
Uses CasADi's Opti interface with IPOPT as the NLP solver; the problem is
built once per instance with the initial state and reference coefficients
as parameters, so each control cycle only sets values and re-solves.

State: [x, y, psi, v, cte, epsi] (6 states)
Control: [steer_rad, accel] (2 inputs)
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
import casadi as ca

from models.vehicle import ControlParameters, KinematicBicycleModel, StateIndex, VehicleState
from world.reference import REFERENCE_ORDER


logger = logging.getLogger(__name__)

TIMEOUT_STATUSES = {"Maximum_CpuTime_Exceeded", "Maximum_WallTime_Exceeded"}


@dataclass
class OptimizationResult:
    """Container for one MPC solve."""
    success: bool
    status: str               # IPOPT return status
    X: np.ndarray             # State trajectory [nx, N+1]
    U: np.ndarray             # Control trajectory [nu, N]
    cost: float
    iterations: int           # Solver iterations
    solve_time: float         # Wall clock time [s]
    timed_out: bool = False

    @property
    def steer(self) -> float:
        """First steering command [rad]."""
        return float(self.U[StateIndex.Control.STEER, 0])

    @property
    def accel(self) -> float:
        """First throttle command."""
        return float(self.U[StateIndex.Control.ACCEL, 0])

    @property
    def predicted_x(self) -> np.ndarray:
        """Predicted local x for t = 1..N (visualisation only)."""
        return self.X[StateIndex.X, 1:]

    @property
    def predicted_y(self) -> np.ndarray:
        """Predicted local y for t = 1..N (visualisation only)."""
        return self.X[StateIndex.Y, 1:]


class TrajectoryOptimizer:
    """
    Receding-horizon optimizer for the kinematic bicycle model.

    Minimises weighted cte/epsi tracking error, speed error against
    ref_v_mps, control effort and control rate over N steps of dt,
    subject to the model's one-step update and actuator bounds.

    One instance per vehicle: it owns the warm-start guess.
    """

    IDX_X = StateIndex.X
    IDX_Y = StateIndex.Y
    IDX_PSI = StateIndex.PSI
    IDX_V = StateIndex.V
    IDX_CTE = StateIndex.CTE
    IDX_EPSI = StateIndex.EPSI

    def __init__(self, params: ControlParameters, verbose: bool = False):
        """
        Initialize the optimizer.

        Args:
            params: Controller parameters (horizon, weights, bounds, budget)
            verbose: Print IPOPT output
        """
        self.params = params
        self.model = KinematicBicycleModel(params.lf_m)
        self.verbose = verbose

        # Problem dimensions
        self.nx = StateIndex.SIZE
        self.nu = StateIndex.Control.SIZE
        self.n_coeffs = REFERENCE_ORDER + 1

        self._build_step_function()
        self._build_problem()

        self._U_guess: Optional[np.ndarray] = None

    def _build_step_function(self) -> None:
        x_sym = ca.SX.sym("x", self.nx)
        u_sym = ca.SX.sym("u", self.nu)
        c_sym = ca.SX.sym("coeffs", self.n_coeffs)

        x_next = self.model.dynamics_vec(x_sym, u_sym, c_sym, self.params.dt_s)

        self.f_step = ca.Function(
            "f_step",
            [x_sym, u_sym, c_sym],
            [x_next],
            ["x", "u", "coeffs"],
            ["x_next"],
        )

    def _build_problem(self) -> None:
        p = self.params
        N = p.n_steps
        opti = ca.Opti()

        # Decision variables
        X = opti.variable(self.nx, N + 1)  # States at each node
        U = opti.variable(self.nu, N)      # Controls applied during each step

        # Parameters set every cycle
        x0 = opti.parameter(self.nx)
        coeffs = opti.parameter(self.n_coeffs)

        v = X[self.IDX_V, :]
        cte = X[self.IDX_CTE, :]
        epsi = X[self.IDX_EPSI, :]
        steer = U[StateIndex.Control.STEER, :]
        accel = U[StateIndex.Control.ACCEL, :]

        # === Objective ===
        cost = 0
        for k in range(N + 1):
            cost += p.w_cte * cte[k]**2
            cost += p.w_epsi * epsi[k]**2
            cost += p.w_v * (v[k] - p.ref_v_mps)**2

        for k in range(N):
            cost += p.w_steer * steer[k]**2
            cost += p.w_accel * accel[k]**2

        # Control rate penalties (smooth actuation)
        for k in range(N - 1):
            cost += p.w_dsteer * (steer[k + 1] - steer[k])**2
            cost += p.w_daccel * (accel[k + 1] - accel[k])**2

        opti.minimize(cost)

        # === Initial state ===
        opti.subject_to(X[:, 0] == x0)

        # === Dynamics constraints ===
        for k in range(N):
            opti.subject_to(X[:, k + 1] == self.f_step(X[:, k], U[:, k], coeffs))

        # === Control constraints ===
        opti.subject_to(opti.bounded(-p.max_steer_rad, steer, p.max_steer_rad))
        opti.subject_to(opti.bounded(p.accel_min, accel, p.accel_max))

        # === Solver options ===
        opts = {
            'ipopt.print_level': 5 if self.verbose else 0,
            'ipopt.sb': 'yes',
            'print_time': self.verbose,
            'ipopt.max_iter': p.solver_max_iter,
            'ipopt.max_cpu_time': p.solver_max_time_s,
            'ipopt.tol': 1e-6,
            'ipopt.acceptable_tol': 1e-4,
        }
        opti.solver('ipopt', opts)

        self.opti = opti
        self.X = X
        self.U = U
        self.x0 = x0
        self.coeffs = coeffs
        self.cost = cost

    def rollout(self, x0: np.ndarray, coeffs: np.ndarray, U: np.ndarray) -> np.ndarray:
        """Integrate the model over the horizon for a control sequence."""
        N = U.shape[1]
        X = np.zeros((self.nx, N + 1))
        X[:, 0] = x0
        for k in range(N):
            X[:, k + 1] = np.array(self.f_step(X[:, k], U[:, k], coeffs)).flatten()
        return X

    def reset(self) -> None:
        """Discard the warm-start guess."""
        self._U_guess = None

    def _initial_controls(self, warm_start: bool) -> np.ndarray:
        if warm_start and self._U_guess is not None:
            return self._U_guess
        return np.zeros((self.nu, self.params.n_steps))

    def solve(
        self,
        state: VehicleState,
        coeffs: np.ndarray,
        warm_start: bool = True
    ) -> OptimizationResult:
        """
        Solve the tracking problem from the latency-compensated state.

        Args:
            state: Predicted state in the local frame
            coeffs: Reference curve coefficients in the same frame
            warm_start: Seed from the previous solution's shifted controls

        Returns:
            OptimizationResult. success is False on non-convergence, in which
            case X/U hold the last iterate and must not be trusted.
        """
        coeffs = np.asarray(coeffs, dtype=float).ravel()
        if coeffs.size != self.n_coeffs:
            raise ValueError(f"coeffs must have {self.n_coeffs} entries, got {coeffs.size}")

        t_start = time.time()
        x0 = state.as_array()
        opti = self.opti

        opti.set_value(self.x0, x0)
        opti.set_value(self.coeffs, coeffs)

        # === Initial guess ===
        # Controls carry over between frames; states are re-integrated from x0.
        U_init = self._initial_controls(warm_start)
        opti.set_initial(self.U, U_init)
        opti.set_initial(self.X, self.rollout(x0, coeffs, U_init))

        # === Solve ===
        try:
            sol = opti.solve()
            success = True
            X_opt = sol.value(self.X)
            U_opt = sol.value(self.U)
            cost_opt = float(sol.value(self.cost))
            stats = sol.stats()
        except RuntimeError as err:
            logger.debug("Solver failed: %s", err)
            success = False
            X_opt = opti.debug.value(self.X)
            U_opt = opti.debug.value(self.U)
            cost_opt = float('inf')
            stats = opti.stats()

        solve_time = time.time() - t_start
        status = str(stats.get('return_status', 'unknown'))
        iterations = int(stats.get('iter_count', -1))

        X_opt = np.asarray(X_opt, dtype=float).reshape(self.nx, -1)
        U_opt = np.asarray(U_opt, dtype=float).reshape(self.nu, -1)

        if success:
            # Shift one step for the next cycle, repeating the last control
            self._U_guess = np.hstack([U_opt[:, 1:], U_opt[:, -1:]])
        else:
            self._U_guess = None

        return OptimizationResult(
            success=success,
            status=status,
            X=X_opt,
            U=U_opt,
            cost=cost_opt,
            iterations=iterations,
            solve_time=solve_time,
            timed_out=status in TIMEOUT_STATUSES,
        )
