"""
Logical records exchanged with the transport collaborator.

Inbound:  TelemetryRecord (or None when the frame carried no payload)
Outbound: CommandRecord | ResetSignal | ManualModeSignal
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union


@dataclass(frozen=True)
class TelemetryRecord:
    """One telemetry snapshot.

    speed is in simulator units (scaled by ControlParameters.speed_scale).
    prior_steering is normalised to [-1, 1], positive counter-clockwise.
    """
    waypoints_x: Sequence[float]
    waypoints_y: Sequence[float]
    x: float
    y: float
    heading: float
    speed: float
    prior_steering: float = 0.0
    prior_throttle: float = 0.0


@dataclass(frozen=True)
class ActuatorCommand:
    """Normalised actuator pair, both in [-1, 1]."""
    steering: float = 0.0
    throttle: float = 0.0

    def clipped(self) -> "ActuatorCommand":
        return ActuatorCommand(
            steering=min(1.0, max(-1.0, self.steering)),
            throttle=min(1.0, max(-1.0, self.throttle)),
        )


@dataclass(frozen=True)
class CycleDiagnostics:
    """Per-cycle values for logging and plots; not used for control."""
    cte: float
    epsi: float
    cte_predicted: float
    epsi_predicted: float
    solver_status: str
    solve_time: float
    iterations: int


@dataclass
class CommandRecord:
    """Command emitted for one cycle plus visualisation paths (local frame)."""
    steering_angle: float
    throttle: float
    predicted_path_x: List[float] = field(default_factory=list)
    predicted_path_y: List[float] = field(default_factory=list)
    reference_path_x: List[float] = field(default_factory=list)
    reference_path_y: List[float] = field(default_factory=list)
    degraded: bool = False
    diagnostics: Optional[CycleDiagnostics] = None

    @property
    def command(self) -> ActuatorCommand:
        return ActuatorCommand(self.steering_angle, self.throttle)

    def to_dict(self) -> Dict[str, object]:
        return {
            "steering_angle": self.steering_angle,
            "throttle": self.throttle,
            "predicted_path_x": list(self.predicted_path_x),
            "predicted_path_y": list(self.predicted_path_y),
            "reference_path_x": list(self.reference_path_x),
            "reference_path_y": list(self.reference_path_y),
        }


@dataclass(frozen=True)
class ResetSignal:
    """Vehicle left the reference path beyond the CTE threshold."""
    cte: float = 0.0


@dataclass(frozen=True)
class ManualModeSignal:
    """Inbound frame had no telemetry payload."""


ControlOutput = Union[CommandRecord, ResetSignal, ManualModeSignal]
