"""
Control cycle records and error kinds.

The cycle itself lives in control.loop (ControlLoop) and the error
estimation in control.tracking; import them from there.
"""

from .exceptions import ControlError, MalformedInputError, FitDegenerateError
from .messages import (
    ActuatorCommand,
    CommandRecord,
    ControlOutput,
    CycleDiagnostics,
    ManualModeSignal,
    ResetSignal,
    TelemetryRecord,
)

__all__ = [
    'ControlError',
    'MalformedInputError',
    'FitDegenerateError',
    'ActuatorCommand',
    'CommandRecord',
    'ControlOutput',
    'CycleDiagnostics',
    'ManualModeSignal',
    'ResetSignal',
    'TelemetryRecord',
]
