"""Error kinds raised by the control core."""


class ControlError(Exception):
    """Base class for control core errors."""


class MalformedInputError(ControlError, ValueError):
    """Telemetry or waypoint arrays are inconsistent, too short or non-finite."""


class FitDegenerateError(MalformedInputError):
    """Reference curve fit is ill-conditioned (too few distinct x values)."""
