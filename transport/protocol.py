"""
Simulator websocket event codec.

Frames are socket.io text messages: "4" (message) + "2" (event) followed by
a JSON array ``[event_name, payload]``.

The simulator reports and expects steering positive clockwise, in radians
inbound and normalised outbound; the controller uses positive
counter-clockwise, so the sign is flipped at this boundary.
"""

import json
from dataclasses import dataclass
from typing import Optional

from control.exceptions import MalformedInputError
from control.messages import (
    CommandRecord,
    ControlOutput,
    ManualModeSignal,
    ResetSignal,
    TelemetryRecord,
)


EVENT_PREFIX = "42"
SIMULATOR_STEERING_SIGN = -1.0

FRAME_IGNORE = "ignore"
FRAME_MANUAL = "manual"
FRAME_TELEMETRY = "telemetry"

RESET_FRAME = EVENT_PREFIX + '["reset",{}]'
MANUAL_FRAME = EVENT_PREFIX + '["manual",{}]'


@dataclass(frozen=True)
class DecodedFrame:
    kind: str
    telemetry: Optional[TelemetryRecord] = None


def extract_payload(frame: str) -> Optional[str]:
    """
    Return the JSON array text of an event frame.

    None when the frame carries ``null`` (no telemetry, manual driving) or
    has no bracketed payload.
    """
    if "null" in frame:
        return None
    b1 = frame.find("[")
    b2 = frame.rfind("}]")
    if b1 != -1 and b2 != -1:
        return frame[b1:b2 + 2]
    return None


def _float_list(data: dict, key: str):
    values = data[key]
    if not isinstance(values, list):
        raise TypeError(f"{key} must be a list")
    return [float(v) for v in values]


def parse_telemetry(data: dict, max_steer_rad: float) -> TelemetryRecord:
    """
    Build a TelemetryRecord from the simulator's telemetry payload.

    Raises:
        MalformedInputError: a field is missing or has the wrong type
    """
    try:
        return TelemetryRecord(
            waypoints_x=_float_list(data, "ptsx"),
            waypoints_y=_float_list(data, "ptsy"),
            x=float(data["x"]),
            y=float(data["y"]),
            heading=float(data["psi"]),
            speed=float(data["speed"]),
            prior_steering=SIMULATOR_STEERING_SIGN * float(data["steering_angle"]) / max_steer_rad,
            prior_throttle=float(data["throttle"]),
        )
    except (KeyError, TypeError, ValueError) as err:
        raise MalformedInputError(f"bad telemetry payload: {err!r}") from err


def decode_frame(frame: str, max_steer_rad: float) -> DecodedFrame:
    """
    Classify and decode one inbound text frame.

    Returns:
        DecodedFrame with kind FRAME_IGNORE (not an event or not telemetry),
        FRAME_MANUAL (event without payload) or FRAME_TELEMETRY
    """
    if len(frame) <= 2 or not frame.startswith(EVENT_PREFIX):
        return DecodedFrame(FRAME_IGNORE)

    payload = extract_payload(frame)
    if payload is None:
        return DecodedFrame(FRAME_MANUAL)

    try:
        message = json.loads(payload)
    except json.JSONDecodeError as err:
        raise MalformedInputError(f"frame is not valid JSON: {err}") from err

    if not isinstance(message, list) or len(message) < 2 or message[0] != "telemetry":
        return DecodedFrame(FRAME_IGNORE)
    if not isinstance(message[1], dict):
        raise MalformedInputError("telemetry payload must be an object")

    return DecodedFrame(FRAME_TELEMETRY, parse_telemetry(message[1], max_steer_rad))


def encode_output(output: ControlOutput) -> str:
    """Encode a control output as an outbound event frame."""
    if isinstance(output, ResetSignal):
        return RESET_FRAME
    if isinstance(output, ManualModeSignal):
        return MANUAL_FRAME
    if not isinstance(output, CommandRecord):
        raise TypeError(f"cannot encode {type(output).__name__}")

    msg = {
        "steering_angle": SIMULATOR_STEERING_SIGN * output.steering_angle,
        "throttle": output.throttle,
        "mpc_x": list(output.predicted_path_x),
        "mpc_y": list(output.predicted_path_y),
        "next_x": list(output.reference_path_x),
        "next_y": list(output.reference_path_y),
    }
    return EVENT_PREFIX + json.dumps(["steer", msg], separators=(",", ":"))
