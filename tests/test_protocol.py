import json
import math

import pytest

from control.exceptions import MalformedInputError
from control.messages import CommandRecord, ManualModeSignal, ResetSignal
from transport.protocol import (
    FRAME_IGNORE,
    FRAME_MANUAL,
    FRAME_TELEMETRY,
    MANUAL_FRAME,
    RESET_FRAME,
    decode_frame,
    encode_output,
    extract_payload,
)


MAX_STEER = math.radians(25.0)

TELEMETRY = {
    "ptsx": [-32.16173, -43.49173, -61.09, -78.29172, -93.05002, -107.7717],
    "ptsy": [113.361, 105.941, 92.88499, 78.73102, 65.34102, 50.57938],
    "x": -40.62,
    "y": 108.73,
    "psi": 3.733651,
    "speed": 22.4,
    "steering_angle": 0.1,
    "throttle": 0.5,
}


def telemetry_frame(payload=TELEMETRY):
    return "42" + json.dumps(["telemetry", payload])


# =============================================================================
# Payload extraction
# =============================================================================

def test_extract_payload_returns_bracketed_array():
    frame = '42["telemetry",{"x":1}]'
    assert extract_payload(frame) == '["telemetry",{"x":1}]'


def test_extract_payload_null_means_no_payload():
    assert extract_payload('42["telemetry",null]') is None


def test_extract_payload_without_object_is_none():
    assert extract_payload('42["telemetry"]') is None


# =============================================================================
# Decoding
# =============================================================================

def test_decode_telemetry():
    decoded = decode_frame(telemetry_frame(), MAX_STEER)

    assert decoded.kind == FRAME_TELEMETRY
    t = decoded.telemetry
    assert list(t.waypoints_x) == TELEMETRY["ptsx"]
    assert list(t.waypoints_y) == TELEMETRY["ptsy"]
    assert t.x == pytest.approx(-40.62)
    assert t.heading == pytest.approx(3.733651)
    assert t.speed == pytest.approx(22.4)
    assert t.prior_throttle == pytest.approx(0.5)


def test_decode_flips_and_normalises_steering():
    decoded = decode_frame(telemetry_frame(), MAX_STEER)

    # Simulator: 0.1 rad clockwise
    assert decoded.telemetry.prior_steering == pytest.approx(-0.1 / MAX_STEER)


def test_decode_null_payload_is_manual():
    decoded = decode_frame('42["telemetry",null]', MAX_STEER)

    assert decoded.kind == FRAME_MANUAL
    assert decoded.telemetry is None


@pytest.mark.parametrize("frame", ["", "2", "42", "40", "0{\"sid\":\"abc\"}", '3["telemetry",{}]'])
def test_non_event_frames_are_ignored(frame):
    assert decode_frame(frame, MAX_STEER).kind == FRAME_IGNORE


def test_other_events_are_ignored():
    assert decode_frame('42["hello",{"a":1}]', MAX_STEER).kind == FRAME_IGNORE


def test_invalid_json_is_malformed():
    with pytest.raises(MalformedInputError):
        decode_frame('42["telemetry",{"x":}]', MAX_STEER)


@pytest.mark.parametrize("field", ["ptsx", "x", "psi", "speed", "steering_angle", "throttle"])
def test_missing_field_is_malformed(field):
    payload = {k: v for k, v in TELEMETRY.items() if k != field}
    with pytest.raises(MalformedInputError):
        decode_frame(telemetry_frame(payload), MAX_STEER)


def test_wrong_field_type_is_malformed():
    payload = dict(TELEMETRY, ptsx="not a list")
    with pytest.raises(MalformedInputError):
        decode_frame(telemetry_frame(payload), MAX_STEER)


# =============================================================================
# Encoding
# =============================================================================

def test_encode_reset_and_manual():
    assert encode_output(ResetSignal(cte=6.0)) == RESET_FRAME == '42["reset",{}]'
    assert encode_output(ManualModeSignal()) == MANUAL_FRAME == '42["manual",{}]'


def test_encode_steer_flips_sign_and_carries_paths():
    record = CommandRecord(
        steering_angle=0.25,
        throttle=0.6,
        predicted_path_x=[1.0, 2.0],
        predicted_path_y=[0.1, 0.2],
        reference_path_x=[2.5, 5.0],
        reference_path_y=[0.0, 0.05],
    )

    frame = encode_output(record)

    assert frame.startswith('42["steer",')
    event, msg = json.loads(frame[2:])
    assert event == "steer"
    assert msg["steering_angle"] == pytest.approx(-0.25)
    assert msg["throttle"] == pytest.approx(0.6)
    assert msg["mpc_x"] == [1.0, 2.0]
    assert msg["mpc_y"] == [0.1, 0.2]
    assert msg["next_x"] == [2.5, 5.0]
    assert msg["next_y"] == [0.0, 0.05]


def test_encode_rejects_unknown_output():
    with pytest.raises(TypeError):
        encode_output("steer")
