from .protocol import DecodedFrame, decode_frame, encode_output, extract_payload
from .server import ControlServer, setup_logging

__all__ = [
    'DecodedFrame',
    'decode_frame',
    'encode_output',
    'extract_payload',
    'ControlServer',
    'setup_logging',
]
