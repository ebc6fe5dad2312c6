"""
WebSocket Server for the Simulator Bridge

Accepts simulator connections, decodes telemetry events, runs one MPC cycle
per event and replies with steer/reset/manual events. Each connection gets
its own ControlLoop, so vehicles never share optimizer or command state.
"""

import asyncio
import logging
from typing import Optional

import websockets

from control.exceptions import MalformedInputError
from control.loop import ControlLoop
from control.messages import CommandRecord
from models.vehicle import ControlParameters

from .protocol import FRAME_IGNORE, decode_frame, encode_output


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 4567
DEFAULT_ACTUATION_DELAY_S = 0.1


LOG_DATEFMT = "%H:%M:%S"
CONSOLE_HANDLER = "mpc-console"


class CycleFormatter(logging.Formatter):
    """Console formatter for the per-cycle stream.

    INFO lines print bare. Everything else carries time, level and the
    emitting module, plus the traceback when one is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno == logging.INFO:
            return message
        source = record.name.rsplit(".", 1)[-1]
        line = f"{self.formatTime(record, self.datefmt)} {record.levelname:<7} [{source}] {message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(verbose: bool = False) -> None:
    """Install the console handler on the root logger.

    Safe to call more than once: the handler is reused and only its level
    and format change.

    Args:
        verbose: DEBUG level with full timestamps on every line, including
                 the per-cycle solver diagnostics.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    handler = next((h for h in root.handlers if h.get_name() == CONSOLE_HANDLER), None)
    if handler is None:
        handler = logging.StreamHandler()
        handler.set_name(CONSOLE_HANDLER)
        root.addHandler(handler)

    if verbose:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt=LOG_DATEFMT,
        ))
    else:
        handler.setFormatter(CycleFormatter(datefmt=LOG_DATEFMT))


class ControlServer:
    """Simulator-facing websocket server.

    Attributes:
        params: Controller parameters shared (read-only) by all connections.
        host: Interface to bind.
        port: TCP port to listen on.
        actuation_delay_s: Wait before each steer reply, mimicking the
            actuation latency the controller compensates for.
    """

    def __init__(
        self,
        params: ControlParameters,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        actuation_delay_s: float = DEFAULT_ACTUATION_DELAY_S,
    ) -> None:
        if actuation_delay_s < 0:
            raise ValueError(f"actuation_delay_s must be >= 0, got {actuation_delay_s}")
        self.params = params
        self.host = host
        self.port = port
        self.actuation_delay_s = actuation_delay_s

    def create_loop(self) -> ControlLoop:
        return ControlLoop(self.params)

    async def handle_frame(self, control_loop: ControlLoop, frame) -> Optional[str]:
        """Process one inbound frame; returns the reply frame or None."""
        if isinstance(frame, bytes):
            frame = frame.decode("utf-8", errors="replace")

        try:
            decoded = decode_frame(frame, self.params.max_steer_rad)
            if decoded.kind == FRAME_IGNORE:
                return None
            # The solve blocks; keep the event loop free for other vehicles.
            output = await asyncio.to_thread(control_loop.step, decoded.telemetry)
        except MalformedInputError as e:
            logging.warning(f"Dropping cycle, malformed input: {e}")
            return None
        except Exception as e:
            # Keep the connection; the next telemetry frame starts a fresh cycle
            logging.error(f"Unexpected error in control cycle: {e}", exc_info=True)
            return None

        if isinstance(output, CommandRecord) and self.actuation_delay_s > 0:
            await asyncio.sleep(self.actuation_delay_s)

        return encode_output(output)

    async def handler(self, websocket) -> None:
        """Serve one simulator connection until it closes."""
        control_loop = self.create_loop()
        logging.info("Connected!")
        try:
            async for frame in websocket:
                reply = await self.handle_frame(control_loop, frame)
                if reply is not None:
                    await websocket.send(reply)
        except websockets.exceptions.ConnectionClosed:
            logging.warning("Connection closed by simulator")
        finally:
            logging.info("Disconnected")

    async def serve(self, stop: Optional[asyncio.Future] = None) -> None:
        """Listen until `stop` resolves (forever if not given)."""
        async with websockets.serve(self.handler, self.host, self.port):
            logging.info(f"Listening to port {self.port}")
            if stop is None:
                stop = asyncio.get_running_loop().create_future()
            await stop
