#!/usr/bin/env python3
"""
Serve the latency-compensated MPC controller to the driving simulator.

Usage:
    python run_mpc_server.py
    python run_mpc_server.py --port 4567 --actuation-delay 0.1 --verbose
    python run_mpc_server.py --config my_params.yaml
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from models import DEFAULT_CONFIG_FILE, load_params_from_yaml
from transport.server import (
    DEFAULT_ACTUATION_DELAY_S,
    DEFAULT_HOST,
    DEFAULT_PORT,
    ControlServer,
    setup_logging,
)


def parse_args():
    parser = argparse.ArgumentParser(description="Run the MPC controller websocket server.")
    parser.add_argument("--config", type=str, default=str(DEFAULT_CONFIG_FILE),
                        help="Controller parameters YAML file.")
    parser.add_argument("--host", type=str, default=DEFAULT_HOST, help="Interface to bind.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on.")
    parser.add_argument("--actuation-delay", type=float, default=DEFAULT_ACTUATION_DELAY_S,
                        help="Delay before each steer reply [s].")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose logging with timestamps")
    return parser.parse_args()


def main():
    args = parse_args()
    setup_logging(args.verbose)

    params = load_params_from_yaml(args.config)
    logging.info(f"Loaded controller parameters from {args.config}")
    logging.info(f"  Horizon: N={params.n_steps}, dt={params.dt_s}s, latency={params.latency_s}s")
    logging.info(f"  Reference speed: {params.ref_v_mps} m/s, CTE threshold: {params.cte_threshold_m} m")

    server = ControlServer(
        params,
        host=args.host,
        port=args.port,
        actuation_delay_s=args.actuation_delay,
    )

    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
    except OSError as e:
        logging.error(f"Failed to listen to port {args.port}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
