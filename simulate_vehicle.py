#!/usr/bin/env python3
"""
Closed-Loop MPC Simulation and Visualization

Drive the kinematic vehicle along a synthetic sinusoidal road with the MPC
controller in the loop (including actuation latency), then save plots.

Usage:
    python simulate_vehicle.py
    python simulate_vehicle.py --duration 30 --latency 0.2
    python simulate_vehicle.py --amplitude 20 --wavelength 120 --no-plots
"""

import argparse
import dataclasses
import sys
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from control.loop import ControlLoop
from models import DEFAULT_CONFIG_FILE, load_params_from_yaml
from transport.server import setup_logging
from world.road import SyntheticRoad
from world.simulator import ClosedLoopSimulator


def main():
    parser = argparse.ArgumentParser(
        description="Simulate the MPC controller on a synthetic road"
    )

    parser.add_argument('--config', type=str, default=str(DEFAULT_CONFIG_FILE),
                        help='Controller parameters YAML file')

    # Road
    parser.add_argument('--amplitude', type=float, default=12.0,
                        help='Road lateral amplitude [m]')
    parser.add_argument('--wavelength', type=float, default=150.0,
                        help='Road wavelength [m]')
    parser.add_argument('--road-length', type=float, default=600.0,
                        help='Road extent [m]')

    # Simulation parameters
    parser.add_argument('--duration', type=float, default=20.0,
                        help='Simulation duration [s]')
    parser.add_argument('--initial-speed', type=float, default=10.0,
                        help='Initial forward speed [m/s]')
    parser.add_argument('--latency', type=float, default=None,
                        help='Override actuation latency [s]')

    # Output options
    parser.add_argument('--output-dir', type=str, default='results/closed_loop',
                        help='Output directory')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip plot generation')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log every control cycle')

    args = parser.parse_args()
    setup_logging(args.verbose)

    print("Loading controller parameters...")
    params = load_params_from_yaml(args.config)
    if args.latency is not None:
        params = dataclasses.replace(params, latency_s=args.latency)
    print(f"  N={params.n_steps}, dt={params.dt_s}s, latency={params.latency_s}s, "
          f"v_ref={params.ref_v_mps} m/s")

    road = SyntheticRoad(
        length_m=args.road_length,
        amplitude_m=args.amplitude,
        wavelength_m=args.wavelength,
    )
    simulator = ClosedLoopSimulator(road, params, control_loop=ControlLoop(params))

    print(f"\nSimulating for {args.duration}s...")
    result = simulator.run(duration_s=args.duration, initial_speed_mps=args.initial_speed)

    if len(result.t) == 0:
        print("No control cycles ran (road too short?)")
        return

    # Print summary
    abs_err = np.abs(result.lateral_error)
    print(f"\nSimulation Results:")
    print(f"  Cycles: {len(result.t)}")
    print(f"  Mean |lateral error|: {abs_err.mean():.3f} m")
    print(f"  Max |lateral error|: {abs_err.max():.3f} m")
    print(f"  Final speed: {result.v[-1]:.1f} m/s")
    print(f"  Resets: {result.resets}")
    print(f"  Degraded cycles: {int(np.sum(result.degraded))}")
    print(f"  Solve time: mean {1000 * result.solve_time.mean():.1f} ms, "
          f"max {1000 * result.solve_time.max():.1f} ms")

    if not args.no_plots:
        from utils.visualization import ClosedLoopVisualizer

        visualizer = ClosedLoopVisualizer(road, output_dir=args.output_dir)
        paths = visualizer.generate_full_report(result, ref_v_mps=params.ref_v_mps)
        print(f"\nDone! Outputs saved to: {args.output_dir}/")
        for name, path in paths.items():
            print(f"  {name}: {path}")


if __name__ == "__main__":
    main()
