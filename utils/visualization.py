"""
Visualization utilities for closed-loop MPC runs.

All functions save outputs to files instead of displaying them.
"""

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving
import matplotlib.pyplot as plt
from pathlib import Path
from typing import Dict, Optional
from dataclasses import dataclass


@dataclass
class PlotConfig:
    """Configuration for plot styling."""
    figsize_overhead: tuple = (10, 6)
    figsize_errors: tuple = (10, 6)
    figsize_controls: tuple = (10, 5)

    dpi: int = 150
    line_width: float = 1.5

    # Colors
    centerline_color: str = 'black'
    trajectory_color: str = 'tab:blue'
    prediction_color: str = 'tab:green'
    reference_color: str = 'tab:orange'
    degraded_color: str = 'tab:red'

    # Draw every n-th predicted horizon on the overhead plot
    prediction_stride: int = 10


class ClosedLoopVisualizer:
    """
    Visualization class for closed-loop simulation results.

    All plots are saved to files, not displayed.
    """

    def __init__(
        self,
        road,
        output_dir: str = "results",
        config: Optional[PlotConfig] = None
    ):
        """
        Initialize visualizer.

        Args:
            road: SyntheticRoad the run was driven on
            output_dir: Directory to save outputs
            config: Plot configuration
        """
        self.road = road
        self.output_dir = Path(output_dir)
        self.config = config or PlotConfig()

        # Create output directory
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _save(self, fig, filename: str) -> str:
        filepath = self.output_dir / filename
        fig.savefig(filepath, dpi=self.config.dpi, bbox_inches='tight')
        plt.close(fig)
        return str(filepath)

    def plot_overhead(
        self,
        result,
        filename: str = "overhead.png",
        title: Optional[str] = None
    ) -> str:
        """
        Plot the driven path over the road centerline.

        Args:
            result: SimulationResult
            filename: Output filename
            title: Plot title

        Returns:
            Path to saved file
        """
        cfg = self.config
        fig, ax = plt.subplots(figsize=cfg.figsize_overhead)

        ax.plot(self.road.posX_m, self.road.posY_m, color=cfg.centerline_color,
                linestyle='--', linewidth=1.0, label='Centerline')
        ax.plot(result.x, result.y, color=cfg.trajectory_color,
                linewidth=cfg.line_width, label='Vehicle')

        for i, (px, py) in enumerate(result.predicted_paths[::cfg.prediction_stride]):
            ax.plot(px, py, color=cfg.prediction_color, linewidth=1.0, alpha=0.7,
                    label='MPC horizon' if i == 0 else None)

        degraded = np.asarray(result.degraded, dtype=bool)
        if degraded.any():
            ax.scatter(result.x[degraded], result.y[degraded], color=cfg.degraded_color,
                       s=12, zorder=3, label='Degraded cycle')

        ax.set_aspect('equal')
        ax.set_xlabel('x [m]')
        ax.set_ylabel('y [m]')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='best')
        if title:
            ax.set_title(title)

        return self._save(fig, filename)

    def plot_errors(
        self,
        result,
        filename: str = "errors.png",
        title: Optional[str] = None,
        ref_v_mps: Optional[float] = None
    ) -> str:
        """Plot lateral error and speed vs time."""
        cfg = self.config
        fig, axes = plt.subplots(2, 1, figsize=cfg.figsize_errors, sharex=True)

        axes[0].plot(result.t, result.lateral_error, color=cfg.trajectory_color,
                     linewidth=cfg.line_width)
        axes[0].axhline(0.0, color=cfg.centerline_color, linewidth=0.8)
        axes[0].set_ylabel('Lateral error [m]')
        axes[0].grid(True, alpha=0.3)

        axes[1].plot(result.t, result.v, color=cfg.trajectory_color,
                     linewidth=cfg.line_width, label='Speed')
        if ref_v_mps is not None:
            axes[1].axhline(ref_v_mps, color=cfg.reference_color, linestyle='--',
                            label='Reference')
            axes[1].legend(loc='best')
        axes[1].set_ylabel('Speed [m/s]')
        axes[1].set_xlabel('Time [s]')
        axes[1].grid(True, alpha=0.3)

        if title:
            fig.suptitle(title)
        fig.tight_layout()

        return self._save(fig, filename)

    def plot_controls(
        self,
        result,
        filename: str = "controls.png",
        title: Optional[str] = None
    ) -> str:
        """Plot normalised steering/throttle and solve time vs time."""
        cfg = self.config
        fig, axes = plt.subplots(3, 1, figsize=cfg.figsize_controls, sharex=True)

        axes[0].step(result.t, result.steering, where='post',
                     color=cfg.trajectory_color, linewidth=cfg.line_width)
        axes[0].set_ylabel('Steering [-]')
        axes[0].set_ylim(-1.05, 1.05)
        axes[0].grid(True, alpha=0.3)

        axes[1].step(result.t, result.throttle, where='post',
                     color=cfg.trajectory_color, linewidth=cfg.line_width)
        axes[1].set_ylabel('Throttle [-]')
        axes[1].set_ylim(-1.05, 1.05)
        axes[1].grid(True, alpha=0.3)

        axes[2].plot(result.t, np.asarray(result.solve_time) * 1000.0,
                     color=cfg.reference_color, linewidth=1.0)
        axes[2].set_ylabel('Solve [ms]')
        axes[2].set_xlabel('Time [s]')
        axes[2].grid(True, alpha=0.3)

        if title:
            fig.suptitle(title)
        fig.tight_layout()

        return self._save(fig, filename)

    def generate_full_report(
        self,
        result,
        prefix: str = "closed_loop",
        ref_v_mps: Optional[float] = None
    ) -> Dict[str, str]:
        """Save all plots; returns {name: filepath}."""
        return {
            'overhead': self.plot_overhead(result, f"{prefix}_overhead.png"),
            'errors': self.plot_errors(result, f"{prefix}_errors.png", ref_v_mps=ref_v_mps),
            'controls': self.plot_controls(result, f"{prefix}_controls.png"),
        }
