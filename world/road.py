"""
Synthetic road for closed-loop simulation.

A sinusoidal centerline sampled by arc length. Telemetry waypoints are
taken from the centerline ahead of the vehicle, like the simulator's
road-reference points.
"""

from typing import Tuple

import numpy as np
import scipy.interpolate


class SyntheticRoad:

    def __init__(
        self,
        length_m: float = 600.0,
        amplitude_m: float = 12.0,
        wavelength_m: float = 150.0,
        waypoint_spacing_m: float = 10.0,
        num_points: int = 3000
    ):
        """
        Initialize the road.

        Args:
            length_m: Centerline extent along x [m]
            amplitude_m: Lateral amplitude of the sine [m]
            wavelength_m: Sine wavelength [m]
            waypoint_spacing_m: Arc-length spacing of telemetry waypoints [m]
            num_points: Centerline samples used for lookups
        """
        if wavelength_m <= 0 or length_m <= 0:
            raise ValueError("length_m and wavelength_m must be positive")

        self.amplitude_m = amplitude_m
        self.wavelength_m = wavelength_m
        self.waypoint_spacing_m = waypoint_spacing_m

        k = 2 * np.pi / wavelength_m
        self.posX_m = np.linspace(0.0, length_m, num_points)
        self.posY_m = amplitude_m * np.sin(k * self.posX_m)
        self.psi_rad = np.arctan(amplitude_m * k * np.cos(k * self.posX_m))

        ds = np.hypot(np.diff(self.posX_m), np.diff(self.posY_m))
        self.s_m = np.concatenate(([0.0], np.cumsum(ds)))
        self.length_m = float(self.s_m[-1])

        self.posX_m_interp_fcn = scipy.interpolate.interp1d(self.s_m, self.posX_m, kind="linear", fill_value="extrapolate")
        self.posY_m_interp_fcn = scipy.interpolate.interp1d(self.s_m, self.posY_m, kind="linear", fill_value="extrapolate")
        self.psi_rad_interp_fcn = scipy.interpolate.interp1d(self.s_m, self.psi_rad, kind="linear", fill_value="extrapolate")

    def start_pose(self) -> Tuple[float, float, float]:
        """(x, y, psi) at s = 0."""
        return float(self.posX_m[0]), float(self.posY_m[0]), float(self.psi_rad[0])

    def nearest_index(self, px: float, py: float) -> int:
        d2 = (self.posX_m - px) ** 2 + (self.posY_m - py) ** 2
        return int(np.argmin(d2))

    def project(self, px: float, py: float) -> Tuple[float, float]:
        """
        Project a world point onto the centerline.

        Returns:
            (s_m, e_m): arc length of the nearest centerline point and the
            signed lateral offset (+e is left of travel direction)
        """
        idx = self.nearest_index(px, py)
        psi = self.psi_rad[idx]
        dx = px - self.posX_m[idx]
        dy = py - self.posY_m[idx]
        e_m = -dx * np.sin(psi) + dy * np.cos(psi)
        return float(self.s_m[idx]), float(e_m)

    def waypoints_ahead(self, px: float, py: float, count: int = 6) -> Tuple[np.ndarray, np.ndarray]:
        """Next `count` centerline points from the nearest point onward."""
        s_near, _ = self.project(px, py)
        s_query = s_near + self.waypoint_spacing_m * np.arange(count)
        return self.posX_m_interp_fcn(s_query), self.posY_m_interp_fcn(s_query)
