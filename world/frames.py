"""
World <-> vehicle frame transforms.

The vehicle frame has the vehicle at the origin with its heading along +x.
"""

from typing import Tuple

import numpy as np


def to_vehicle_frame(xs, ys, px: float, py: float, psi: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Transform world-frame points into the vehicle frame.

    Translates by -(px, py), then rotates by -psi. Point count and order
    are preserved.

    Args:
        xs, ys: World-frame coordinates (equal length)
        px, py: Vehicle world position [m]
        psi: Vehicle heading [rad]

    Returns:
        (local_x, local_y) arrays
    """
    shift_x = np.asarray(xs, dtype=float) - px
    shift_y = np.asarray(ys, dtype=float) - py

    cos_p = np.cos(-psi)
    sin_p = np.sin(-psi)
    local_x = shift_x * cos_p - shift_y * sin_p
    local_y = shift_x * sin_p + shift_y * cos_p
    return local_x, local_y


def to_world_frame(local_x, local_y, px: float, py: float, psi: float) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of to_vehicle_frame: rotate by +psi, then translate by +(px, py)."""
    lx = np.asarray(local_x, dtype=float)
    ly = np.asarray(local_y, dtype=float)

    cos_p = np.cos(psi)
    sin_p = np.sin(psi)
    xs = lx * cos_p - ly * sin_p + px
    ys = lx * sin_p + ly * cos_p + py
    return xs, ys
