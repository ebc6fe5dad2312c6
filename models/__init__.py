"""
Vehicle model and controller parameters for latency-compensated MPC.
"""

from pathlib import Path
from typing import Union

from .vehicle import (
    ControlParameters,
    KinematicBicycleModel,
    MPH_TO_MPS,
    StateIndex,
    VehicleState,
)

__all__ = [
    'ControlParameters',
    'KinematicBicycleModel',
    'MPH_TO_MPS',
    'StateIndex',
    'VehicleState',
    'DEFAULT_CONFIG_FILE',
    'load_params_from_yaml',
]


DEFAULT_CONFIG_FILE = Path(__file__).parent / "config" / "mpc_params.yaml"


def load_params_from_yaml(yaml_file: Union[str, Path, None] = None) -> ControlParameters:
    """
    Load controller parameters from a YAML config file.

    Args:
        yaml_file: Path to YAML config file. Defaults to the packaged
            models/config/mpc_params.yaml.

    Returns:
        ControlParameters: immutable parameter set for the process lifetime

    Example:
        >>> from models import load_params_from_yaml
        >>> params = load_params_from_yaml()
        >>> params.n_steps
        10
    """
    if yaml_file is None:
        yaml_file = DEFAULT_CONFIG_FILE
    yaml_file = Path(yaml_file)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Controller config not found at {yaml_file}.")
    return ControlParameters.load_from_yaml(yaml_file)
