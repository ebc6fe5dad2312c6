from .frames import to_vehicle_frame, to_world_frame
from .reference import ReferenceCurve, fit_reference_curve, polyderiv, polyeval, polyfit
from .road import SyntheticRoad

__all__ = [
    'to_vehicle_frame',
    'to_world_frame',
    'ReferenceCurve',
    'fit_reference_curve',
    'polyderiv',
    'polyeval',
    'polyfit',
    'SyntheticRoad',
]
