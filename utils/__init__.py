from .visualization import ClosedLoopVisualizer, PlotConfig

__all__ = ['ClosedLoopVisualizer', 'PlotConfig']
