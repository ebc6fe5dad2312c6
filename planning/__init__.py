from .optimizer import TrajectoryOptimizer, OptimizationResult

__all__ = [
    'TrajectoryOptimizer',
    'OptimizationResult',
]
