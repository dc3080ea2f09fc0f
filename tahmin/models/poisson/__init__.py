"""Poisson subpackage for TAHMIN models."""

from .goals_matrix import GoalsMatrix, capped_pmf
from .model import PoissonGoalModel, PoissonPrediction, expected_goals_from_stats
from .simulator import MatchSimulator, SimulationResult

__all__ = [
    "GoalsMatrix",
    "capped_pmf",
    "PoissonGoalModel",
    "PoissonPrediction",
    "expected_goals_from_stats",
    "MatchSimulator",
    "SimulationResult",
]
