"""
Models package - Poisson scoreline model and the ensemble scorer.

Usage:
    from tahmin.models import EnsembleScorer, PoissonGoalModel

    result = EnsembleScorer().predict(fixture)
"""

from .poisson import (
    GoalsMatrix,
    PoissonGoalModel,
    PoissonPrediction,
    MatchSimulator,
    SimulationResult,
)
from .ensemble import (
    EnsembleScorer,
    EnsembleScore,
    ReferenceCheck,
    validate_against_reference,
)


__all__ = [
    # Poisson
    "GoalsMatrix",
    "PoissonGoalModel",
    "PoissonPrediction",
    "MatchSimulator",
    "SimulationResult",
    # Ensemble
    "EnsembleScorer",
    "EnsembleScore",
    "ReferenceCheck",
    "validate_against_reference",
]
