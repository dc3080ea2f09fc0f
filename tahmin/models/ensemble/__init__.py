"""Ensemble subpackage for TAHMIN models."""

from .predictor import (
    EnsembleScorer,
    EnsembleScore,
    ReferenceCheck,
    validate_against_reference,
    generate_reasoning,
)

__all__ = [
    "EnsembleScorer",
    "EnsembleScore",
    "ReferenceCheck",
    "validate_against_reference",
    "generate_reasoning",
]
