"""
Data processors package.

Exports input and odds validation.
"""

from .validate import (
    INSUFFICIENT_ODDS,
    MARKET_OUTCOMES,
    InputValidationError,
    ValidationResult,
    OddsValidator,
    validate_fixture,
    validate_snapshot,
    validate_scoreline,
    validate_probability,
    validate_positive,
    usable_odds,
)


__all__ = [
    "INSUFFICIENT_ODDS",
    "MARKET_OUTCOMES",
    "InputValidationError",
    "ValidationResult",
    "OddsValidator",
    "validate_fixture",
    "validate_snapshot",
    "validate_scoreline",
    "validate_probability",
    "validate_positive",
    "usable_odds",
]
