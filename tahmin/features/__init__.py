"""
Features package - turns raw fixture inputs into prediction factors.

Usage:
    from tahmin.features import FactorAggregator

    factors = FactorAggregator().build(fixture)
"""

from .aggregator import FactorAggregator, build_factors
from .builders.form import FormCalculator, FormStats
from .builders.h2h import H2HBuilder
from .builders.standings import StandingsBuilder


__all__ = [
    # Aggregator
    "FactorAggregator",
    "build_factors",
    # Form
    "FormCalculator",
    "FormStats",
    # H2H
    "H2HBuilder",
    # Standings / motivation
    "StandingsBuilder",
]
