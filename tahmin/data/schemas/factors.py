"""
Prediction factor schemas.

Output of the factor aggregator. Every 0-100 score is clamped on the
way in, and the whole record is frozen once built.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a score onto the common 0-100 scale."""
    return max(low, min(high, float(value)))


class ImportanceLevel(str, Enum):
    """How much is at stake in the fixture."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecentTrend(str, Enum):
    HOME = "home"
    AWAY = "away"
    BALANCED = "balanced"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class FormFactors(_Frozen):
    home_form: float = 50.0
    away_form: float = 50.0
    home_home_form: float = 50.0
    away_away_form: float = 50.0
    form_difference: float = 0.0

    @field_validator("home_form", "away_form", "home_home_form", "away_away_form", mode="before")
    @classmethod
    def clamp(cls, v):
        return clamp_score(v)

    @model_validator(mode="before")
    @classmethod
    def derive_difference(cls, data):
        # formDifference is always recomputed from the clamped forms
        if isinstance(data, dict):
            home = clamp_score(data.get("home_form", 50.0))
            away = clamp_score(data.get("away_form", 50.0))
            data = {**data, "form_difference": home - away}
        return data


class H2HFactors(_Frozen):
    total_matches: int = Field(0, ge=0)
    home_wins: int = Field(0, ge=0)
    draws: int = Field(0, ge=0)
    away_wins: int = Field(0, ge=0)
    avg_goals: float = Field(2.5, ge=0)
    btts_percentage: float = 50.0
    recent_trend: RecentTrend = RecentTrend.BALANCED

    @field_validator("btts_percentage", mode="before")
    @classmethod
    def clamp(cls, v):
        return clamp_score(v)


class StatsFactors(_Frozen):
    home_attack: float = 50.0
    home_defense: float = 50.0
    away_attack: float = 50.0
    away_defense: float = 50.0
    home_goals_scored: float = Field(1.3, ge=0)
    home_goals_conceded: float = Field(1.2, ge=0)
    away_goals_scored: float = Field(1.3, ge=0)
    away_goals_conceded: float = Field(1.2, ge=0)

    @field_validator("home_attack", "home_defense", "away_attack", "away_defense", mode="before")
    @classmethod
    def clamp(cls, v):
        return clamp_score(v)


class StandingsFactors(_Frozen):
    home_position: int = Field(10, ge=1)
    away_position: int = Field(10, ge=1)
    position_difference: int = 0
    home_points: int = Field(0, ge=0)
    away_points: int = Field(0, ge=0)
    league_size: int = Field(20, ge=2)


class MotivationFactors(_Frozen):
    home_motivation: float = 60.0
    away_motivation: float = 60.0
    importance_level: ImportanceLevel = ImportanceLevel.MEDIUM

    @field_validator("home_motivation", "away_motivation", mode="before")
    @classmethod
    def clamp(cls, v):
        return clamp_score(v)


class PredictionFactors(_Frozen):
    """Complete, normalized factor set for one fixture."""

    form: FormFactors = Field(default_factory=FormFactors)
    h2h: H2HFactors = Field(default_factory=H2HFactors)
    stats: StatsFactors = Field(default_factory=StatsFactors)
    standings: StandingsFactors = Field(default_factory=StandingsFactors)
    motivation: MotivationFactors = Field(default_factory=MotivationFactors)

    # Blocks that fell back to neutral defaults
    missing: Tuple[str, ...] = ()
