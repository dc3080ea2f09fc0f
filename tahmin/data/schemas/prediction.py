"""
Prediction and bet-related schemas.

These represent the outputs of the prediction pipeline:
per-market probabilities, value-bet analysis, Kelly sizing
and the per-fixture bundle handed to presentation layers.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field

from .factors import PredictionFactors
from .markets import Market


class StakeLevel(str, Enum):
    """Coarse stake recommendation shown to users."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class ValueTier(str, Enum):
    """Edge alert tier."""
    NONE = "none"
    VALUE = "value"        # edge >= min value threshold
    HIGH = "high"          # alert
    STRONG = "strong"      # strong alert


class Recommendation(str, Enum):
    SKIP = "skip"
    CONSIDER = "consider"
    BET = "bet"
    STRONG_BET = "strong_bet"


class MarketProbability(BaseModel):
    """Probability of one outcome plus how far we trust it."""

    model_config = ConfigDict(frozen=True)

    probability: float = Field(..., ge=0, le=1)
    confidence: float = Field(..., ge=0, le=100)
    bookmaker_odds: Optional[float] = Field(None, gt=1)
    fair_odds: Optional[float] = Field(None, gt=1)


class ScoreProbability(BaseModel):
    model_config = ConfigDict(frozen=True)

    home_goals: int
    away_goals: int
    probability: float

    @computed_field
    @property
    def score(self) -> str:
        return f"{self.home_goals}-{self.away_goals}"


class ValueBetResult(BaseModel):
    """
    Model probability versus overround-adjusted bookmaker probability.

    When odds are unusable, ``edge`` is None and ``reason`` says why.
    """

    model_config = ConfigDict(frozen=True)

    selection: str
    model_prob: float
    odds: Optional[float] = None
    implied_prob: Optional[float] = None
    fair_odds: Optional[float] = None
    edge: Optional[float] = None          # percent
    tier: ValueTier = ValueTier.NONE
    reason: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_value(self) -> bool:
        return self.tier != ValueTier.NONE

    @computed_field
    @property
    def expected_value(self) -> Optional[float]:
        """EV per unit staked: p * odds - 1."""
        if self.odds is None:
            return None
        return self.model_prob * self.odds - 1


class KellyResult(BaseModel):
    """Kelly sizing for one bet. Pure function of its inputs."""

    model_config = ConfigDict(frozen=True)

    full_kelly_pct: float            # full Kelly, percent of bankroll (may be negative)
    fractional_kelly_pct: float      # stake actually suggested, percent of bankroll
    suggested_amount: float
    edge: float                      # (p * odds - 1) * 100
    expected_value: float            # expected profit of suggested_amount
    is_value_bet: bool
    risk_level: RiskLevel
    capped: bool = False
    warnings: List[str] = Field(default_factory=list)


class BetSuggestion(BaseModel):
    """A recommended pick, immutable once produced."""

    model_config = ConfigDict(frozen=True)

    fixture_id: int
    market: Market
    pick: str
    probability: float = Field(..., ge=0, le=1)
    confidence: float = Field(..., ge=0, le=100)
    edge: Optional[float] = None
    odds: Optional[float] = None
    stake: StakeLevel = StakeLevel.LOW
    stake_amount: float = 0.0
    recommendation: Recommendation = Recommendation.SKIP
    reasoning: List[str] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "fixture_id": self.fixture_id,
            "market": self.market.kind,
            "pick": self.pick,
            "probability": self.probability,
            "confidence": self.confidence,
            "edge": self.edge,
            "odds": self.odds,
            "stake": self.stake.value,
            "stake_amount": self.stake_amount,
            "recommendation": self.recommendation.value,
            "reasoning": list(self.reasoning),
        }


class PredictionResult(BaseModel):
    """Per-fixture bundle of market predictions."""

    fixture_id: int
    home_team: str = ""
    away_team: str = ""
    created_at: datetime = Field(default_factory=datetime.now)

    match_result: Dict[str, MarketProbability]                 # home/draw/away
    over_under: Dict[str, Dict[str, MarketProbability]]        # "2.5" -> over/under
    btts: Dict[str, MarketProbability]                         # yes/no
    correct_scores: List[ScoreProbability] = Field(default_factory=list)
    expected_goals: Dict[str, float] = Field(default_factory=dict)

    factors: PredictionFactors
    overall_confidence: float = Field(..., ge=0, le=100)
    agreement: float = Field(1.0, ge=0, le=1)
    low_confidence: bool = False

    # None means "no recommendation", a legitimate outcome
    recommended_pick: Optional[str] = None
    best_bet: Optional[BetSuggestion] = None
    suggestions: List[BetSuggestion] = Field(default_factory=list)
    value_bets: List[ValueBetResult] = Field(default_factory=list)
    reasoning: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def has_recommendation(self) -> bool:
        return self.recommended_pick is not None
