"""
In-play schemas.

A LiveSnapshot is one polling tick for one fixture; the scanner turns
it into zero or one LiveOpportunity.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field


class Urgency(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class SignalType(str, Enum):
    SHOT_PRESSURE = "shot_pressure"
    POSSESSION_DOMINANCE = "possession_dominance"
    AGGRESSIVENESS = "aggressiveness"
    CORNER_PRESSURE = "corner_pressure"
    MOMENTUM_SWING = "momentum_swing"
    GOAL_EXPECTANCY = "goal_expectancy"


class FixtureStatus(str, Enum):
    LIVE = "live"
    HALF_TIME = "half_time"
    FINISHED = "finished"


class TeamLiveStats(BaseModel):
    """One side's in-play counters."""

    model_config = ConfigDict(frozen=True)

    goals: int = Field(0, ge=0)
    shots: int = Field(0, ge=0)
    shots_on_target: int = Field(0, ge=0)
    possession: float = Field(50.0, ge=0, le=100)
    fouls: int = Field(0, ge=0)
    yellow_cards: int = Field(0, ge=0)
    red_cards: int = Field(0, ge=0)
    corners: int = Field(0, ge=0)
    dangerous_attacks: int = Field(0, ge=0)
    xg: Optional[float] = Field(None, ge=0)

    @property
    def cards(self) -> int:
        return self.yellow_cards + self.red_cards

    @property
    def expected_goals(self) -> float:
        """Provided xG, or a shot-based estimate."""
        if self.xg is not None:
            return self.xg
        return self.shots_on_target * 0.3 + self.shots * 0.08


class LiveSnapshot(BaseModel):
    """In-play statistics for one fixture at one tick."""

    model_config = ConfigDict(frozen=True)

    fixture_id: int
    minute: int = Field(..., ge=0, le=130)
    home_team: str = ""
    away_team: str = ""
    home: TeamLiveStats = Field(default_factory=TeamLiveStats)
    away: TeamLiveStats = Field(default_factory=TeamLiveStats)
    status: FixtureStatus = FixtureStatus.LIVE
    observed_at: Optional[datetime] = None

    @computed_field
    @property
    def score(self) -> str:
        return f"{self.home.goals}-{self.away.goals}"


class DetectorSignal(BaseModel):
    """A single triggered detector before merging."""

    model_config = ConfigDict(frozen=True)

    type: SignalType
    market: str
    pick: str
    confidence: float = Field(..., ge=0, le=100)
    estimated_odds: float = Field(..., gt=1)
    reasoning: str


class LiveOpportunity(BaseModel):
    """Merged, urgency-tiered in-play opportunity for one fixture."""

    model_config = ConfigDict(frozen=True)

    fixture_id: int
    minute: int
    score: str
    type: SignalType
    market: str
    pick: str
    estimated_odds: float
    confidence: float = Field(..., ge=0, le=100)
    urgency: Urgency
    reasoning: str
    signals: List[SignalType] = Field(default_factory=list)
    detected_at: datetime
    expires_at: Optional[datetime] = None

    @computed_field
    @property
    def fingerprint(self) -> str:
        """Dedup key: fixture + signal type + score state."""
        return f"{self.fixture_id}:{self.type.value}:{self.score}"
