"""
Input record schemas.

These are the already-normalized statistics and odds handed to the
engine by the data layer. Structural problems (negative goals, missing
required fields) fail validation; missing optional blocks degrade to
neutral defaults further down the pipeline.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, computed_field, field_validator


class FormMatch(BaseModel):
    """One recent match from a team's perspective, most recent first."""

    result: Literal["W", "D", "L"]
    is_home: bool
    goals_for: int = Field(0, ge=0)
    goals_against: int = Field(0, ge=0)
    opponent_rank: Optional[int] = Field(None, ge=1)
    opponent: Optional[str] = None

    @field_validator("result", mode="before")
    @classmethod
    def normalize_result(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class H2HMeeting(BaseModel):
    """A past meeting, scored from the current fixture's home side."""

    home_goals: int = Field(..., ge=0)
    away_goals: int = Field(..., ge=0)
    played_at: Optional[datetime] = None


class TeamSeasonStats(BaseModel):
    """Per-match scoring averages for one team."""

    goals_scored_avg: float = Field(..., ge=0)
    goals_conceded_avg: float = Field(..., ge=0)
    matches_played: int = Field(0, ge=0)


class StandingRow(BaseModel):
    """League table row."""

    position: int = Field(..., ge=1)
    points: int = Field(0, ge=0)
    played: int = Field(0, ge=0)


class OddsBook(BaseModel):
    """
    Bookmaker odds snapshot keyed by market and outcome.

    Prices are not range-checked here: bad prices are reported
    per market as insufficient odds instead of failing the fixture.
    """

    match_result: Dict[str, float] = Field(default_factory=dict)      # home/draw/away
    over_under: Dict[str, Dict[str, float]] = Field(default_factory=dict)  # "2.5" -> over/under
    btts: Dict[str, float] = Field(default_factory=dict)               # yes/no
    bookmaker: Optional[str] = None

    def market(self, name: str, line: Optional[float] = None) -> Dict[str, float]:
        """Return all outcome prices for a market."""
        if name == "match_result":
            return dict(self.match_result)
        if name == "btts":
            return dict(self.btts)
        if name == "over_under":
            return dict(self.over_under.get(_line_key(line if line is not None else 2.5), {}))
        return {}


class FixtureInput(BaseModel):
    """Everything the pre-match pipeline needs for one fixture."""

    fixture_id: int
    home_team: str
    away_team: str
    league: str = ""
    kickoff: Optional[datetime] = None

    home_form: List[FormMatch] = Field(default_factory=list)
    away_form: List[FormMatch] = Field(default_factory=list)
    h2h: List[H2HMeeting] = Field(default_factory=list)

    home_stats: Optional[TeamSeasonStats] = None
    away_stats: Optional[TeamSeasonStats] = None

    home_standing: Optional[StandingRow] = None
    away_standing: Optional[StandingRow] = None
    league_size: int = Field(20, ge=2)
    season_progress: float = Field(0.5, ge=0, le=1)

    odds: OddsBook = Field(default_factory=OddsBook)

    @computed_field
    @property
    def label(self) -> str:
        return f"{self.home_team} vs {self.away_team}"


def _line_key(line: float) -> str:
    return f"{float(line):.1f}"
