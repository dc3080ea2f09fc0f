"""
Market schemas.

Bet markets are a tagged union: each variant carries its own structured
parameters and knows how to settle itself against a final score, so no
free-text pick label ever has to be parsed.

    market = parse_market({"kind": "over_under", "line": 2.5, "side": "over"})
    market.evaluate(Scoreline(home=2, away=1))  # BetOutcome.WON
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, Literal, Optional, Tuple, Union
from pydantic import (
    BaseModel, ConfigDict, Field, TypeAdapter, ValidationError,
    field_validator, model_validator,
)

from tahmin.data.errors import InputValidationError


class BetOutcome(str, Enum):
    """Settlement result of a single bet."""
    WON = "won"
    LOST = "lost"
    VOID = "void"
    HALF_WON = "half_won"
    HALF_LOST = "half_lost"


class Scoreline(BaseModel):
    """Final (and optionally half-time) score."""

    model_config = ConfigDict(frozen=True)

    home: int = Field(..., ge=0)
    away: int = Field(..., ge=0)
    ht_home: Optional[int] = Field(None, ge=0)
    ht_away: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_half_time(self):
        if (self.ht_home is None) != (self.ht_away is None):
            raise ValueError("half-time score needs both sides")
        if self.ht_home is not None and (self.ht_home > self.home or self.ht_away > self.away):
            raise ValueError("half-time goals cannot exceed full-time goals")
        return self

    @property
    def total(self) -> int:
        return self.home + self.away

    @property
    def has_half_time(self) -> bool:
        return self.ht_home is not None


def _result_of(home: int, away: int) -> str:
    if home > away:
        return "home"
    if home < away:
        return "away"
    return "draw"


class _Market(BaseModel):
    model_config = ConfigDict(frozen=True)


class MatchResult(_Market):
    """Full-time 1X2."""
    kind: Literal["match_result"] = "match_result"
    pick: Literal["home", "draw", "away"]

    @property
    def label(self) -> str:
        return {"home": "1", "draw": "X", "away": "2"}[self.pick]

    def evaluate(self, score: Scoreline) -> BetOutcome:
        return BetOutcome.WON if _result_of(score.home, score.away) == self.pick else BetOutcome.LOST


class OverUnder(_Market):
    """Total goals over/under a line. Whole lines push (void) on equality."""
    kind: Literal["over_under"] = "over_under"
    line: float
    side: Literal["over", "under"]

    @field_validator("line")
    @classmethod
    def check_line(cls, v: float) -> float:
        if v <= 0 or (v * 2) % 1 != 0:
            raise ValueError(f"line must be a positive multiple of 0.5, got {v}")
        return v

    @property
    def label(self) -> str:
        return f"{self.side.capitalize()} {self.line}"

    def evaluate(self, score: Scoreline) -> BetOutcome:
        if score.total == self.line:
            return BetOutcome.VOID
        over = score.total > self.line
        won = over if self.side == "over" else not over
        return BetOutcome.WON if won else BetOutcome.LOST


class BTTS(_Market):
    """Both teams to score."""
    kind: Literal["btts"] = "btts"
    pick: Literal["yes", "no"]

    @property
    def label(self) -> str:
        return f"BTTS {self.pick.capitalize()}"

    def evaluate(self, score: Scoreline) -> BetOutcome:
        both = score.home > 0 and score.away > 0
        won = both if self.pick == "yes" else not both
        return BetOutcome.WON if won else BetOutcome.LOST


class DoubleChance(_Market):
    kind: Literal["double_chance"] = "double_chance"
    pick: Literal["1X", "X2", "12"]

    COVERS: ClassVar[Dict[str, Tuple[str, str]]] = {"1X": ("home", "draw"), "X2": ("draw", "away"), "12": ("home", "away")}

    @property
    def label(self) -> str:
        return self.pick

    def evaluate(self, score: Scoreline) -> BetOutcome:
        result = _result_of(score.home, score.away)
        return BetOutcome.WON if result in self.COVERS[self.pick] else BetOutcome.LOST


class HalfTimeResult(_Market):
    """1X2 on the half-time score."""
    kind: Literal["half_time_result"] = "half_time_result"
    pick: Literal["home", "draw", "away"]

    @property
    def label(self) -> str:
        return "HT " + {"home": "1", "draw": "X", "away": "2"}[self.pick]

    def evaluate(self, score: Scoreline) -> BetOutcome:
        if not score.has_half_time:
            raise InputValidationError("half-time result needs a half-time score")
        won = _result_of(score.ht_home, score.ht_away) == self.pick
        return BetOutcome.WON if won else BetOutcome.LOST


class GoalRange(_Market):
    """Total goals within [min_goals, max_goals]; open-ended when max_goals is None."""
    kind: Literal["goal_range"] = "goal_range"
    min_goals: int = Field(..., ge=0)
    max_goals: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.max_goals is not None and self.max_goals < self.min_goals:
            raise ValueError("max_goals must be >= min_goals")
        return self

    @property
    def label(self) -> str:
        if self.max_goals is None:
            return f"{self.min_goals}+ Goals"
        return f"{self.min_goals}-{self.max_goals} Goals"

    def contains(self, total: int) -> bool:
        if total < self.min_goals:
            return False
        return self.max_goals is None or total <= self.max_goals

    def evaluate(self, score: Scoreline) -> BetOutcome:
        return BetOutcome.WON if self.contains(score.total) else BetOutcome.LOST


class AsianHandicap(_Market):
    """
    Asian handicap. ``line`` is the goals given by the home side
    (0.5 = home -0.5, -0.25 = home +0.25).

    Whole lines push (void) on equality. Quarter lines stake half on
    each neighbouring half line, so they can settle half won or half lost.
    """
    kind: Literal["asian_handicap"] = "asian_handicap"
    line: float
    side: Literal["home", "away"]

    @field_validator("line")
    @classmethod
    def check_line(cls, v: float) -> float:
        if (v * 4) % 1 != 0:
            raise ValueError(f"line must be a multiple of 0.25, got {v}")
        return v

    @property
    def label(self) -> str:
        handicap = -self.line if self.side == "home" else self.line
        return f"AH {self.side.capitalize()} {handicap:+g}"

    def _settle_line(self, score: Scoreline, line: float) -> BetOutcome:
        margin = score.home - score.away - line
        if self.side == "away":
            margin = -margin
        if margin == 0:
            return BetOutcome.VOID
        return BetOutcome.WON if margin > 0 else BetOutcome.LOST

    def evaluate(self, score: Scoreline) -> BetOutcome:
        if (self.line * 2) % 1 == 0:
            return self._settle_line(score, self.line)

        low = self._settle_line(score, self.line - 0.25)
        high = self._settle_line(score, self.line + 0.25)
        if low == high:
            return low
        if BetOutcome.WON in (low, high):
            return BetOutcome.HALF_WON
        return BetOutcome.HALF_LOST


Market = Annotated[
    Union[MatchResult, OverUnder, BTTS, DoubleChance, HalfTimeResult, GoalRange, AsianHandicap],
    Field(discriminator="kind"),
]

_MARKET_ADAPTER = TypeAdapter(Market)


def parse_market(data: Dict[str, Any]) -> Market:
    """Build a market variant from its tagged dict form."""
    try:
        return _MARKET_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise InputValidationError(f"Invalid market {data!r}: {e}") from e
