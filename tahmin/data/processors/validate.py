"""
Data validation processors.

Validates incoming records before they enter the pipeline.
Malformed records raise InputValidationError; odds problems are
collected into a ValidationResult so callers can skip one market
without failing the whole fixture.
"""

import math
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field
import logging

from pydantic import ValidationError

from ..errors import InputValidationError
from ..schemas import FixtureInput, LiveSnapshot, Scoreline

logger = logging.getLogger(__name__)

INSUFFICIENT_ODDS = "insufficient odds"

MARKET_OUTCOMES = {
    "match_result": ("home", "draw", "away"),
    "over_under": ("over", "under"),
    "btts": ("yes", "no"),
}


@dataclass
class ValidationResult:
    """Result of data validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)
        self.is_valid = False

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


class OddsValidator:
    """
    Validates a market's odds before edge computation.

    Detects:
    - Prices at or below 1.0, or non-finite
    - Missing outcomes (one side of the market absent)
    - Negative overround (arb / stale line) and very high margins
    """

    MIN_ODDS = 1.0
    MAX_ODDS = 1000.0

    # Maximum overround for soft books (higher = more vig)
    MAX_REASONABLE_OVERROUND = 15.0  # percent

    @classmethod
    def validate_market(
        cls,
        odds: Dict[str, float],
        outcomes: Iterable[str],
    ) -> ValidationResult:
        """Check that every outcome of a market has a usable price."""
        result = ValidationResult()

        for outcome in outcomes:
            value = odds.get(outcome)
            if value is None:
                result.add_error(f"missing {outcome} odds")
                continue
            try:
                value = float(value)
            except (TypeError, ValueError):
                result.add_error(f"{outcome} odds {value!r} not numeric")
                continue
            if not math.isfinite(value):
                result.add_error(f"{outcome} odds {value} not finite")
            elif value <= cls.MIN_ODDS:
                result.add_error(f"{outcome} odds {value} must exceed {cls.MIN_ODDS}")
            elif value > cls.MAX_ODDS:
                result.add_warning(f"{outcome} odds {value} unusually high")

        if not result.is_valid:
            return result

        overround = cls.overround({k: odds[k] for k in outcomes})
        if overround < 0:
            result.add_warning(f"Negative overround {overround:.2f}% - possible arb")
        elif overround > cls.MAX_REASONABLE_OVERROUND:
            result.add_warning(f"High overround {overround:.2f}%")

        return result

    @staticmethod
    def overround(odds: Dict[str, float]) -> float:
        """Bookmaker margin as a percentage."""
        return (sum(1.0 / float(v) for v in odds.values()) - 1) * 100


def _format_errors(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_fixture(data: Any) -> FixtureInput:
    """Parse a raw fixture record, raising InputValidationError on bad data."""
    if isinstance(data, FixtureInput):
        return data
    try:
        return FixtureInput.model_validate(data)
    except ValidationError as e:
        raise InputValidationError(f"Invalid fixture: {_format_errors(e)}") from e


def validate_snapshot(data: Any) -> LiveSnapshot:
    """Parse a raw in-play snapshot."""
    if isinstance(data, LiveSnapshot):
        return data
    try:
        snapshot = LiveSnapshot.model_validate(data)
    except ValidationError as e:
        raise InputValidationError(f"Invalid live snapshot: {_format_errors(e)}") from e

    for side in (snapshot.home, snapshot.away):
        if side.shots_on_target > side.shots and side.shots > 0:
            raise InputValidationError(
                f"Fixture {snapshot.fixture_id}: shots on target exceed total shots"
            )
    if snapshot.home.possession + snapshot.away.possession > 100.5:
        raise InputValidationError(
            f"Fixture {snapshot.fixture_id}: possession shares exceed 100%"
        )
    return snapshot


def validate_scoreline(data: Any) -> Scoreline:
    if isinstance(data, Scoreline):
        return data
    try:
        return Scoreline.model_validate(data)
    except ValidationError as e:
        raise InputValidationError(f"Invalid score: {_format_errors(e)}") from e


def validate_probability(value: float, name: str = "probability") -> float:
    """Probabilities must be finite and within [0, 1]."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"{name} {value!r} is not numeric")
    if not math.isfinite(value) or not (0.0 <= value <= 1.0):
        raise InputValidationError(f"{name} must be in [0, 1], got {value}")
    return value


def validate_positive(value: float, name: str, allow_zero: bool = False) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"{name} {value!r} is not numeric")
    if not math.isfinite(value) or value < 0 or (value == 0 and not allow_zero):
        raise InputValidationError(f"{name} must be {'non-negative' if allow_zero else 'positive'}, got {value}")
    return value


def usable_odds(odds: Optional[float]) -> bool:
    """True when a single price can be used for edge/Kelly maths."""
    if odds is None:
        return False
    try:
        odds = float(odds)
    except (TypeError, ValueError):
        return False
    return math.isfinite(odds) and odds > OddsValidator.MIN_ODDS
