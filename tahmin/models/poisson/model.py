"""
Poisson Goal Model
==================

Expected goals from league-relative attack/defense indices:

    lambda_home = league_avg_home * home_attack/100 * away_defense/100
    lambda_away = league_avg_away * away_attack/100 * home_defense/100

An index of 100 is league average; defense indices measure goals
conceded, so higher means leakier. Bad inputs (a lambda of zero or
below) fall back to league averages and flag low confidence.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple
import logging

import numpy as np

from tahmin.data.schemas import PredictionFactors, ScoreProbability, StatsFactors
from .goals_matrix import GoalsMatrix

logger = logging.getLogger(__name__)


@dataclass
class PoissonPrediction:
    """Scoreline grid and the markets derived from it."""
    lambda_home: float
    lambda_away: float
    matrix: np.ndarray
    home: float
    draw: float
    away: float
    over_under: Dict[str, Tuple[float, float]]
    btts_yes: float
    btts_no: float
    top_scores: List[ScoreProbability]
    confidence: float
    low_confidence: bool = False
    notes: List[str] = field(default_factory=list)

    @property
    def match_result(self) -> Dict[str, float]:
        return {"home": self.home, "draw": self.draw, "away": self.away}

    def to_dict(self) -> dict:
        return {
            "lambda_home": self.lambda_home,
            "lambda_away": self.lambda_away,
            "match_result": self.match_result,
            "over_under": {k: {"over": o, "under": u} for k, (o, u) in self.over_under.items()},
            "btts": {"yes": self.btts_yes, "no": self.btts_no},
            "top_scores": [s.model_dump() for s in self.top_scores],
            "confidence": self.confidence,
            "low_confidence": self.low_confidence,
        }


class PoissonGoalModel:
    """
    Independent-Poisson scoreline model.

    Usage:
        model = PoissonGoalModel(league_avg_home_goals=1.5, league_avg_away_goals=1.2)
        pred = model.predict(1.8, 1.1)
        pred.home, pred.draw, pred.away
    """

    HOME_LAMBDA_RANGE = (0.2, 4.0)
    AWAY_LAMBDA_RANGE = (0.1, 3.5)
    HALF_TIME_SHARE = 0.45
    LOW_CONFIDENCE_PENALTY = 20.0

    def __init__(
        self,
        league_avg_home_goals: float = 1.5,
        league_avg_away_goals: float = 1.2,
        max_goals: int = 8,
        lines: Sequence[float] = (1.5, 2.5, 3.5),
        top_n: int = 5,
        rho: float = 0.0,
    ):
        if league_avg_home_goals <= 0 or league_avg_away_goals <= 0:
            raise ValueError("League average goals must be positive")
        self.league_avg_home_goals = league_avg_home_goals
        self.league_avg_away_goals = league_avg_away_goals
        self.max_goals = max_goals
        self.lines = tuple(lines)
        self.top_n = top_n
        self.rho = rho

    def strength_indices(self, stats: StatsFactors) -> Dict[str, float]:
        """Goals-per-match averages as league-relative indices (100 = average)."""
        return {
            "home_attack": stats.home_goals_scored / self.league_avg_home_goals * 100,
            "home_defense": stats.home_goals_conceded / self.league_avg_away_goals * 100,
            "away_attack": stats.away_goals_scored / self.league_avg_away_goals * 100,
            "away_defense": stats.away_goals_conceded / self.league_avg_home_goals * 100,
        }

    def expected_goals(
        self,
        home_attack: float,
        home_defense: float,
        away_attack: float,
        away_defense: float,
    ) -> Tuple[float, float, bool]:
        """
        Returns:
            (lambda_home, lambda_away, low_confidence)
        """
        lam_home = self.league_avg_home_goals * home_attack / 100 * away_defense / 100
        lam_away = self.league_avg_away_goals * away_attack / 100 * home_defense / 100

        if not (math.isfinite(lam_home) and math.isfinite(lam_away)) \
                or lam_home <= 0 or lam_away <= 0:
            logger.warning(
                f"Degenerate expected goals ({lam_home}, {lam_away}); "
                f"falling back to league averages"
            )
            return self.league_avg_home_goals, self.league_avg_away_goals, True

        lam_home = min(max(lam_home, self.HOME_LAMBDA_RANGE[0]), self.HOME_LAMBDA_RANGE[1])
        lam_away = min(max(lam_away, self.AWAY_LAMBDA_RANGE[0]), self.AWAY_LAMBDA_RANGE[1])
        return lam_home, lam_away, False

    def predict(
        self,
        lambda_home: float,
        lambda_away: float,
        low_confidence: bool = False,
    ) -> PoissonPrediction:
        """Build the grid for given expected goals and derive all markets."""
        notes = []
        if not (math.isfinite(lambda_home) and math.isfinite(lambda_away)) \
                or lambda_home <= 0 or lambda_away <= 0:
            notes.append("Expected goals unavailable, using league averages")
            lambda_home, lambda_away = self.league_avg_home_goals, self.league_avg_away_goals
            low_confidence = True

        matrix = GoalsMatrix.from_lambdas(lambda_home, lambda_away, self.max_goals, self.rho)
        home, draw, away = GoalsMatrix.to_1x2(matrix)
        yes, no = GoalsMatrix.to_btts(matrix)

        confidence = min(95.0, 50.0 + (max(home, draw, away) - 1 / 3) * 100)
        if low_confidence:
            confidence = max(0.0, confidence - self.LOW_CONFIDENCE_PENALTY)

        return PoissonPrediction(
            lambda_home=lambda_home,
            lambda_away=lambda_away,
            matrix=matrix,
            home=home,
            draw=draw,
            away=away,
            over_under=GoalsMatrix.to_over_under(matrix, self.lines),
            btts_yes=yes,
            btts_no=no,
            top_scores=GoalsMatrix.top_scores(matrix, self.top_n),
            confidence=confidence,
            low_confidence=low_confidence,
            notes=notes,
        )

    def predict_from_factors(self, factors: PredictionFactors) -> PoissonPrediction:
        """
        Prediction from aggregated factors.

        Without team scoring stats the neutral per-match defaults say
        nothing about these teams, so both sides get league-average
        expected goals and the prediction is flagged low confidence.
        """
        if "stats" in factors.missing:
            pred = self.predict(
                self.league_avg_home_goals, self.league_avg_away_goals, low_confidence=True
            )
            pred.notes.append("Team scoring stats missing, using league averages")
            return pred

        idx = self.strength_indices(factors.stats)
        lam_home, lam_away, low = self.expected_goals(
            idx["home_attack"], idx["home_defense"], idx["away_attack"], idx["away_defense"]
        )
        pred = self.predict(lam_home, lam_away, low_confidence=low)
        if low and not pred.notes:
            pred.notes.append("Attack/defense inputs degenerate, using league averages")
        return pred

    def half_time_matrix(self, prediction: PoissonPrediction) -> np.ndarray:
        """First-half grid, assuming a fixed share of goals before the break."""
        return GoalsMatrix.from_lambdas(
            prediction.lambda_home * self.HALF_TIME_SHARE,
            prediction.lambda_away * self.HALF_TIME_SHARE,
            self.max_goals,
        )

    def market_probability(self, prediction: PoissonPrediction, market) -> float:
        """Probability of any tagged market under this prediction."""
        if getattr(market, "kind", None) == "half_time_result":
            return GoalsMatrix.market_probability(self.half_time_matrix(prediction), market)
        return GoalsMatrix.market_probability(prediction.matrix, market)


def expected_goals_from_stats(
    stats: StatsFactors,
    league_avg_home_goals: float = 1.5,
    league_avg_away_goals: float = 1.2,
) -> Tuple[float, float, bool]:
    """Standalone lambda calculation from per-match scoring averages."""
    model = PoissonGoalModel(league_avg_home_goals, league_avg_away_goals)
    idx = model.strength_indices(stats)
    return model.expected_goals(
        idx["home_attack"], idx["home_defense"], idx["away_attack"], idx["away_defense"]
    )
