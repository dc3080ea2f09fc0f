"""
Goals Matrix Utilities
======================
Helper functions for score probability matrices.

The last row and column of every matrix are remainder buckets:
M[cap, j] holds P(home >= cap, away = j), so the matrix always
carries the full probability mass of 1.
"""

import numpy as np
from scipy.stats import poisson
from typing import Dict, List, Optional, Sequence, Tuple

from tahmin.data.schemas import (
    AsianHandicap, BTTS, DoubleChance, GoalRange, HalfTimeResult, MatchResult, OverUnder,
    ScoreProbability,
)


def capped_pmf(lam: float, cap: int) -> np.ndarray:
    """P(X = k) for k < cap, and P(X >= cap) in the last slot."""
    k = np.arange(cap)
    dist = np.empty(cap + 1)
    dist[:cap] = poisson.pmf(k, lam)
    dist[cap] = poisson.sf(cap - 1, lam)
    return dist


class GoalsMatrix:
    """
    Utilities for working with score probability matrices.

    A score matrix M[i,j] represents P(home_goals=i, away_goals=j).
    """

    @staticmethod
    def from_lambdas(
        lambda_home: float,
        lambda_away: float,
        max_goals: int = 8,
        rho: float = 0.0
    ) -> np.ndarray:
        """
        Generate score probability matrix from expected goals.

        Args:
            lambda_home: Expected goals for home team
            lambda_away: Expected goals for away team
            max_goals: Cap; row/column max_goals is the remainder bucket
            rho: Dixon-Coles low-score adjustment

        Returns:
            (max_goals+1, max_goals+1) probability matrix summing to 1
        """
        if lambda_home < 0 or lambda_away < 0:
            raise ValueError("Expected goals must be non-negative")

        home = capped_pmf(lambda_home, max_goals)
        away = capped_pmf(lambda_away, max_goals)
        matrix = np.outer(home, away)

        # Dixon-Coles adjustment
        if rho != 0:
            matrix[0, 0] *= 1 - lambda_home * lambda_away * rho
            matrix[0, 1] *= 1 + lambda_home * rho
            matrix[1, 0] *= 1 + lambda_away * rho
            matrix[1, 1] *= 1 - rho
            matrix = np.clip(matrix, 0, None)
            matrix /= matrix.sum()

        return matrix

    @staticmethod
    def to_1x2(matrix: np.ndarray) -> Tuple[float, float, float]:
        """
        Extract 1X2 probabilities from score matrix.

        Returns:
            (home_prob, draw_prob, away_prob)
        """
        home = float(np.tril(matrix, k=-1).sum())
        draw = float(np.trace(matrix))
        away = float(np.triu(matrix, k=1).sum())

        total = home + draw + away
        return (home/total, draw/total, away/total)

    @staticmethod
    def totals_distribution(matrix: np.ndarray) -> np.ndarray:
        """P(total goals = t) for t in 0..2*cap."""
        n = matrix.shape[0]
        totals = np.zeros(2 * n - 1)
        for i in range(n):
            totals[i:i + n] += matrix[i, :]
        return totals

    @staticmethod
    def to_over_under(
        matrix: np.ndarray,
        lines: Sequence[float] = (2.5,)
    ) -> Dict[str, Tuple[float, float]]:
        """
        Extract Over/Under probabilities for multiple X.5 lines.

        Args:
            matrix: Score probability matrix
            lines: Goal lines (e.g., [1.5, 2.5, 3.5])

        Returns:
            Dict mapping "2.5" to (over_prob, under_prob)
        """
        totals = GoalsMatrix.totals_distribution(matrix)
        cap = matrix.shape[0] - 1
        result = {}

        for line in lines:
            if line >= cap:
                raise ValueError(f"Line {line} not resolvable with goal cap {cap}")
            under = float(totals[:int(np.floor(line)) + 1].sum())
            result[f"{float(line):.1f}"] = (1.0 - under, under)

        return result

    @staticmethod
    def to_btts(matrix: np.ndarray) -> Tuple[float, float]:
        """
        Extract BTTS (Both Teams To Score) probabilities.

        yes = 1 - P(home=0) - P(away=0) + P(0,0)

        Returns:
            (yes_prob, no_prob)
        """
        home_blank = float(matrix[0, :].sum())
        away_blank = float(matrix[:, 0].sum())
        yes = 1.0 - home_blank - away_blank + float(matrix[0, 0])
        yes = min(1.0, max(0.0, yes))
        return (yes, 1.0 - yes)

    @staticmethod
    def to_double_chance(matrix: np.ndarray) -> Dict[str, float]:
        home, draw, away = GoalsMatrix.to_1x2(matrix)
        return {"1X": home + draw, "X2": draw + away, "12": home + away}

    @staticmethod
    def goal_range(matrix: np.ndarray, min_goals: int, max_goals: Optional[int] = None) -> float:
        """P(min_goals <= total <= max_goals); open-ended when max_goals is None."""
        totals = GoalsMatrix.totals_distribution(matrix)
        upper = len(totals) if max_goals is None else max_goals + 1
        return float(totals[min_goals:upper].sum())

    @staticmethod
    def to_asian_handicap(
        matrix: np.ndarray,
        line: float = 0.0
    ) -> Tuple[float, float, float]:
        """
        Asian Handicap from the home side's perspective.

        Args:
            line: Goals given by the home side (0.5 = home -0.5)

        Returns:
            (home_cover, push, away_cover); quarter lines are split
            across the two neighbouring half lines.
        """
        if (line * 4) % 1 != 0:
            raise ValueError(f"Handicap line must be a multiple of 0.25, got {line}")

        if (line * 2) % 1 != 0:
            low = GoalsMatrix.to_asian_handicap(matrix, np.floor(line * 2) / 2)
            high = GoalsMatrix.to_asian_handicap(matrix, np.ceil(line * 2) / 2)
            return tuple(0.5 * (a + b) for a, b in zip(low, high))

        n = matrix.shape[0]
        diff = np.subtract.outer(np.arange(n), np.arange(n)) - line
        home_cover = float(matrix[diff > 0].sum())
        away_cover = float(matrix[diff < 0].sum())
        push = float(matrix[diff == 0].sum())
        return (home_cover, push, away_cover)

    @staticmethod
    def top_scores(
        matrix: np.ndarray,
        n: int = 10
    ) -> List[ScoreProbability]:
        """
        Top N most likely exact scores.

        Sorted by probability descending, ties broken by fewer total
        goals then fewer home goals. Remainder buckets are not exact
        scores and are never listed.
        """
        cap = matrix.shape[0] - 1
        scores = [
            (i, j, float(matrix[i, j]))
            for i in range(cap)
            for j in range(cap)
        ]
        scores.sort(key=lambda s: (-round(s[2], 12), s[0] + s[1], s[0]))
        return [
            ScoreProbability(home_goals=i, away_goals=j, probability=p)
            for i, j, p in scores[:n]
        ]

    @staticmethod
    def expected_goals(matrix: np.ndarray) -> Tuple[float, float]:
        """
        Expected goals for each team from the matrix (buckets count as the cap).

        Returns:
            (expected_home_goals, expected_away_goals)
        """
        home_dist, away_dist = GoalsMatrix.margin_distributions(matrix)
        goals = np.arange(matrix.shape[0])
        return (float(goals @ home_dist), float(goals @ away_dist))

    @staticmethod
    def margin_distributions(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get marginal goal distributions for each team.

        Returns:
            (home_distribution, away_distribution) - probability of 0,1,2... goals
        """
        home_dist = matrix.sum(axis=1)
        away_dist = matrix.sum(axis=0)
        return (home_dist, away_dist)

    @staticmethod
    def market_probability(matrix: np.ndarray, market) -> float:
        """
        Probability that a tagged market wins.

        HalfTimeResult must be priced on a half-time matrix. Lines that can
        push (whole-line totals, Asian handicaps) are priced on decided outcomes.
        """
        if isinstance(market, MatchResult):
            home, draw, away = GoalsMatrix.to_1x2(matrix)
            return {"home": home, "draw": draw, "away": away}[market.pick]
        if isinstance(market, OverUnder):
            if (market.line * 2) % 2 == 0:
                # Whole line: the push mass is returned, so price on decided outcomes
                totals = GoalsMatrix.totals_distribution(matrix)
                line = int(market.line)
                push = float(totals[line])
                over = float(totals[line + 1:].sum())
                decided = 1.0 - push
                p_over = over / decided if decided > 0 else 0.5
                return p_over if market.side == "over" else 1.0 - p_over
            over, under = GoalsMatrix.to_over_under(matrix, [market.line])[f"{market.line:.1f}"]
            return over if market.side == "over" else under
        if isinstance(market, BTTS):
            yes, no = GoalsMatrix.to_btts(matrix)
            return yes if market.pick == "yes" else no
        if isinstance(market, DoubleChance):
            return GoalsMatrix.to_double_chance(matrix)[market.pick]
        if isinstance(market, GoalRange):
            return GoalsMatrix.goal_range(matrix, market.min_goals, market.max_goals)
        if isinstance(market, HalfTimeResult):
            home, draw, away = GoalsMatrix.to_1x2(matrix)
            return {"home": home, "draw": draw, "away": away}[market.pick]
        if isinstance(market, AsianHandicap):
            home_cover, push, away_cover = GoalsMatrix.to_asian_handicap(matrix, market.line)
            decided = home_cover + away_cover
            p_home = home_cover / decided if decided > 0 else 0.5
            return p_home if market.side == "home" else 1.0 - p_home
        raise TypeError(f"Unsupported market: {type(market).__name__}")
