"""
Form Feature Builder.

Turns a team's recent results into a 0-100 form score.
Recent matches weigh more; when opponent league ranks are known,
results against strong opponents weigh more too.
"""

from typing import List, Optional, Sequence
import logging

from tahmin.data.schemas import FormMatch

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0


class FormStats:
    """Container for form statistics."""
    def __init__(self):
        self.score = NEUTRAL_SCORE
        self.simple_score = NEUTRAL_SCORE
        self.weighted_score: Optional[float] = None
        self.wins = 0
        self.draws = 0
        self.losses = 0
        self.goals_scored = 0
        self.goals_conceded = 0
        self.matches = 0
        self.win_streak = 0
        self.unbeaten_streak = 0

    @property
    def points(self) -> int:
        return self.wins * 3 + self.draws

    @property
    def goals_scored_avg(self) -> float:
        return self.goals_scored / self.matches if self.matches > 0 else 0.0

    @property
    def goals_conceded_avg(self) -> float:
        return self.goals_conceded / self.matches if self.matches > 0 else 0.0


class FormCalculator:
    """
    Recency-weighted form score.

    score = sum(points(result) * w_i) / sum(100 * w_i) * 100
    with W=100, D=40, L=0 and w = [1.5, 1.3, 1.1, 0.9, 0.7].
    """

    RECENCY_WEIGHTS = (1.5, 1.3, 1.1, 0.9, 0.7)
    RESULT_POINTS = {"W": 100.0, "D": 40.0, "L": 0.0}

    # Share of the opponent-weighted score when ranks are available
    OPPONENT_BLEND = 0.6

    def __init__(self, window: int = 5, league_size: int = 20):
        self.window = window
        self.league_size = league_size

    def _weight(self, i: int) -> float:
        if i < len(self.RECENCY_WEIGHTS):
            return self.RECENCY_WEIGHTS[i]
        return 0.5

    def opponent_multiplier(self, opponent_rank: int) -> float:
        """
        Value of a result by opponent strength (1.5 for the leader, 0.75 at the bottom).
        """
        normalized = opponent_rank / self.league_size

        if normalized <= 0.15:
            return 1.5 - normalized * 1.33
        elif normalized <= 0.30:
            return 1.3
        elif normalized <= 0.50:
            return 1.1
        elif normalized <= 0.75:
            return 0.9
        return 0.75

    def simple_score(self, matches: Sequence[FormMatch]) -> float:
        recent = list(matches)[:self.window]
        if not recent:
            return NEUTRAL_SCORE

        score = sum(self.RESULT_POINTS[m.result] * self._weight(i) for i, m in enumerate(recent))
        max_score = sum(100.0 * self._weight(i) for i in range(len(recent)))
        return score / max_score * 100

    def weighted_score(self, matches: Sequence[FormMatch]) -> Optional[float]:
        """Opponent-strength weighted score, None when no ranks are known."""
        recent = list(matches)[:self.window]
        if not any(m.opponent_rank for m in recent):
            return None

        total = 0.0
        total_weight = 0.0
        for i, m in enumerate(recent):
            mult = self.opponent_multiplier(m.opponent_rank) if m.opponent_rank else 1.0
            w = self._weight(i) * mult
            total += self.RESULT_POINTS[m.result] * w
            total_weight += w

        return total / total_weight if total_weight > 0 else NEUTRAL_SCORE

    def calculate(
        self,
        matches: Sequence[FormMatch],
        venue: Optional[str] = None,
    ) -> FormStats:
        """
        Calculate form stats.

        Args:
            matches: Recent matches, most recent first
            venue: "home" or "away" to restrict to that venue
        """
        if venue == "home":
            matches = [m for m in matches if m.is_home]
        elif venue == "away":
            matches = [m for m in matches if not m.is_home]

        recent = list(matches)[:self.window]
        stats = FormStats()

        for m in recent:
            stats.matches += 1
            stats.goals_scored += m.goals_for
            stats.goals_conceded += m.goals_against
            if m.result == "W":
                stats.wins += 1
            elif m.result == "D":
                stats.draws += 1
            else:
                stats.losses += 1

        # Streaks (most recent first)
        for m in recent:
            if m.result == "W":
                stats.win_streak += 1
            else:
                break

        for m in recent:
            if m.result != "L":
                stats.unbeaten_streak += 1
            else:
                break

        stats.simple_score = self.simple_score(recent)
        stats.weighted_score = self.weighted_score(recent)

        if stats.weighted_score is None:
            stats.score = stats.simple_score
        else:
            stats.score = (
                self.OPPONENT_BLEND * stats.weighted_score
                + (1 - self.OPPONENT_BLEND) * stats.simple_score
            )

        return stats

    def get_streak(self, matches: List[FormMatch], streak_type: str = "win") -> int:
        """Get specific streak."""
        count = 0
        for m in list(matches)[:self.window]:
            if streak_type == "win":
                condition = m.result == "W"
            elif streak_type == "unbeaten":
                condition = m.result != "L"
            elif streak_type == "losing":
                condition = m.result == "L"
            elif streak_type == "winless":
                condition = m.result != "W"
            else:
                raise ValueError(f"Unknown streak type: {streak_type}")

            if condition:
                count += 1
            else:
                break
        return count
