"""
Monte Carlo Match Simulator
===========================

Samples scorelines from independent Poisson draws. Randomness comes
from an injected numpy Generator so every run is reproducible:

    sim = MatchSimulator(rng=np.random.default_rng(42))
    result = sim.simulate(1.6, 1.1)
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import logging

import numpy as np

from tahmin.data.schemas import ScoreProbability

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    runs: int
    home: float
    draw: float
    away: float
    over: Dict[str, float] = field(default_factory=dict)
    btts_yes: float = 0.0
    top_scores: List[ScoreProbability] = field(default_factory=list)
    avg_total_goals: float = 0.0


class MatchSimulator:
    """Poisson scoreline sampler with an injectable random source."""

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        runs: int = 10_000,
        lines: Sequence[float] = (1.5, 2.5, 3.5),
        top_n: int = 5,
    ):
        if runs < 1:
            raise ValueError("runs must be >= 1")
        self.rng = rng if rng is not None else np.random.default_rng()
        self.runs = runs
        self.lines = tuple(lines)
        self.top_n = top_n

    def sample(self, lambda_home: float, lambda_away: float):
        """Draw (home_goals, away_goals) arrays."""
        if lambda_home < 0 or lambda_away < 0:
            raise ValueError("Expected goals must be non-negative")
        home = self.rng.poisson(lambda_home, self.runs)
        away = self.rng.poisson(lambda_away, self.runs)
        return home, away

    def simulate(self, lambda_home: float, lambda_away: float) -> SimulationResult:
        home, away = self.sample(lambda_home, lambda_away)
        totals = home + away
        n = float(self.runs)

        counts = Counter(zip(home.tolist(), away.tolist()))
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0][0] + kv[0][1], kv[0][0]))

        result = SimulationResult(
            runs=self.runs,
            home=float(np.sum(home > away)) / n,
            draw=float(np.sum(home == away)) / n,
            away=float(np.sum(home < away)) / n,
            over={f"{line:.1f}": float(np.sum(totals > line)) / n for line in self.lines},
            btts_yes=float(np.sum((home > 0) & (away > 0))) / n,
            top_scores=[
                ScoreProbability(home_goals=h, away_goals=a, probability=c / n)
                for (h, a), c in ranked[:self.top_n]
            ],
            avg_total_goals=float(totals.mean()),
        )

        logger.debug(
            f"Simulated {self.runs} matches at ({lambda_home:.2f}, {lambda_away:.2f}): "
            f"{result.home:.1%}/{result.draw:.1%}/{result.away:.1%}"
        )
        return result
