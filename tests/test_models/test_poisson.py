"""
Tests for the Poisson goal model, goals matrix and simulator
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import numpy as np
import pytest

from tahmin.data.schemas import (
    AsianHandicap, BTTS, DoubleChance, GoalRange, HalfTimeResult, MatchResult, OverUnder,
    PredictionFactors, StatsFactors,
)
from tahmin.models.poisson import (
    GoalsMatrix, MatchSimulator, PoissonGoalModel, expected_goals_from_stats,
)


@pytest.fixture
def model():
    return PoissonGoalModel(league_avg_home_goals=1.5, league_avg_away_goals=1.2)


class TestGoalsMatrix:
    """Scoreline grid carries the full probability mass."""

    def test_sums_to_one(self):
        for lam_h, lam_a in [(1.8, 1.1), (0.0, 0.0), (0.2, 3.5), (6.0, 5.0)]:
            matrix = GoalsMatrix.from_lambdas(lam_h, lam_a, max_goals=8)
            assert matrix.sum() == pytest.approx(1.0, abs=1e-9)
            assert (matrix >= 0).all()

    def test_dixon_coles_still_normalized(self):
        matrix = GoalsMatrix.from_lambdas(1.4, 1.1, rho=-0.1)
        assert matrix.sum() == pytest.approx(1.0)

    def test_negative_lambda(self):
        with pytest.raises(ValueError):
            GoalsMatrix.from_lambdas(-0.5, 1.0)

    def test_over_under_complementary(self):
        matrix = GoalsMatrix.from_lambdas(1.6, 1.3)
        for line, (over, under) in GoalsMatrix.to_over_under(matrix, [0.5, 1.5, 2.5, 3.5]).items():
            assert over + under == pytest.approx(1.0)
            assert 0.0 <= over <= 1.0

    def test_over_probability_decreases_with_line(self):
        ou = GoalsMatrix.to_over_under(GoalsMatrix.from_lambdas(1.6, 1.3), [1.5, 2.5, 3.5])
        assert ou["1.5"][0] > ou["2.5"][0] > ou["3.5"][0]

    def test_line_beyond_cap(self):
        with pytest.raises(ValueError):
            GoalsMatrix.to_over_under(GoalsMatrix.from_lambdas(1, 1, max_goals=3), [3.5])

    def test_btts_complementary(self):
        yes, no = GoalsMatrix.to_btts(GoalsMatrix.from_lambdas(1.5, 1.2))
        assert yes + no == pytest.approx(1.0)
        assert 0.0 < yes < 1.0

    def test_top_scores_tie_break(self):
        # with both lambdas at 1, 0-0, 0-1, 1-0 and 1-1 are equally likely
        top = GoalsMatrix.top_scores(GoalsMatrix.from_lambdas(1.0, 1.0), n=4)
        assert [s.score for s in top] == ["0-0", "0-1", "1-0", "1-1"]

    def test_top_scores_sorted(self):
        top = GoalsMatrix.top_scores(GoalsMatrix.from_lambdas(2.1, 0.9), n=10)
        probs = [s.probability for s in top]
        assert probs == sorted(probs, reverse=True)

    def test_market_probability(self):
        matrix = GoalsMatrix.from_lambdas(1.5, 1.2)
        home, draw, away = GoalsMatrix.to_1x2(matrix)
        over, _ = GoalsMatrix.to_over_under(matrix, [2.5])["2.5"]

        assert GoalsMatrix.market_probability(matrix, MatchResult(pick="draw")) == pytest.approx(draw)
        assert GoalsMatrix.market_probability(matrix, OverUnder(line=2.5, side="over")) == pytest.approx(over)
        assert GoalsMatrix.market_probability(matrix, DoubleChance(pick="1X")) == pytest.approx(home + draw)
        assert GoalsMatrix.market_probability(matrix, BTTS(pick="no")) == pytest.approx(
            GoalsMatrix.to_btts(matrix)[1]
        )

    def test_goal_ranges_partition(self):
        matrix = GoalsMatrix.from_lambdas(1.7, 1.2)
        total = sum(
            GoalsMatrix.market_probability(matrix, market)
            for market in (GoalRange(min_goals=0, max_goals=1), GoalRange(min_goals=2, max_goals=3),
                           GoalRange(min_goals=4))
        )
        assert total == pytest.approx(1.0)

    def test_whole_line_excludes_push(self):
        matrix = GoalsMatrix.from_lambdas(1.2, 1.0)
        over = GoalsMatrix.market_probability(matrix, OverUnder(line=2.0, side="over"))
        under = GoalsMatrix.market_probability(matrix, OverUnder(line=2.0, side="under"))
        assert over + under == pytest.approx(1.0)

    def test_asian_handicap(self):
        matrix = GoalsMatrix.from_lambdas(1.7, 1.0)
        home, push, away = GoalsMatrix.to_asian_handicap(matrix, 0.0)
        assert home + push + away == pytest.approx(1.0)
        assert push == pytest.approx(GoalsMatrix.to_1x2(matrix)[1])

        quarter = GoalsMatrix.to_asian_handicap(matrix, 0.25)
        half = GoalsMatrix.to_asian_handicap(matrix, 0.5)
        assert quarter[0] == pytest.approx(0.5 * (home + half[0]))

        with pytest.raises(ValueError):
            GoalsMatrix.to_asian_handicap(matrix, 0.3)

    def test_asian_handicap_market_probability(self):
        matrix = GoalsMatrix.from_lambdas(1.7, 1.0)
        home, push, away = GoalsMatrix.to_asian_handicap(matrix, 0.0)

        # Draw no bet: push mass is refunded
        p_home = GoalsMatrix.market_probability(matrix, AsianHandicap(line=0.0, side="home"))
        p_away = GoalsMatrix.market_probability(matrix, AsianHandicap(line=0.0, side="away"))
        assert p_home == pytest.approx(home / (home + away))
        assert p_home + p_away == pytest.approx(1.0)

        # Half line has no push
        half_home, _, _ = GoalsMatrix.to_asian_handicap(matrix, 0.5)
        assert GoalsMatrix.market_probability(
            matrix, AsianHandicap(line=0.5, side="home")
        ) == pytest.approx(half_home)

    def test_expected_goals_close_to_lambdas(self):
        home, away = GoalsMatrix.expected_goals(GoalsMatrix.from_lambdas(1.6, 1.1, max_goals=10))
        assert home == pytest.approx(1.6, abs=0.01)
        assert away == pytest.approx(1.1, abs=0.01)


class TestPoissonGoalModel:
    """Match-level predictions from expected goals."""

    def test_home_favourite_example(self, model):
        pred = model.predict(1.8, 1.1)

        assert 0.48 <= pred.home <= 0.54
        assert 0.22 <= pred.draw <= 0.27
        assert 0.20 <= pred.away <= 0.26
        assert pred.home + pred.draw + pred.away == pytest.approx(1.0)
        assert not pred.low_confidence

    def test_markets_present(self, model):
        pred = model.predict(1.8, 1.1)
        assert set(pred.over_under) == {"1.5", "2.5", "3.5"}
        assert pred.btts_yes + pred.btts_no == pytest.approx(1.0)
        assert len(pred.top_scores) == 5

    def test_zero_lambda_falls_back(self, model):
        pred = model.predict(0.0, 1.1)
        assert pred.low_confidence
        assert pred.lambda_home == 1.5
        assert pred.lambda_away == 1.2
        assert pred.notes

    def test_low_confidence_penalized(self, model):
        normal = model.predict(1.5, 1.2)
        fallback = model.predict(float("nan"), 1.2)
        assert fallback.confidence == pytest.approx(max(0.0, normal.confidence - 20))

    def test_expected_goals_formula(self, model):
        lam_h, lam_a, low = model.expected_goals(120, 90, 80, 110)
        assert lam_h == pytest.approx(1.5 * 1.2 * 1.1)
        assert lam_a == pytest.approx(1.2 * 0.8 * 0.9)
        assert not low

    def test_expected_goals_clamped(self, model):
        lam_h, lam_a, _ = model.expected_goals(500, 10, 1, 500)
        assert lam_h == 4.0
        assert lam_a == 0.1

    def test_degenerate_indices(self, model):
        lam_h, lam_a, low = model.expected_goals(0, 100, 100, 100)
        assert low
        assert (lam_h, lam_a) == (1.5, 1.2)

    def test_from_stats(self):
        stats = StatsFactors(home_goals_scored=1.5, home_goals_conceded=1.2,
                             away_goals_scored=1.2, away_goals_conceded=1.5)
        lam_h, lam_a, low = expected_goals_from_stats(stats)
        assert lam_h == pytest.approx(1.5)
        assert lam_a == pytest.approx(1.2)
        assert not low

    def test_missing_stats_use_league_averages(self, model):
        stats = StatsFactors(home_goals_scored=2.4, home_goals_conceded=0.6,
                             away_goals_scored=0.7, away_goals_conceded=2.0)
        pred = model.predict_from_factors(PredictionFactors(stats=stats, missing=("stats",)))

        assert (pred.lambda_home, pred.lambda_away) == (1.5, 1.2)
        assert pred.low_confidence
        assert any("league averages" in n for n in pred.notes)

    def test_stats_present_not_flagged(self, model):
        pred = model.predict_from_factors(PredictionFactors(missing=("h2h",)))
        assert not pred.low_confidence

    def test_half_time_market(self, model):
        pred = model.predict(1.8, 1.1)
        ht = sum(model.market_probability(pred, HalfTimeResult(pick=p)) for p in ("home", "draw", "away"))
        assert ht == pytest.approx(1.0)
        # fewer goals before the break means more half-time draws
        assert model.market_probability(pred, HalfTimeResult(pick="draw")) > pred.draw

    def test_to_dict(self, model):
        data = model.predict(1.8, 1.1).to_dict()
        assert set(data["match_result"]) == {"home", "draw", "away"}
        assert data["over_under"]["2.5"]["over"] + data["over_under"]["2.5"]["under"] == pytest.approx(1.0)


class TestMatchSimulator:
    """Seeded Monte Carlo agrees with the analytical grid."""

    def test_reproducible(self):
        a = MatchSimulator(rng=np.random.default_rng(42), runs=2000).simulate(1.6, 1.1)
        b = MatchSimulator(rng=np.random.default_rng(42), runs=2000).simulate(1.6, 1.1)
        assert a == b

    def test_close_to_analytical(self, model):
        sim = MatchSimulator(rng=np.random.default_rng(3), runs=50_000).simulate(1.8, 1.1)
        pred = model.predict(1.8, 1.1)

        assert sim.home == pytest.approx(pred.home, abs=0.015)
        assert sim.draw == pytest.approx(pred.draw, abs=0.015)
        assert sim.over["2.5"] == pytest.approx(pred.over_under["2.5"][0], abs=0.015)
        assert sim.avg_total_goals == pytest.approx(2.9, abs=0.05)

    def test_invalid(self):
        with pytest.raises(ValueError):
            MatchSimulator(runs=0)
        with pytest.raises(ValueError):
            MatchSimulator(rng=np.random.default_rng(0)).simulate(-1.0, 1.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
