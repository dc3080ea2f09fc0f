"""
Tests for the ensemble scorer - factor channels, Poisson blend and value bets
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import numpy as np
import pytest

from tahmin.config import Config, EnsembleWeights
from tahmin.data.processors.validate import INSUFFICIENT_ODDS, InputValidationError
from tahmin.data.schemas import (
    FormFactors, H2HFactors, MatchResult, MotivationFactors, PredictionFactors, RecentTrend,
    StakeLevel, StandingsFactors, StatsFactors,
)
from tahmin.models.ensemble import (
    EnsembleScorer, generate_reasoning, validate_against_reference,
)
from tahmin.models.ensemble.predictor import stake_level
from tahmin.strategy.ev import edge_from_fair_odds

H2H_REASONS = {
    "Head-to-head trend favours the home side",
    "Head-to-head trend favours the away side",
    "High-scoring head-to-head history",
    "Both teams often score in this fixture",
}


def _make_fixture(**overrides):
    fixture = {
        "fixture_id": 1001,
        "home_team": "Arsenal",
        "away_team": "Chelsea",
        "league": "Premier League",
        "home_form": [
            {"result": r, "is_home": i % 2 == 0, "goals_for": 2, "goals_against": 1}
            for i, r in enumerate("WWDWL")
        ],
        "away_form": [
            {"result": r, "is_home": i % 2 == 1, "goals_for": 1, "goals_against": 1}
            for i, r in enumerate("LDWLD")
        ],
        "h2h": [
            {"home_goals": 2, "away_goals": 1},
            {"home_goals": 1, "away_goals": 1},
            {"home_goals": 3, "away_goals": 0},
            {"home_goals": 0, "away_goals": 2},
        ],
        "home_stats": {"goals_scored_avg": 1.9, "goals_conceded_avg": 0.9},
        "away_stats": {"goals_scored_avg": 1.2, "goals_conceded_avg": 1.4},
        "home_standing": {"position": 2, "points": 50},
        "away_standing": {"position": 9, "points": 35},
        "odds": {
            "match_result": {"home": 1.90, "draw": 3.60, "away": 4.20},
            "over_under": {"2.5": {"over": 1.85, "under": 2.00}},
            "btts": {"yes": 1.80, "no": 2.00},
        },
    }
    fixture.update(overrides)
    return fixture


def _make_config(**overrides):
    values = dict(poisson_weight=0.5, min_confidence=55, bankroll=1000)
    values.update(overrides)
    return Config(**values)


def _make_factors(h2h_matches=4, **blocks):
    h2h = H2HFactors(total_matches=h2h_matches, home_wins=h2h_matches // 2,
                     draws=h2h_matches - h2h_matches // 2, away_wins=0)
    return PredictionFactors(h2h=h2h, **blocks)


@pytest.fixture
def scorer():
    return EnsembleScorer(_make_config())


class TestEffectiveWeights:
    """Thin head-to-head samples are dropped and the rest renormalized."""

    def test_h2h_kept(self, scorer):
        weights, used = scorer.effective_weights(_make_factors(h2h_matches=3))
        assert used
        assert weights["h2h"] == pytest.approx(0.20)

    def test_h2h_dropped(self, scorer):
        weights, used = scorer.effective_weights(_make_factors(h2h_matches=2))
        assert not used
        assert weights["h2h"] == 0.0
        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["form"] == pytest.approx(0.30 / 0.80)

    def test_h2h_only_falls_back_to_stats(self):
        cfg = _make_config(weights=EnsembleWeights(form=0, h2h=1.0, stats=0, standings=0, motivation=0))
        weights, _ = EnsembleScorer(cfg).effective_weights(_make_factors(h2h_matches=0))
        assert weights["stats"] == 1.0
        assert sum(weights.values()) == 1.0


class TestEnsembleScore:
    """1X2 blend of the heuristic channels and the Poisson model."""

    def test_blend_is_distribution(self, scorer):
        rng = np.random.default_rng(11)
        for _ in range(25):
            factors = PredictionFactors(
                form=FormFactors(home_form=rng.uniform(0, 100), away_form=rng.uniform(0, 100)),
                h2h=H2HFactors(total_matches=int(rng.integers(0, 6))),
                stats=StatsFactors(home_goals_scored=rng.uniform(0, 3.5),
                                   home_goals_conceded=rng.uniform(0, 3.5),
                                   away_goals_scored=rng.uniform(0, 3.5),
                                   away_goals_conceded=rng.uniform(0, 3.5)),
                standings=StandingsFactors(home_position=int(rng.integers(1, 21)),
                                           away_position=int(rng.integers(1, 21))),
            )
            result = scorer.score(factors)
            assert sum(result.blended.values()) == pytest.approx(1.0)
            assert all(0.0 <= p <= 1.0 for p in result.blended.values())
            assert 0.0 <= result.confidence <= 100.0
            assert 0.0 <= result.agreement <= 1.0

    def test_full_poisson_weight(self):
        result = EnsembleScorer(_make_config(poisson_weight=1.0)).score(_make_factors())
        for k in ("home", "draw", "away"):
            assert result.blended[k] == pytest.approx(result.poisson[k])

    def test_stats_only_channel_agrees_with_poisson(self):
        cfg = _make_config(
            poisson_weight=0.0,
            weights=EnsembleWeights(form=0, h2h=0, stats=1.0, standings=0, motivation=0),
        )
        result = EnsembleScorer(cfg).score(_make_factors())
        assert result.agreement == pytest.approx(1.0)
        assert result.blended["home"] == pytest.approx(result.poisson["home"])

    def test_disagreement_lowers_confidence(self, scorer):
        factors = PredictionFactors(
            form=FormFactors(home_form=0, away_form=100, home_home_form=0, away_away_form=100),
            standings=StandingsFactors(home_position=20, away_position=1, position_difference=-19),
            stats=StatsFactors(home_goals_scored=3.0, home_goals_conceded=0.5,
                               away_goals_scored=0.5, away_goals_conceded=2.5),
            motivation=MotivationFactors(home_motivation=85, away_motivation=90),
        )
        result = scorer.score(factors)
        assert result.agreement < 0.85
        assert any("disagree" in r for r in result.reasoning)

    def test_no_pick_below_min_confidence(self):
        result = EnsembleScorer(_make_config(min_confidence=100)).score(_make_factors())
        assert result.recommended_pick is None
        assert any(r.startswith("No pick") for r in result.reasoning)

    def test_pick_is_argmax(self):
        result = EnsembleScorer(_make_config(min_confidence=0)).score(_make_factors())
        assert result.recommended_pick == max(result.blended, key=result.blended.get)

    def test_thin_h2h_noted(self, scorer):
        result = scorer.score(_make_factors(h2h_matches=1))
        assert not result.h2h_used
        assert any("head-to-head" in r for r in result.reasoning)


class TestPredict:
    """Full fixture prediction."""

    def test_prediction_bundle(self, scorer):
        result = scorer.predict(_make_fixture())

        assert result.fixture_id == 1001
        assert sum(mp.probability for mp in result.match_result.values()) == pytest.approx(1.0, abs=1e-6)
        for line in result.over_under.values():
            assert line["over"].probability + line["under"].probability == pytest.approx(1.0)
        assert result.btts["yes"].probability + result.btts["no"].probability == pytest.approx(1.0)
        assert result.expected_goals["total"] == pytest.approx(
            result.expected_goals["home"] + result.expected_goals["away"]
        )
        assert 0.0 <= result.overall_confidence <= 100.0
        assert result.match_result["home"].bookmaker_odds == 1.90
        assert result.over_under["1.5"]["over"].bookmaker_odds is None
        assert result.factors.h2h.total_matches == 4
        assert len(result.correct_scores) == 5

    def test_recommended_pick_is_most_likely(self, scorer):
        result = scorer.predict(_make_fixture())
        if result.recommended_pick is not None:
            probs = {k: mp.probability for k, mp in result.match_result.items()}
            assert result.recommended_pick == max(probs, key=probs.get)

    def test_suggestions_are_value_bets(self, scorer):
        result = scorer.predict(_make_fixture(), bankroll=1000)

        for s in result.suggestions:
            assert s.edge >= scorer.config.value.min_value_edge
            assert s.odds > 1
            assert 0.0 <= s.stake_amount <= min(1000 * scorer.config.risk.max_bet_pct,
                                                scorer.config.risk.max_single_bet)
            assert s.reasoning
        if result.best_bet is not None:
            assert result.best_bet in result.suggestions
            assert result.best_bet.confidence >= scorer.config.min_confidence

    def test_edges_reproducible(self, scorer):
        result = scorer.predict(_make_fixture())
        priced = [vb for vb in result.value_bets if vb.edge is not None]
        assert priced
        for vb in priced:
            assert edge_from_fair_odds(vb.model_prob, vb.fair_odds) == pytest.approx(vb.edge)

    def test_generous_price_becomes_suggestion(self, scorer):
        odds = {"match_result": {"home": 3.50, "draw": 3.60, "away": 4.20}}
        result = scorer.predict(_make_fixture(odds=odds))

        home = [s for s in result.suggestions if s.market == MatchResult(pick="home")]
        assert len(home) == 1
        assert home[0].edge > 0

    def test_unusable_odds_skipped(self, scorer):
        odds = {"match_result": {"home": 1.90, "draw": 1.0, "away": 4.20}}
        result = scorer.predict(_make_fixture(odds=odds))

        mr = [vb for vb in result.value_bets if vb.selection in ("home", "draw", "away")]
        assert mr
        assert all(vb.reason == INSUFFICIENT_ODDS for vb in mr)
        assert not any(s.market.kind == "match_result" for s in result.suggestions)

    def test_no_odds_still_predicts(self, scorer):
        result = scorer.predict(_make_fixture(odds={}))
        assert result.suggestions == []
        assert result.best_bet is None
        assert set(result.match_result) == {"home", "draw", "away"}

    def test_missing_blocks_degrade(self, scorer):
        result = scorer.predict({"fixture_id": 5, "home_team": "A", "away_team": "B"})
        assert "form" in result.factors.missing
        assert any("Neutral defaults" in r for r in result.reasoning)

    def test_missing_stats_use_league_averages(self, scorer):
        result = scorer.predict({"fixture_id": 5, "home_team": "A", "away_team": "B"})
        assert "stats" in result.factors.missing
        assert result.expected_goals["home"] == pytest.approx(1.5)
        assert result.expected_goals["away"] == pytest.approx(1.2)
        assert result.low_confidence

    def test_thin_h2h_gives_no_h2h_reasons(self, scorer):
        fixture = _make_fixture(
            h2h=[{"home_goals": 3, "away_goals": 2}, {"home_goals": 2, "away_goals": 2}],
            odds={
                "match_result": {"home": 2.60, "draw": 3.60, "away": 4.20},
                "over_under": {"2.5": {"over": 2.60, "under": 1.60}},
                "btts": {"yes": 2.60, "no": 1.60},
            },
        )
        result = scorer.predict(fixture)

        assert result.suggestions
        for suggestion in result.suggestions:
            assert not any(r in H2H_REASONS for r in suggestion.reasoning)

    def test_malformed_fixture_raises(self, scorer):
        with pytest.raises(InputValidationError):
            scorer.predict(_make_fixture(h2h=[{"home_goals": -2, "away_goals": 0}]))


class TestReferenceCheck:
    """Cross-check against an external forecast."""

    MODEL = {"home": 0.55, "draw": 0.25, "away": 0.20}

    def test_high_agreement(self):
        check = validate_against_reference(self.MODEL, {"home": 0.50, "draw": 0.27, "away": 0.23})
        assert check.label == "high"
        assert check.same_direction
        assert check.deviation == pytest.approx(5.0)

    def test_medium(self):
        check = validate_against_reference(self.MODEL, {"home": 0.42, "draw": 0.30, "away": 0.28})
        assert check.label == "medium"

    def test_risky(self):
        check = validate_against_reference(self.MODEL, {"home": 0.35, "draw": 0.33, "away": 0.32})
        assert check.label == "risky"

    def test_opposite_favourites(self):
        check = validate_against_reference(
            {"home": 0.40, "draw": 0.30, "away": 0.30},
            {"home": 0.30, "draw": 0.25, "away": 0.45},
        )
        assert not check.same_direction
        assert check.reference_pick == "away"
        assert check.deviation == pytest.approx(62.5)
        assert check.label == "avoid"
        assert check.to_dict()["label"] == "avoid"


class TestReasoning:

    def test_home_reasons(self):
        factors = PredictionFactors(
            form=FormFactors(home_form=80),
            standings=StandingsFactors(home_position=2, away_position=10, position_difference=8),
        )
        reasons = generate_reasoning("match_result", "home", factors)
        assert "Home side in good form" in reasons
        assert "Table position advantage" in reasons

    def test_thin_h2h_reasons_left_out(self):
        h2h = H2HFactors(total_matches=2, home_wins=2, avg_goals=4.5, btts_percentage=100,
                         recent_trend=RecentTrend.HOME)
        factors = PredictionFactors(h2h=h2h)

        assert generate_reasoning("match_result", "home", factors) == ["Statistical model edge"]
        assert generate_reasoning("over_under", "over", factors) == ["Statistical model edge"]
        assert generate_reasoning("btts", "yes", factors) == ["Statistical model edge"]

    def test_h2h_reasons_with_enough_meetings(self):
        h2h = H2HFactors(total_matches=4, home_wins=3, draws=1, avg_goals=3.0, btts_percentage=75,
                         recent_trend=RecentTrend.HOME)
        factors = PredictionFactors(h2h=h2h)

        assert "Head-to-head trend favours the home side" in generate_reasoning("match_result", "home", factors)
        assert "High-scoring head-to-head history" in generate_reasoning("over_under", "over", factors)
        assert "Both teams often score in this fixture" in generate_reasoning("btts", "yes", factors)

    def test_scorer_decision_overrides_meeting_count(self):
        h2h = H2HFactors(total_matches=5, home_wins=4, draws=1, recent_trend=RecentTrend.HOME)
        reasons = generate_reasoning("match_result", "home", PredictionFactors(h2h=h2h), h2h_used=False)
        assert not any(r in H2H_REASONS for r in reasons)

    def test_fallback(self):
        assert generate_reasoning("btts", "no", PredictionFactors()) == ["Statistical model edge"]

    def test_stake_level(self):
        assert stake_level(80, 60) == StakeLevel.HIGH
        assert stake_level(60, 50) == StakeLevel.MEDIUM
        assert stake_level(50, 10) == StakeLevel.LOW


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
