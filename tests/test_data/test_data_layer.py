"""
Tests for schemas and input validation
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest

from tahmin.data.processors.validate import (
    InputValidationError, OddsValidator, usable_odds, validate_fixture,
    validate_probability, validate_snapshot,
)
from tahmin.data.schemas import (
    AsianHandicap, BTTS, BetOutcome, DoubleChance, FormFactors, GoalRange, HalfTimeResult,
    LiveSnapshot, MatchResult, OddsBook, OverUnder, Scoreline, parse_market,
)


class TestMarkets:
    """Structured markets settle themselves against a score."""

    def test_match_result(self):
        assert MatchResult(pick="home").evaluate(Scoreline(home=2, away=1)) == BetOutcome.WON
        assert MatchResult(pick="draw").evaluate(Scoreline(home=2, away=1)) == BetOutcome.LOST
        assert MatchResult(pick="away").label == "2"

    def test_over_under_half_line(self):
        market = OverUnder(line=2.5, side="over")
        assert market.evaluate(Scoreline(home=2, away=1)) == BetOutcome.WON
        assert market.evaluate(Scoreline(home=1, away=1)) == BetOutcome.LOST
        assert market.label == "Over 2.5"

    def test_over_under_whole_line_pushes(self):
        assert OverUnder(line=2.0, side="under").evaluate(Scoreline(home=1, away=1)) == BetOutcome.VOID

    def test_over_under_bad_line(self):
        with pytest.raises(ValueError):
            OverUnder(line=2.3, side="over")

    def test_btts(self):
        assert BTTS(pick="yes").evaluate(Scoreline(home=1, away=1)) == BetOutcome.WON
        assert BTTS(pick="no").evaluate(Scoreline(home=3, away=0)) == BetOutcome.WON

    def test_double_chance(self):
        assert DoubleChance(pick="1X").evaluate(Scoreline(home=0, away=0)) == BetOutcome.WON
        assert DoubleChance(pick="12").evaluate(Scoreline(home=0, away=0)) == BetOutcome.LOST

    def test_half_time_result(self):
        score = Scoreline(home=2, away=1, ht_home=0, ht_away=1)
        assert HalfTimeResult(pick="away").evaluate(score) == BetOutcome.WON

    def test_half_time_needs_half_time_score(self):
        with pytest.raises(InputValidationError):
            HalfTimeResult(pick="home").evaluate(Scoreline(home=1, away=0))

    def test_goal_range(self):
        assert GoalRange(min_goals=2, max_goals=3).evaluate(Scoreline(home=2, away=1)) == BetOutcome.WON
        assert GoalRange(min_goals=4).evaluate(Scoreline(home=2, away=1)) == BetOutcome.LOST
        assert GoalRange(min_goals=4).label == "4+ Goals"

    def test_asian_handicap_whole_line(self):
        market = AsianHandicap(line=1.0, side="home")
        assert market.evaluate(Scoreline(home=2, away=0)) == BetOutcome.WON
        assert market.evaluate(Scoreline(home=2, away=1)) == BetOutcome.VOID
        assert market.evaluate(Scoreline(home=1, away=1)) == BetOutcome.LOST
        assert market.label == "AH Home -1"

    def test_asian_handicap_quarter_line(self):
        # Home -0.25: half on 0, half on -0.5
        home = AsianHandicap(line=0.25, side="home")
        assert home.evaluate(Scoreline(home=1, away=1)) == BetOutcome.HALF_LOST
        assert home.evaluate(Scoreline(home=1, away=0)) == BetOutcome.WON

        # Home -0.75 / away +0.75: half on 0.5, half on 1
        home = AsianHandicap(line=0.75, side="home")
        assert home.evaluate(Scoreline(home=2, away=1)) == BetOutcome.HALF_WON
        away = AsianHandicap(line=0.75, side="away")
        assert away.evaluate(Scoreline(home=2, away=1)) == BetOutcome.HALF_LOST
        assert away.evaluate(Scoreline(home=1, away=1)) == BetOutcome.WON
        assert away.evaluate(Scoreline(home=3, away=1)) == BetOutcome.LOST
        assert away.label == "AH Away +0.75"

    def test_asian_handicap_bad_line(self):
        with pytest.raises(ValueError):
            AsianHandicap(line=0.3, side="home")

    def test_parse_asian_handicap(self):
        market = parse_market({"kind": "asian_handicap", "line": -0.5, "side": "away"})
        assert isinstance(market, AsianHandicap)
        assert market.evaluate(Scoreline(home=1, away=1)) == BetOutcome.LOST

    def test_parse_market(self):
        market = parse_market({"kind": "over_under", "line": 2.5, "side": "under"})
        assert isinstance(market, OverUnder)
        assert market.side == "under"

    def test_parse_market_invalid(self):
        with pytest.raises(InputValidationError):
            parse_market({"kind": "corners", "line": 9.5})

    def test_market_errors_share_validation_error(self):
        from tahmin.data.errors import InputValidationError as shared

        assert shared is InputValidationError
        with pytest.raises(shared):
            parse_market({"kind": "btts", "pick": "maybe"})

    def test_bad_half_time_score(self):
        with pytest.raises(ValueError):
            Scoreline(home=1, away=0, ht_home=2, ht_away=0)


class TestOddsValidator:

    def test_valid_market(self):
        result = OddsValidator.validate_market({"home": 1.9, "draw": 3.4, "away": 4.2},
                                               ("home", "draw", "away"))
        assert result.is_valid
        assert result.errors == []

    def test_missing_side(self):
        result = OddsValidator.validate_market({"over": 1.9}, ("over", "under"))
        assert not result.is_valid
        assert "missing under odds" in result.errors

    def test_arb_warning(self):
        result = OddsValidator.validate_market({"over": 2.2, "under": 2.2}, ("over", "under"))
        assert result.is_valid
        assert any("arb" in w for w in result.warnings)

    def test_usable_odds(self):
        assert usable_odds(1.5)
        assert not usable_odds(1.0)
        assert not usable_odds(None)
        assert not usable_odds("abc")
        assert not usable_odds(float("inf"))


class TestRecordValidation:
    """Malformed records raise, missing blocks do not."""

    def test_minimal_fixture(self):
        fixture = validate_fixture({"fixture_id": 1, "home_team": "A", "away_team": "B"})
        assert fixture.label == "A vs B"
        assert fixture.odds.match_result == {}

    def test_negative_season_goals(self):
        with pytest.raises(InputValidationError, match="goals_scored_avg"):
            validate_fixture({
                "fixture_id": 1, "home_team": "A", "away_team": "B",
                "home_stats": {"goals_scored_avg": -1.0, "goals_conceded_avg": 1.0},
            })

    def test_odds_book_lines(self):
        book = OddsBook(over_under={"2.5": {"over": 1.85, "under": 2.0}})
        assert book.market("over_under", 2.5) == {"over": 1.85, "under": 2.0}
        assert book.market("over_under", 3.5) == {}
        assert book.market("corners") == {}

    def test_probability_bounds(self):
        assert validate_probability(0.0) == 0.0
        with pytest.raises(InputValidationError):
            validate_probability(-0.1)
        with pytest.raises(InputValidationError):
            validate_probability(float("nan"))

    def test_snapshot_shots_on_target_exceed_shots(self):
        with pytest.raises(InputValidationError, match="shots on target"):
            validate_snapshot({
                "fixture_id": 9, "minute": 30,
                "home": {"shots": 2, "shots_on_target": 5},
            })

    def test_snapshot_possession_over_100(self):
        with pytest.raises(InputValidationError):
            validate_snapshot({
                "fixture_id": 9, "minute": 30,
                "home": {"possession": 70}, "away": {"possession": 40},
            })

    def test_snapshot_minute_range(self):
        with pytest.raises(InputValidationError):
            validate_snapshot({"fixture_id": 9, "minute": 200})

    def test_snapshot_passthrough(self):
        snapshot = validate_snapshot({"fixture_id": 9, "minute": 30, "home": {"goals": 1}})
        assert isinstance(snapshot, LiveSnapshot)
        assert snapshot.score == "1-0"
        assert validate_snapshot(snapshot) is snapshot


class TestFormFactors:

    def test_clamped_and_difference_derived(self):
        form = FormFactors(home_form=130, away_form=-10, form_difference=5)
        assert form.home_form == 100.0
        assert form.away_form == 0.0
        assert form.form_difference == 100.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
