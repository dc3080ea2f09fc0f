"""
Tests for the tahmin command line
"""

import json
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from click.testing import CliRunner

from tahmin.interfaces import cli


@pytest.fixture
def runner():
    return CliRunner()


FIXTURE = {
    "fixture_id": 1001,
    "home_team": "Arsenal",
    "away_team": "Chelsea",
    "home_form": [{"result": r, "is_home": True} for r in "WWDWL"],
    "away_form": [{"result": r, "is_home": False} for r in "LDWLD"],
    "home_stats": {"goals_scored_avg": 1.9, "goals_conceded_avg": 0.9},
    "away_stats": {"goals_scored_avg": 1.2, "goals_conceded_avg": 1.4},
    "odds": {"match_result": {"home": 1.90, "draw": 3.60, "away": 4.20}},
}


def _tick(minute, **extra):
    tick = {
        "fixture_id": 1,
        "minute": minute,
        "home_team": "Arsenal",
        "away_team": "Chelsea",
        "home": {"shots": 10, "shots_on_target": 6, "possession": 58},
        "away": {"shots": 4, "shots_on_target": 1, "possession": 42},
    }
    tick.update(extra)
    return tick


class TestCalculators:
    """Stand-alone calculators."""

    def test_kelly(self, runner):
        result = runner.invoke(cli, ["kelly", "--odds", "2.0", "--prob", "0.6", "--bankroll", "1000",
                                     "--fraction", "0.25"])
        assert result.exit_code == 0, result.output
        assert "Stake:         50.00 (5.00%)" in result.output

    def test_kelly_invalid_probability(self, runner):
        result = runner.invoke(cli, ["kelly", "--odds", "2.0", "--prob", "1.5"])
        assert result.exit_code == 1

    def test_value(self, runner):
        result = runner.invoke(cli, [
            "value", "--selection", "home", "--prob", "0.58",
            "--odds", "home=1.90", "--odds", "draw=3.40", "--odds", "away=4.20",
        ])
        assert result.exit_code == 0, result.output
        assert "Tier:          high" in result.output
        assert "+16.6" in result.output

    def test_value_one_sided_book(self, runner):
        result = runner.invoke(cli, ["value", "--selection", "home", "--prob", "0.58", "--odds", "home=1.90"])
        assert result.exit_code == 0, result.output
        assert "insufficient odds" in result.output
        assert "missing draw odds" in result.output
        assert "Edge:" not in result.output

    def test_value_named_market(self, runner):
        result = runner.invoke(cli, [
            "value", "-s", "yes", "-p", "0.60", "--market", "btts",
            "--odds", "yes=1.85", "--odds", "no=1.95",
        ])
        assert result.exit_code == 0, result.output
        assert "Edge:          +16" in result.output

    def test_value_bad_odds_pair(self, runner):
        result = runner.invoke(cli, ["value", "-s", "home", "-p", "0.5", "--odds", "home:1.9"])
        assert result.exit_code == 2
        assert "outcome=price" in result.output

    def test_coupon(self, runner):
        args = ["coupon", "--system", "3/4", "--stake", "10"]
        for o in (1.5, 1.8, 2.1, 1.7):
            args += ["--odds", str(o)]
        result = runner.invoke(cli, args)

        assert result.exit_code == 0, result.output
        assert "Combinations:  4" in result.output
        assert "Total stake:   40.00" in result.output

    def test_coupon_wrong_system(self, runner):
        args = ["coupon", "--system", "2/3"]
        for o in (1.5, 1.8, 2.1, 1.7):
            args += ["--odds", str(o)]
        result = runner.invoke(cli, args)

        assert result.exit_code == 1
        assert "exactly 3" in result.output


class TestConfigCheck:

    def test_valid(self, runner):
        result = runner.invoke(cli, ["config-check"])
        assert result.exit_code == 0, result.output
        assert "✅ Configuration valid" in result.output

    def test_invalid_file(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"weights": {"form": 0.9}}))
        result = runner.invoke(cli, ["--config", str(path), "config-check"])

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output


class TestPredictAndLive:

    def test_predict(self, runner, tmp_path):
        path = tmp_path / "fixtures.json"
        path.write_text(json.dumps([FIXTURE]))
        out = tmp_path / "out"

        result = runner.invoke(cli, ["predict", str(path), "--bankroll", "1000", "--output", str(out)])

        assert result.exit_code == 0, result.output
        assert "Arsenal vs Chelsea" in result.output
        assert list(out.glob("predictions_*.json"))

    def test_predict_reports_bad_fixture(self, runner, tmp_path):
        bad = dict(FIXTURE, fixture_id=2, h2h=[{"home_goals": -1, "away_goals": 0}])
        path = tmp_path / "fixtures.json"
        path.write_text(json.dumps([FIXTURE, bad]))

        result = runner.invoke(cli, ["predict", str(path)])

        assert result.exit_code == 0
        assert "Fixture 2 skipped" in result.output

    def test_live_scan(self, runner, tmp_path):
        path = tmp_path / "ticks.json"
        path.write_text(json.dumps([
            _tick(20, observed_at="2024-05-04T15:20:00"),
            _tick(21, observed_at="2024-05-04T15:21:00"),
        ]))

        result = runner.invoke(cli, ["live-scan", str(path)])

        assert result.exit_code == 0, result.output
        assert "[HIGH]" in result.output
        assert "1 opportunity from 2 tick(s)" in result.output

    def test_live_scan_skips_invalid_tick(self, runner, tmp_path):
        path = tmp_path / "ticks.json"
        path.write_text(json.dumps([{"fixture_id": 1, "minute": -3}, _tick(20)]))

        result = runner.invoke(cli, ["live-scan", str(path)])

        assert result.exit_code == 0
        assert "Skipped tick" in result.output
        assert "1 opportunity from 2 tick(s)" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
