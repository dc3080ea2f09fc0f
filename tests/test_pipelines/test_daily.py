"""
Tests for the daily batch pipeline
"""

import json
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pandas as pd
import pytest

from tahmin.config import BatchSettings, Config
from tahmin.models.ensemble import EnsembleScorer
from tahmin.pipelines import DailyPipeline
from tahmin.pipelines.daily import SUGGESTION_COLUMNS


def _make_fixture(fixture_id, home_odds=3.50, **overrides):
    fixture = {
        "fixture_id": fixture_id,
        "home_team": f"Home {fixture_id}",
        "away_team": f"Away {fixture_id}",
        "home_form": [{"result": "W", "is_home": True}] * 3 + [{"result": "D", "is_home": False}] * 2,
        "away_form": [{"result": "L", "is_home": False}] * 3 + [{"result": "D", "is_home": True}] * 2,
        "home_stats": {"goals_scored_avg": 2.0, "goals_conceded_avg": 0.9},
        "away_stats": {"goals_scored_avg": 1.0, "goals_conceded_avg": 1.6},
        "home_standing": {"position": 3, "points": 48},
        "away_standing": {"position": 15, "points": 22},
        "odds": {
            "match_result": {"home": home_odds, "draw": 3.80, "away": 5.00},
            "over_under": {"2.5": {"over": 1.95, "under": 1.90}},
            "btts": {"yes": 1.85, "no": 1.95},
        },
    }
    fixture.update(overrides)
    return fixture


class FlakyScorer(EnsembleScorer):
    """Fails on one fixture id."""

    def __init__(self, config, bad_id):
        super().__init__(config)
        self.bad_id = bad_id

    def predict(self, fixture, bankroll=None):
        if fixture["fixture_id"] == self.bad_id:
            raise RuntimeError("upstream timeout")
        return super().predict(fixture, bankroll)


@pytest.fixture
def config():
    return Config(min_confidence=0, bankroll=1000)


class TestDailyPipeline:
    """Batching, isolation and output."""

    def test_results_in_input_order(self, config):
        sleeps = []
        pipeline = DailyPipeline(config, settings=BatchSettings(batch_size=2, max_workers=2),
                                 sleep=sleeps.append)
        batch = pipeline.run([_make_fixture(i) for i in (5, 3, 9)])

        assert [r.fixture_id for r in batch.results] == [5, 3, 9]
        assert batch.errors == []
        assert sleeps == [1.0]
        assert batch.finished_at is not None

    def test_malformed_fixture_isolated(self, config):
        fixtures = [
            _make_fixture(1),
            _make_fixture(2, h2h=[{"home_goals": -1, "away_goals": 0}]),
            _make_fixture(3),
        ]
        batch = DailyPipeline(config, sleep=lambda s: None).run(fixtures)

        assert [r.fixture_id for r in batch.results] == [1, 3]
        assert len(batch.errors) == 1
        assert batch.errors[0].fixture_id == 2
        assert batch.errors[0].error_type == "InputValidationError"

    def test_any_exception_isolated(self, config):
        pipeline = DailyPipeline(config, scorer=FlakyScorer(config, bad_id=2), sleep=lambda s: None)
        batch = pipeline.run([_make_fixture(i) for i in (1, 2, 3)])

        assert len(batch.results) == 2
        assert batch.errors[0].to_dict() == {
            "fixture_id": 2, "error": "upstream timeout", "error_type": "RuntimeError",
        }

    def test_no_sleep_for_single_batch(self, config):
        sleeps = []
        DailyPipeline(config, sleep=sleeps.append).run([_make_fixture(1)])
        assert sleeps == []

    def test_empty_run(self, config):
        batch = DailyPipeline(config, sleep=lambda s: None).run([])
        assert batch.results == []
        assert batch.to_dataframe().empty
        assert list(batch.to_dataframe().columns) == SUGGESTION_COLUMNS


class TestBatchResult:

    @pytest.fixture
    def batch(self, config):
        fixtures = [_make_fixture(1, home_odds=3.50), _make_fixture(2, home_odds=2.60)]
        return DailyPipeline(config, sleep=lambda s: None).run(fixtures)

    def test_dataframe(self, batch):
        df = batch.to_dataframe()

        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == SUGGESTION_COLUMNS
        assert len(df) == len(batch.suggestions)
        assert len(df) > 0
        assert df["edge"].is_monotonic_decreasing
        assert df["best_bet"].sum() == len(batch.best_bets)

    def test_summary(self, batch):
        summary = batch.summary()
        assert summary["fixtures_scored"] == 2
        assert summary["fixtures_failed"] == 0
        assert summary["value_bets"] == len(batch.suggestions)

    def test_best_bets_sorted(self, batch):
        edges = [b.edge for b in batch.best_bets]
        assert edges == sorted(edges, reverse=True)

    def test_save_output(self, batch, config, tmp_path):
        path = DailyPipeline(config).save_output(batch, tmp_path / "out")

        data = json.loads(path.read_text())
        assert data["summary"]["fixtures_scored"] == 2
        assert len(data["predictions"]) == 2
        assert list((tmp_path / "out").glob("suggestions_*.csv"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
