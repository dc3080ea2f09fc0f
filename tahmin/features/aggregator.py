"""
Factor Aggregator.

Normalizes raw per-fixture inputs (form, head-to-head, season stats,
league table, motivation) into one immutable PredictionFactors record
on a common 0-100 scale. Missing inputs degrade to neutral values so
downstream stages always get a complete structure.

Usage:
    aggregator = FactorAggregator()
    factors = aggregator.build(fixture)
"""

from typing import Any, List, Optional
import logging

from tahmin.data.schemas import (
    FixtureInput, PredictionFactors, FormFactors, StatsFactors,
    TeamSeasonStats,
)
from tahmin.data.processors.validate import validate_fixture
from .builders.form import FormCalculator
from .builders.h2h import H2HBuilder
from .builders.standings import StandingsBuilder

logger = logging.getLogger(__name__)


class FactorAggregator:
    """
    Builds PredictionFactors from a FixtureInput.

    Stats scale: attack = min(100, goals_scored * 40),
    defense = max(0, 100 - goals_conceded * 40); 2.5 goals a game is
    a perfect attack, 2.5 conceded a game is no defense at all.
    """

    GOALS_SCALE = 40.0
    DEFAULT_SCORED = 1.3
    DEFAULT_CONCEDED = 1.2

    def __init__(self, form_window: int = 5, max_h2h_meetings: int = 10):
        self.form_window = form_window
        self.h2h_builder = H2HBuilder(max_meetings=max_h2h_meetings)

    def build(self, fixture: Any) -> PredictionFactors:
        """Aggregate all factor blocks for one fixture."""
        fixture = validate_fixture(fixture)
        missing: List[str] = []

        form_calc = FormCalculator(window=self.form_window, league_size=fixture.league_size)
        form = self._form(fixture, form_calc)
        if not fixture.home_form and not fixture.away_form:
            missing.append("form")

        h2h = self.h2h_builder.calculate(fixture.h2h)
        if not fixture.h2h:
            missing.append("h2h")

        stats = self._stats(fixture.home_stats, fixture.away_stats)
        if fixture.home_stats is None or fixture.away_stats is None:
            missing.append("stats")

        standings_builder = StandingsBuilder(league_size=fixture.league_size)
        standings, motivation = standings_builder.calculate(
            fixture.home_standing, fixture.away_standing, fixture.season_progress
        )
        if fixture.home_standing is None or fixture.away_standing is None:
            missing.extend(["standings", "motivation"])

        if missing:
            logger.debug(f"Fixture {fixture.fixture_id}: neutral defaults for {missing}")

        return PredictionFactors(
            form=form,
            h2h=h2h,
            stats=stats,
            standings=standings,
            motivation=motivation,
            missing=tuple(missing),
        )

    def _form(self, fixture: FixtureInput, calc: FormCalculator) -> FormFactors:
        home = calc.calculate(fixture.home_form)
        away = calc.calculate(fixture.away_form)
        home_at_home = calc.calculate(fixture.home_form, venue="home")
        away_away = calc.calculate(fixture.away_form, venue="away")

        return FormFactors(
            home_form=home.score,
            away_form=away.score,
            home_home_form=home_at_home.score,
            away_away_form=away_away.score,
        )

    def _stats(
        self,
        home: Optional[TeamSeasonStats],
        away: Optional[TeamSeasonStats],
    ) -> StatsFactors:
        home_scored = home.goals_scored_avg if home else self.DEFAULT_SCORED
        home_conceded = home.goals_conceded_avg if home else self.DEFAULT_CONCEDED
        away_scored = away.goals_scored_avg if away else self.DEFAULT_SCORED
        away_conceded = away.goals_conceded_avg if away else self.DEFAULT_CONCEDED

        return StatsFactors(
            home_attack=min(100.0, home_scored * self.GOALS_SCALE),
            home_defense=max(0.0, 100.0 - home_conceded * self.GOALS_SCALE),
            away_attack=min(100.0, away_scored * self.GOALS_SCALE),
            away_defense=max(0.0, 100.0 - away_conceded * self.GOALS_SCALE),
            home_goals_scored=home_scored,
            home_goals_conceded=home_conceded,
            away_goals_scored=away_scored,
            away_goals_conceded=away_conceded,
        )


def build_factors(fixture: Any) -> PredictionFactors:
    """Convenience wrapper around FactorAggregator().build()."""
    return FactorAggregator().build(fixture)
