"""
League table and motivation feature builder.

Motivation is derived from table position: title and relegation
fights motivate more than mid-table safety.
"""

from typing import Optional, Tuple

from tahmin.data.schemas import (
    StandingRow, StandingsFactors, MotivationFactors, ImportanceLevel,
)

DEFAULT_POSITION = 10


class StandingsBuilder:
    """
    Standings and motivation.

    Zones scale with league size: top 3 title race, top 6 European
    places, bottom 4 relegation fight (positions 17-20 in a 20-team league).
    """

    TITLE_ZONE = 3
    EUROPE_ZONE = 6
    RELEGATION_ZONE = 4
    DANGER_ZONE = 6

    MOTIVATION = {
        "title": 90.0,
        "europe": 75.0,
        "relegation": 85.0,
        "mid_table": 60.0,
    }

    # Extra motivation for contenders late in the season
    LATE_SEASON_PROGRESS = 0.75
    LATE_SEASON_BONUS = 5.0

    def __init__(self, league_size: int = 20):
        self.league_size = league_size

    def _default_position(self) -> int:
        return min(DEFAULT_POSITION, self.league_size)

    def _zone(self, position: int) -> str:
        if position <= self.TITLE_ZONE:
            return "title"
        if position <= self.EUROPE_ZONE:
            return "europe"
        if position > self.league_size - self.RELEGATION_ZONE:
            return "relegation"
        return "mid_table"

    def standings(
        self,
        home: Optional[StandingRow],
        away: Optional[StandingRow],
    ) -> StandingsFactors:
        home_pos = home.position if home else self._default_position()
        away_pos = away.position if away else self._default_position()

        return StandingsFactors(
            home_position=home_pos,
            away_position=away_pos,
            position_difference=away_pos - home_pos,
            home_points=home.points if home else 0,
            away_points=away.points if away else 0,
            league_size=self.league_size,
        )

    def motivation_for(self, position: int, season_progress: float = 0.5) -> float:
        zone = self._zone(position)
        motivation = self.MOTIVATION[zone]
        if zone != "mid_table" and season_progress >= self.LATE_SEASON_PROGRESS:
            motivation += self.LATE_SEASON_BONUS
        return motivation

    def importance(
        self,
        home_pos: int,
        away_pos: int,
        season_progress: float = 0.5,
    ) -> ImportanceLevel:
        """
        critical: both sides in the title or relegation zones
        high: either side in the top 6 or the bottom 6
        low: two mid-table sides late in the season
        """
        contending = ("title", "relegation")
        if self._zone(home_pos) in contending and self._zone(away_pos) in contending:
            return ImportanceLevel.CRITICAL

        danger = self.league_size - self.DANGER_ZONE
        if min(home_pos, away_pos) <= self.EUROPE_ZONE or max(home_pos, away_pos) > danger:
            return ImportanceLevel.HIGH

        if season_progress >= self.LATE_SEASON_PROGRESS:
            return ImportanceLevel.LOW

        return ImportanceLevel.MEDIUM

    def motivation(
        self,
        standings: StandingsFactors,
        season_progress: float = 0.5,
    ) -> MotivationFactors:
        return MotivationFactors(
            home_motivation=self.motivation_for(standings.home_position, season_progress),
            away_motivation=self.motivation_for(standings.away_position, season_progress),
            importance_level=self.importance(
                standings.home_position, standings.away_position, season_progress
            ),
        )

    def calculate(
        self,
        home: Optional[StandingRow],
        away: Optional[StandingRow],
        season_progress: float = 0.5,
    ) -> Tuple[StandingsFactors, MotivationFactors]:
        table = self.standings(home, away)
        return table, self.motivation(table, season_progress)
