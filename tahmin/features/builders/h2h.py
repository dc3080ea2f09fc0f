"""
Head-to-head (H2H) feature builder.

Computes statistics from historical meetings between two teams.
"""

from typing import Dict, List, Sequence

from tahmin.data.schemas import H2HMeeting, H2HFactors, RecentTrend


class H2HBuilder:
    """
    Head-to-head feature builder.

    Features:
    - Historical record (home wins, draws, away wins)
    - Average goals and BTTS rate in meetings
    - Trend over the most recent meetings
    """

    DEFAULT_AVG_GOALS = 2.5
    DEFAULT_BTTS_PCT = 50.0

    def __init__(self, max_meetings: int = 10, recent_window: int = 3):
        self.max_meetings = max_meetings
        self.recent_window = recent_window

    def calculate(self, meetings: Sequence[H2HMeeting]) -> H2HFactors:
        """
        Calculate H2H statistics.

        Meetings are scored from the current fixture's home side and
        ordered most recent first.
        """
        meetings = list(meetings)[:self.max_meetings]

        if not meetings:
            return H2HFactors(
                total_matches=0,
                avg_goals=self.DEFAULT_AVG_GOALS,
                btts_percentage=self.DEFAULT_BTTS_PCT,
                recent_trend=RecentTrend.BALANCED,
            )

        home_wins = 0
        draws = 0
        away_wins = 0
        total_goals = 0
        btts = 0

        for m in meetings:
            if m.home_goals > m.away_goals:
                home_wins += 1
            elif m.home_goals < m.away_goals:
                away_wins += 1
            else:
                draws += 1

            total_goals += m.home_goals + m.away_goals
            if m.home_goals > 0 and m.away_goals > 0:
                btts += 1

        total = len(meetings)

        return H2HFactors(
            total_matches=total,
            home_wins=home_wins,
            draws=draws,
            away_wins=away_wins,
            avg_goals=round(total_goals / total, 2),
            btts_percentage=btts / total * 100,
            recent_trend=self._trend(meetings[:self.recent_window]),
        )

    def _trend(self, recent: List[H2HMeeting]) -> RecentTrend:
        home = sum(1 for m in recent if m.home_goals > m.away_goals)
        away = sum(1 for m in recent if m.home_goals < m.away_goals)
        needed = self.recent_window // 2 + 1

        if home >= needed:
            return RecentTrend.HOME
        if away >= needed:
            return RecentTrend.AWAY
        return RecentTrend.BALANCED

    def get_features(self, meetings: Sequence[H2HMeeting]) -> Dict[str, float]:
        """Flat H2H features for a match."""
        h2h = self.calculate(meetings)
        total = max(h2h.total_matches, 1)

        return {
            "h2h_matches": h2h.total_matches,
            "h2h_home_wins": h2h.home_wins,
            "h2h_draws": h2h.draws,
            "h2h_away_wins": h2h.away_wins,
            "h2h_home_win_rate": h2h.home_wins / total,
            "h2h_draw_rate": h2h.draws / total,
            "h2h_avg_goals": h2h.avg_goals,
            "h2h_btts_pct": h2h.btts_percentage,
            "h2h_home_advantage": (h2h.home_wins - h2h.away_wins) / total,
        }
