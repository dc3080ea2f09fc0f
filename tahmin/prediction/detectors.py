"""
Live Signal Detectors
=====================

Each detector is a pure function of the current in-play snapshot (and,
for momentum, an earlier snapshot of the same fixture). It returns a
DetectorSignal when its thresholds trigger, otherwise None.

Detectors:
- shot pressure: one side owns the shots on target
- possession dominance
- aggressiveness: foul rate or an early card
- corner pressure: one side owns the corners
- momentum swing: pressure share over the window versus before it
- goal expectancy: xG running ahead of (or far behind) the score
"""

import math
from typing import Callable, List, Optional, Tuple

from tahmin.config import LiveThresholds
from tahmin.data.schemas import DetectorSignal, LiveSnapshot, SignalType, TeamLiveStats

# Bookmaker margin applied when estimating in-play odds from a confidence
ODDS_MARGIN = 0.92
MIN_ESTIMATED_ODDS = 1.05


def estimate_odds(confidence: float) -> float:
    """Rough in-play price for a pick we rate at `confidence` percent."""
    return round(max(MIN_ESTIMATED_ODDS, 100.0 / max(confidence, 1.0) * ODDS_MARGIN), 2)


def _dominant(home_value: float, away_value: float) -> Tuple[str, float, float]:
    """(side, side value, share of the total) for the larger side."""
    total = home_value + away_value
    if home_value >= away_value:
        return "home", home_value, (home_value / total if total else 0.0)
    return "away", away_value, (away_value / total if total else 0.0)


def _team(snapshot: LiveSnapshot, side: str) -> TeamLiveStats:
    return snapshot.home if side == "home" else snapshot.away


def _team_name(snapshot: LiveSnapshot, side: str) -> str:
    name = snapshot.home_team if side == "home" else snapshot.away_team
    return name or side


def _signal(type_: SignalType, market: str, pick: str, confidence: float, reasoning: str,
            cap: float = 95.0) -> DetectorSignal:
    confidence = float(min(cap, max(0.0, confidence)))
    return DetectorSignal(
        type=type_,
        market=market,
        pick=pick,
        confidence=confidence,
        estimated_odds=estimate_odds(confidence),
        reasoning=reasoning,
    )


def detect_shot_pressure(snapshot: LiveSnapshot, thresholds: LiveThresholds) -> Optional[DetectorSignal]:
    t = thresholds.shot_pressure
    if snapshot.minute < t.min_minute:
        return None

    side, on_target, share = _dominant(snapshot.home.shots_on_target, snapshot.away.shots_on_target)
    if on_target < t.min_shots_on_target or share < t.shot_ratio_threshold:
        return None

    shots = _team(snapshot, side).shots
    if shots > 0 and on_target / shots < t.min_shot_quality:
        return None

    confidence = (
        55.0
        + 20.0 * (share - t.shot_ratio_threshold) / (1.0 - t.shot_ratio_threshold)
        + min(10.0, 2.0 * (on_target - t.min_shots_on_target))
    )
    return _signal(
        SignalType.SHOT_PRESSURE, "next_goal", side, confidence,
        f"{_team_name(snapshot, side)} has {on_target} of "
        f"{snapshot.home.shots_on_target + snapshot.away.shots_on_target} shots on target",
    )


def detect_possession_dominance(snapshot: LiveSnapshot, thresholds: LiveThresholds) -> Optional[DetectorSignal]:
    t = thresholds.possession
    if snapshot.minute < t.min_minute:
        return None

    side, possession, _ = _dominant(snapshot.home.possession, snapshot.away.possession)
    if possession < t.dominance_threshold:
        return None

    confidence = 50.0 + (possession - t.dominance_threshold) * 2.0
    return _signal(
        SignalType.POSSESSION_DOMINANCE, "next_goal", side, confidence,
        f"{_team_name(snapshot, side)} controls {possession:.0f}% of possession",
        cap=t.max_confidence,
    )


def detect_aggressiveness(snapshot: LiveSnapshot, thresholds: LiveThresholds) -> Optional[DetectorSignal]:
    t = thresholds.aggressiveness
    minute = snapshot.minute
    if minute < t.min_minute or minute > t.max_minute:
        return None

    fouls = snapshot.home.fouls + snapshot.away.fouls
    cards = snapshot.home.cards + snapshot.away.cards
    foul_rate = fouls / minute if minute else 0.0
    early_card = cards >= t.card_threshold and minute <= t.early_card_minute

    if foul_rate < t.foul_rate and not early_card:
        return None

    # Roughly one card for every seven fouls
    projected = cards + foul_rate * (90 - minute) / 7.0
    line = max(0.5, math.floor(projected) - 0.5)

    confidence = 55.0 + min(20.0, max(0.0, foul_rate - t.foul_rate) * 100)
    if early_card:
        confidence += 8.0
    if abs(snapshot.home.goals - snapshot.away.goals) <= 1:
        confidence += 8.0

    return _signal(
        SignalType.AGGRESSIVENESS, "cards_over_under", f"over {line}", confidence,
        f"{fouls} fouls and {cards} cards by minute {minute} ({foul_rate:.2f} fouls/min)",
        cap=88.0,
    )


def detect_corner_pressure(snapshot: LiveSnapshot, thresholds: LiveThresholds) -> Optional[DetectorSignal]:
    t = thresholds.corner_pressure
    minute = snapshot.minute
    if minute < t.min_minute or minute > t.max_minute:
        return None

    side, corners, share = _dominant(snapshot.home.corners, snapshot.away.corners)
    if corners < t.min_corners or share < t.dominance_threshold:
        return None

    total = snapshot.home.corners + snapshot.away.corners
    projected = total / minute * 90
    line = max(0.5, math.floor(projected) - 0.5)

    confidence = 55.0 + 20.0 * (share - t.dominance_threshold) / (1.0 - t.dominance_threshold)
    total_shots = snapshot.home.shots + snapshot.away.shots
    if total_shots >= 15:
        confidence += 8.0
    elif total_shots >= 10:
        confidence += 4.0

    return _signal(
        SignalType.CORNER_PRESSURE, "corners_over_under", f"over {line}", confidence,
        f"{_team_name(snapshot, side)} has {corners} of {total} corners, "
        f"on pace for {projected:.1f}",
        cap=85.0,
    )


def _pressure(stats: TeamLiveStats) -> int:
    return stats.shots + stats.dangerous_attacks + stats.corners


def detect_momentum_swing(
    snapshot: LiveSnapshot,
    thresholds: LiveThresholds,
    previous: Optional[LiveSnapshot] = None,
) -> Optional[DetectorSignal]:
    """
    Compare the home share of attacking pressure inside the window with
    the cumulative share at the start of it.
    """
    t = thresholds.momentum
    if previous is None or snapshot.minute < t.min_minute:
        return None
    if snapshot.minute - previous.minute <= 0:
        return None

    before_home, before_away = _pressure(previous.home), _pressure(previous.away)
    delta_home = _pressure(snapshot.home) - before_home
    delta_away = _pressure(snapshot.away) - before_away
    window_total = delta_home + delta_away
    if window_total < 3:
        return None

    before_total = before_home + before_away
    share_before = before_home / before_total if before_total else 0.5
    share_window = delta_home / window_total
    swing = share_window - share_before
    if abs(swing) < t.stat_swing_threshold:
        return None

    side = "home" if swing > 0 else "away"
    confidence = 55.0 + min(25.0, abs(swing) * 100)
    return _signal(
        SignalType.MOMENTUM_SWING, "next_goal", side, confidence,
        f"Momentum swinging to {_team_name(snapshot, side)}: "
        f"{abs(swing):.0%} pressure shift since minute {previous.minute}",
        cap=85.0,
    )


def detect_goal_expectancy(snapshot: LiveSnapshot, thresholds: LiveThresholds) -> Optional[DetectorSignal]:
    t = thresholds.goal_expectancy
    minute = snapshot.minute
    if minute < t.min_minute or minute == 0:
        return None

    home_xg, away_xg = snapshot.home.expected_goals, snapshot.away.expected_goals
    xg_total = home_xg + away_xg
    goals = snapshot.home.goals + snapshot.away.goals
    projected = xg_total / minute * 90

    if projected >= t.high_expectancy and xg_total - goals >= t.xg_gap:
        confidence = (
            55.0
            + min(20.0, (xg_total - goals - t.xg_gap) * 15)
            + min(10.0, (projected - t.high_expectancy) * 5)
        )
        reasoning = f"xG {xg_total:.2f} against {goals} goals, on pace for {projected:.1f}"
        if home_xg >= away_xg * t.dominance_multiplier and home_xg > 0:
            reasoning += f"; {_team_name(snapshot, 'home')} creating most chances"
        elif away_xg >= home_xg * t.dominance_multiplier and away_xg > 0:
            reasoning += f"; {_team_name(snapshot, 'away')} creating most chances"
        return _signal(
            SignalType.GOAL_EXPECTANCY, "over_under", f"over {goals + 0.5}", confidence,
            reasoning, cap=90.0,
        )

    if projected <= t.low_expectancy and minute >= 45:
        confidence = 62.0 + min(15.0, (minute - 45) / 3)
        return _signal(
            SignalType.GOAL_EXPECTANCY, "over_under", f"under {goals + 1.5}", confidence,
            f"Only {xg_total:.2f} xG by minute {minute}",
            cap=85.0,
        )

    return None


Detector = Callable[[LiveSnapshot, LiveThresholds], Optional[DetectorSignal]]

SNAPSHOT_DETECTORS: List[Detector] = [
    detect_shot_pressure,
    detect_possession_dominance,
    detect_aggressiveness,
    detect_corner_pressure,
    detect_goal_expectancy,
]

# Signals that justify a critical tier late in the game
PRESSURE_SIGNALS = {
    SignalType.SHOT_PRESSURE,
    SignalType.CORNER_PRESSURE,
    SignalType.GOAL_EXPECTANCY,
    SignalType.MOMENTUM_SWING,
}


def run_detectors(
    snapshot: LiveSnapshot,
    thresholds: LiveThresholds,
    previous: Optional[LiveSnapshot] = None,
) -> List[DetectorSignal]:
    """All triggered signals, strongest first."""
    signals = [s for s in (d(snapshot, thresholds) for d in SNAPSHOT_DETECTORS) if s is not None]
    momentum = detect_momentum_swing(snapshot, thresholds, previous)
    if momentum is not None:
        signals.append(momentum)
    signals.sort(key=lambda s: -s.confidence)
    return signals
