"""
Prediction package - in-play signal scanning.

Usage:
    from tahmin.prediction import LiveSignalScanner

    scanner = LiveSignalScanner()
    opportunity = scanner.scan(snapshot)
"""

from .detectors import (
    detect_shot_pressure,
    detect_possession_dominance,
    detect_aggressiveness,
    detect_corner_pressure,
    detect_momentum_swing,
    detect_goal_expectancy,
    run_detectors,
    estimate_odds,
)
from .live import LiveSignalScanner, LivePoller, merge_signals, classify_urgency


__all__ = [
    # Detectors
    "detect_shot_pressure",
    "detect_possession_dominance",
    "detect_aggressiveness",
    "detect_corner_pressure",
    "detect_momentum_swing",
    "detect_goal_expectancy",
    "run_detectors",
    "estimate_odds",
    # Scanner
    "LiveSignalScanner",
    "LivePoller",
    "merge_signals",
    "classify_urgency",
]
