"""
TAHMIN - Football Prediction & Value Betting Engine

Turns normalized team statistics and bookmaker prices into
calibrated match probabilities, value-bet edges, Kelly stakes
and in-play signals.
"""

__version__ = "1.0.0"
