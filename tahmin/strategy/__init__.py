"""TAHMIN Strategy Module - Value Detection, Kelly Staking, Bankroll and Coupons."""

from .ev import (
    ValueBetDetector, remove_vig, calculate_ev, edge_from_fair_odds, recommend,
)
from .kelly import (
    KellyStaker, calculate_kelly, kelly_formula, risk_level_for,
    flat_stake, probability_of_ruin, simulate_compound_growth,
)
from .bankroll import BankrollLedger, LedgerBet, LedgerError, settlement_returns
from .coupon import (
    CouponCombiner, InvalidSystemError, SYSTEM_TYPES, parse_system,
    categorize_selection, categorize_selections,
)

__all__ = [
    # EV
    "ValueBetDetector",
    "remove_vig",
    "calculate_ev",
    "edge_from_fair_odds",
    "recommend",
    # Kelly
    "KellyStaker",
    "calculate_kelly",
    "kelly_formula",
    "risk_level_for",
    "flat_stake",
    "probability_of_ruin",
    "simulate_compound_growth",
    # Bankroll
    "BankrollLedger",
    "LedgerBet",
    "LedgerError",
    "settlement_returns",
    # Coupon
    "CouponCombiner",
    "InvalidSystemError",
    "SYSTEM_TYPES",
    "parse_system",
    "categorize_selection",
    "categorize_selections",
]
