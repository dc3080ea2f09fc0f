"""
Kelly Criterion Staking
=======================

Implements:
1. Fractional Kelly with hard caps (percent of bankroll and absolute)
2. Risk level and sanity warnings
3. Flat staking, risk-of-ruin and a seeded compound-growth simulation

Every function here is pure: the same inputs always give the same
KellyResult, and nothing is remembered between calls.
"""

from typing import Any, Dict, Optional
import logging

import numpy as np

from tahmin.config import RiskLimits
from tahmin.data.schemas import KellyResult, RiskLevel
from tahmin.data.processors.validate import (
    INSUFFICIENT_ODDS, usable_odds, validate_positive, validate_probability,
)

logger = logging.getLogger(__name__)

# Full Kelly above this is treated as an overconfident probability
FULL_KELLY_WARNING = 0.25


def kelly_formula(prob: float, odds: float) -> float:
    """
    Calculate full Kelly fraction.

    Formula: f* = (b*p - q) / b
    where b = odds - 1, p = prob, q = 1 - p

    Returns:
        Fraction of bankroll; negative when there is no edge
    """
    b = odds - 1
    q = 1 - prob
    return (b * prob - q) / b


def risk_level_for(stake_fraction: float) -> RiskLevel:
    if stake_fraction > 0.10:
        return RiskLevel.EXTREME
    if stake_fraction > 0.05:
        return RiskLevel.HIGH
    if stake_fraction > 0.02:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_kelly(
    odds: float,
    probability: float,
    bankroll: float,
    kelly_fraction: float = 0.25,
    max_bet_pct: float = 0.05,
    max_single_bet: Optional[float] = 500.0,
    min_stake_amount: float = 1.0,
) -> KellyResult:
    """
    Fractional Kelly stake with safety caps.

    Args:
        odds: Decimal odds
        probability: Model probability of winning (0-1)
        bankroll: Current bankroll
        kelly_fraction: Share of full Kelly actually staked, in (0, 1]
        max_bet_pct: Cap as a fraction of bankroll (0.05 = 5%)
        max_single_bet: Absolute cap, None for no cap
        min_stake_amount: Stakes below this are rounded down to 0

    Returns:
        KellyResult; suggested_amount never exceeds
        min(max_bet_pct * bankroll, max_single_bet) and is never negative.
    """
    probability = validate_probability(probability)
    bankroll = validate_positive(bankroll, "bankroll", allow_zero=True)
    if not (0 < kelly_fraction <= 1):
        raise ValueError(f"kelly_fraction must be in (0, 1], got {kelly_fraction}")

    if not usable_odds(odds):
        return KellyResult(
            full_kelly_pct=0.0,
            fractional_kelly_pct=0.0,
            suggested_amount=0.0,
            edge=0.0,
            expected_value=0.0,
            is_value_bet=False,
            risk_level=RiskLevel.LOW,
            warnings=[INSUFFICIENT_ODDS],
        )

    odds = float(odds)
    full = kelly_formula(probability, odds)
    ev = probability * odds - 1
    warnings = []

    if full <= 0:
        warnings.append("Negative expected value - no bet")
        return KellyResult(
            full_kelly_pct=full * 100,
            fractional_kelly_pct=0.0,
            suggested_amount=0.0,
            edge=ev * 100,
            expected_value=0.0,
            is_value_bet=False,
            risk_level=RiskLevel.LOW,
            warnings=warnings,
        )

    cap = bankroll * max_bet_pct
    if max_single_bet is not None:
        cap = min(cap, max_single_bet)

    amount = bankroll * full * kelly_fraction
    capped = amount > cap
    if capped:
        warnings.append(f"Stake capped at {cap:.2f}")
        logger.warning(
            f"Kelly stake {amount:.2f} clamped to {cap:.2f} "
            f"(odds {odds}, prob {probability:.2%})"
        )
    amount = min(round(amount, 2), cap)

    if 0 < amount < min_stake_amount:
        warnings.append(f"Stake below minimum {min_stake_amount:.2f} - rounded to 0")
        amount = 0.0

    if full > FULL_KELLY_WARNING:
        warnings.append(
            f"Full Kelly {full:.0%} is very high - use a fractional stake"
        )

    stake_fraction = amount / bankroll if bankroll > 0 else 0.0

    return KellyResult(
        full_kelly_pct=full * 100,
        fractional_kelly_pct=stake_fraction * 100,
        suggested_amount=amount,
        edge=ev * 100,
        expected_value=amount * ev,
        is_value_bet=True,
        risk_level=risk_level_for(stake_fraction),
        capped=capped,
        warnings=warnings,
    )


class KellyStaker:
    """
    Kelly sizing bound to a set of risk limits.

    Usage:
        staker = KellyStaker(RiskLimits(kelly_fraction=0.25))
        result = staker.stake(odds=2.0, probability=0.6, bankroll=1000)
    """

    def __init__(self, limits: Optional[RiskLimits] = None):
        self.limits = limits or RiskLimits()

    def stake(self, odds: float, probability: float, bankroll: float) -> KellyResult:
        return calculate_kelly(
            odds=odds,
            probability=probability,
            bankroll=bankroll,
            kelly_fraction=self.limits.kelly_fraction,
            max_bet_pct=self.limits.max_bet_pct,
            max_single_bet=self.limits.max_single_bet,
            min_stake_amount=self.limits.min_stake_amount,
        )

    def half_kelly_pct(self, odds: float, probability: float) -> float:
        """Half Kelly as a percent of bankroll, 0 when there is no edge."""
        if not usable_odds(odds):
            return 0.0
        return max(0.0, kelly_formula(probability, float(odds))) * 50


def flat_stake(bankroll: float, percentage: float = 2.0) -> float:
    """Fixed percentage of bankroll."""
    return round(bankroll * percentage / 100, 2)


def probability_of_ruin(win_rate: float, avg_odds: float, bankroll_units: float) -> float:
    """
    Simplified risk of ruin: ((1 - edge) / (1 + edge)) ** units,
    where edge = win_rate * avg_odds - 1. No edge means eventual ruin.
    """
    edge = win_rate * avg_odds - 1
    if edge <= 0:
        return 1.0
    if edge >= 1:
        return 0.0
    return ((1 - edge) / (1 + edge)) ** bankroll_units


def simulate_compound_growth(
    rng: np.random.Generator,
    probability: float,
    odds: float,
    stake_fraction: float,
    n_bets: int = 100,
    runs: int = 1000,
    initial_bankroll: float = 1000.0,
) -> Dict[str, Any]:
    """
    Monte Carlo bankroll paths for a repeated fixed-fraction bet.

    Args:
        rng: Seeded numpy Generator
        stake_fraction: Share of the current bankroll staked each bet

    Returns:
        Summary of final bankrolls and drawdowns across all runs
    """
    if not (0 <= stake_fraction <= 1):
        raise ValueError("stake_fraction must be in [0, 1]")

    wins = rng.random((runs, n_bets)) < probability
    growth = np.where(wins, 1 + stake_fraction * (odds - 1), 1 - stake_fraction)
    paths = initial_bankroll * np.cumprod(growth, axis=1)
    final = paths[:, -1]

    running_max = np.maximum.accumulate(
        np.concatenate([np.full((runs, 1), initial_bankroll), paths], axis=1), axis=1
    )[:, 1:]
    drawdowns = np.where(running_max > 0, (running_max - paths) / running_max, 0.0)

    summary = {
        "runs": runs,
        "n_bets": n_bets,
        "median_final": float(np.median(final)),
        "mean_final": float(final.mean()),
        "p5_final": float(np.percentile(final, 5)),
        "p95_final": float(np.percentile(final, 95)),
        "prob_loss": float(np.mean(final < initial_bankroll)),
        "prob_halved": float(np.mean(final < initial_bankroll / 2)),
        "avg_max_drawdown": float(drawdowns.max(axis=1).mean()),
        "expected_log_growth": float(np.mean(np.log(np.maximum(final, 1e-12) / initial_bankroll))),
    }
    logger.debug(f"Compound simulation: {summary}")
    return summary

