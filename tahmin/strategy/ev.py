"""
Value-Bet Detector
==================

Edge is measured against overround-adjusted bookmaker probability:

    implied_i = (1/odds_i) / sum_j(1/odds_j)
    edge%     = (model_prob - implied) / implied * 100

which is the same as (model_prob * fair_odds - 1) * 100 with
fair_odds = 1 / implied. Markets with an unusable price on any side
are skipped with reason "insufficient odds".
"""

from typing import Dict, Iterable, List, Optional, Tuple
import logging

from tahmin.config import ValueThresholds
from tahmin.data.schemas import Recommendation, ValueBetResult, ValueTier
from tahmin.data.processors.validate import (
    INSUFFICIENT_ODDS, MARKET_OUTCOMES, OddsValidator, validate_probability,
)

logger = logging.getLogger(__name__)


def remove_vig(odds: Dict[str, float]) -> Dict[str, float]:
    """
    Remove bookmaker margin (vig) from odds.

    Uses proportional method: fair_prob = implied_prob / total_implied

    Args:
        odds: {outcome: decimal_odds}, every price > 1

    Returns:
        {outcome: fair_probability}
    """
    implied = {k: 1.0 / float(v) for k, v in odds.items()}
    total = sum(implied.values())
    if total == 0:
        return {}
    return {k: v / total for k, v in implied.items()}


def calculate_ev(prob: float, odds: float) -> float:
    """EV per unit staked: p * odds - 1."""
    if odds <= 1.0:
        return -1.0
    return prob * odds - 1.0


def edge_from_fair_odds(model_prob: float, fair_odds: float) -> float:
    """Edge percent recomputed from fair odds."""
    return (model_prob * fair_odds - 1.0) * 100


class ValueBetDetector:
    """
    Compares model probabilities with bookmaker prices.

    Usage:
        detector = ValueBetDetector()
        result = detector.evaluate("home", 0.58, {"home": 1.90, "draw": 3.40, "away": 4.20})
        result.edge, result.tier
    """

    def __init__(self, thresholds: Optional[ValueThresholds] = None):
        self.thresholds = thresholds or ValueThresholds()

    def tier(self, edge: float) -> ValueTier:
        t = self.thresholds
        if edge >= t.strong_edge:
            return ValueTier.STRONG
        if edge >= t.high_edge:
            return ValueTier.HIGH
        if edge >= t.min_value_edge:
            return ValueTier.VALUE
        return ValueTier.NONE

    def market_outcomes(
        self,
        selection: str,
        market_odds: Dict[str, float],
        market: Optional[str] = None,
    ) -> Tuple[str, ...]:
        """
        Outcomes the selection's market must price.

        A named market uses its fixed outcome set; otherwise the market is
        the known one containing the selection, and only unknown selections
        fall back to the keys of the odds.
        """
        if market is not None:
            if market in MARKET_OUTCOMES:
                return MARKET_OUTCOMES[market]
            return tuple(market_odds)
        for outcomes in MARKET_OUTCOMES.values():
            if selection in outcomes:
                return outcomes
        return tuple(market_odds)

    def evaluate(
        self,
        selection: str,
        model_prob: float,
        market_odds: Dict[str, float],
        outcomes: Optional[Iterable[str]] = None,
        market: Optional[str] = None,
    ) -> ValueBetResult:
        """
        Evaluate one outcome of a market.

        Args:
            selection: Outcome key (home/draw/away, over/under, yes/no)
            model_prob: Blended model probability (0-1)
            market_odds: Prices for ALL outcomes of the market
            outcomes: Outcomes the market must contain
            market: Market name (match_result, over_under, btts) when
                outcomes is not given

        A market missing a side, or with fewer than two outcomes, returns
        reason "insufficient odds" instead of an edge.
        """
        model_prob = validate_probability(model_prob, "model_prob")
        market_odds = market_odds or {}
        if outcomes is not None:
            outcomes = tuple(outcomes)
        else:
            outcomes = self.market_outcomes(selection, market_odds, market)

        check = OddsValidator.validate_market(market_odds, outcomes)
        if len(outcomes) < 2:
            check.add_error(f"market needs at least two outcomes, got {len(outcomes)}")
        if not check.is_valid or selection not in outcomes:
            logger.debug(f"Skipping {selection}: {'; '.join(check.errors) or 'selection not in market'}")
            return ValueBetResult(
                selection=selection,
                model_prob=model_prob,
                reason=INSUFFICIENT_ODDS,
                warnings=check.errors,
            )

        prices = {k: float(market_odds[k]) for k in outcomes}
        implied = remove_vig(prices)[selection]
        fair_odds = 1.0 / implied
        edge = (model_prob - implied) / implied * 100

        warnings = list(check.warnings)
        if edge > self.thresholds.max_plausible_edge:
            warnings.append(
                f"Implausible edge {edge:.1f}% - check inputs before betting"
            )
            logger.warning(
                f"Suspicious edge {edge:.1f}% on {selection} "
                f"(prob {model_prob:.2%}, odds {prices[selection]})"
            )

        return ValueBetResult(
            selection=selection,
            model_prob=model_prob,
            odds=prices[selection],
            implied_prob=implied,
            fair_odds=fair_odds,
            edge=edge,
            tier=self.tier(edge),
            warnings=warnings,
        )

    def evaluate_market(
        self,
        market: str,
        model_probs: Dict[str, float],
        market_odds: Dict[str, float],
    ) -> List[ValueBetResult]:
        """Evaluate every outcome of a named market (match_result, over_under, btts)."""
        outcomes = MARKET_OUTCOMES.get(market, tuple(model_probs))
        return [
            self.evaluate(selection, model_probs[selection], market_odds, outcomes)
            for selection in outcomes
            if selection in model_probs
        ]

    def find_value_bets(
        self,
        markets: Dict[str, Tuple[Dict[str, float], Dict[str, float]]],
    ) -> List[ValueBetResult]:
        """
        Scan several markets at once.

        Args:
            markets: {label: (model_probs, market_odds)}; labels that are
                not known market names are treated as generic markets.

        Returns:
            Value bets only, sorted by edge descending
        """
        found = []
        for name, (probs, odds) in markets.items():
            for result in self.evaluate_market(name, probs, odds):
                if result.is_value:
                    found.append(result)

        found.sort(key=lambda r: -r.edge)
        logger.info(f"Found {len(found)} value bets across {len(markets)} markets")
        return found


def recommend(
    edge: Optional[float],
    probability: float,
    half_kelly_pct: float,
    min_value_edge: float = 5.0,
) -> Tuple[Recommendation, float]:
    """
    Overall rating (0-100) and recommendation tier.

    rating = min(100, edge * 2 + probability% * 0.3 + half_kelly% * 3),
    zero unless the edge clears the minimum value threshold.
    """
    if edge is None or edge < min_value_edge:
        return Recommendation.SKIP, 0.0

    rating = min(100.0, edge * 2 + probability * 100 * 0.3 + half_kelly_pct * 3)

    if rating >= 80 and edge >= 15 and half_kelly_pct >= 3:
        return Recommendation.STRONG_BET, rating
    if rating >= 60 and edge >= 10 and half_kelly_pct >= 2:
        return Recommendation.BET, rating
    if rating >= 40 and edge >= 5 and half_kelly_pct >= 1:
        return Recommendation.CONSIDER, rating
    return Recommendation.SKIP, rating
