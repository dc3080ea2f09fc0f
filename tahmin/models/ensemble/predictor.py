"""
Ensemble Scorer - Combines Heuristic Factors and the Poisson Model
==================================================================

Weighted ensemble with:
- One 1X2 distribution per factor channel (form, h2h, stats, standings,
  motivation); the stats channel is the Poisson marginal
- H2H channel dropped when the head-to-head sample is too thin
- Poisson blend: p = (1 - poisson_weight) * heuristic + poisson_weight * poisson
- Confidence from model agreement and sharpness
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

import numpy as np
from scipy.stats import poisson as poisson_dist

from tahmin.config import Config, get_config
from tahmin.data.schemas import (
    BTTS, BetSuggestion, FixtureInput, MarketProbability, MatchResult,
    OverUnder, PredictionFactors, PredictionResult, StakeLevel, ValueBetResult,
)
from tahmin.data.processors.validate import validate_fixture
from tahmin.features.aggregator import FactorAggregator
from tahmin.models.poisson import PoissonGoalModel, PoissonPrediction
from tahmin.strategy.ev import ValueBetDetector, recommend
from tahmin.strategy.kelly import KellyStaker

logger = logging.getLogger(__name__)

OUTCOMES = ("home", "draw", "away")

# Logit added to the home side in every heuristic channel
HOME_ADVANTAGE = 0.25

# Total-variation distance above which the two models are said to disagree
DISAGREEMENT_TVD = 0.15

# Confidence penalties (points)
LOW_CONFIDENCE_PENALTY = 15.0
THIN_H2H_PENALTY = 5.0
MISSING_BLOCK_PENALTY = 4.0

# Fewest meetings behind H2H reasons when no scorer decided
MIN_H2H_MATCHES = 3

# Share of H2H-derived rates in the goals markets when the sample is usable
H2H_GOALS_WEIGHT = 0.3

REFERENCE_THRESHOLDS = {
    "high": 10.0,
    "medium": 15.0,
    "risky": 25.0,
}


def softmax(logits: np.ndarray) -> np.ndarray:
    shifted = np.exp(logits - logits.max())
    return shifted / shifted.sum()


def total_variation(p: np.ndarray, q: np.ndarray) -> float:
    return float(0.5 * np.abs(p - q).sum())


def stake_level(confidence: float, edge: float) -> StakeLevel:
    """Coarse stake from the mean of confidence and edge."""
    score = (confidence + edge) / 2
    if score >= 70:
        return StakeLevel.HIGH
    if score >= 55:
        return StakeLevel.MEDIUM
    return StakeLevel.LOW


def outcome_confidence(probability: float, n_outcomes: int, penalty: float = 0.0) -> float:
    """Per-outcome confidence: distance from a uniform guess, on 0-100."""
    base = 50.0 + abs(probability - 1.0 / n_outcomes) * 100
    return float(min(100.0, max(0.0, base - penalty)))


@dataclass
class ReferenceCheck:
    """Model 1X2 compared with an external reference forecast."""
    label: str                 # high / medium / risky / avoid
    model_pick: str
    reference_pick: str
    model_probability: float   # percent
    reference_probability: float
    deviation: float           # percentage points
    same_direction: bool
    message: str

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "model_pick": self.model_pick,
            "reference_pick": self.reference_pick,
            "model_probability": self.model_probability,
            "reference_probability": self.reference_probability,
            "deviation": self.deviation,
            "same_direction": self.same_direction,
            "message": self.message,
        }


def validate_against_reference(
    model: Dict[str, float],
    reference: Dict[str, float],
) -> ReferenceCheck:
    """
    Cross-check model 1X2 probabilities (0-1) against a reference forecast.

    Deviation is measured on the model's favourite. When the two sides
    favour different outcomes the deviation becomes the mean of the two
    favourite probabilities plus 20 points.
    """
    model_pick = max(OUTCOMES, key=lambda k: model[k])
    reference_pick = max(OUTCOMES, key=lambda k: reference[k])
    same = model_pick == reference_pick

    model_p = model[model_pick] * 100
    reference_p = reference[model_pick] * 100
    deviation = abs(model_p - reference_p)
    if not same:
        deviation = (model_p + reference[reference_pick] * 100) / 2 + 20

    if same and deviation <= REFERENCE_THRESHOLDS["high"]:
        label, message = "high", f"Model and reference agree on {model_pick} ({deviation:.1f} pts apart)"
    elif same and deviation <= REFERENCE_THRESHOLDS["medium"]:
        label, message = "medium", f"Model and reference broadly agree ({deviation:.1f} pts apart)"
    elif deviation <= REFERENCE_THRESHOLDS["risky"]:
        label, message = "risky", f"Model says {model_pick}, reference says {reference_pick} - be careful"
    else:
        label, message = "avoid", f"Model and reference strongly disagree ({deviation:.1f} pts)"

    return ReferenceCheck(
        label=label,
        model_pick=model_pick,
        reference_pick=reference_pick,
        model_probability=model_p,
        reference_probability=reference_p,
        deviation=deviation,
        same_direction=same,
        message=message,
    )


@dataclass
class EnsembleScore:
    """1X2 blend and the signals behind it."""
    blended: Dict[str, float]
    heuristic: Dict[str, float]
    poisson: Dict[str, float]
    channels: Dict[str, Dict[str, float]]
    weights: Dict[str, float]
    agreement: float
    confidence: float
    h2h_used: bool
    recommended_pick: Optional[str] = None
    reasoning: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "blended": self.blended,
            "heuristic": self.heuristic,
            "poisson": self.poisson,
            "weights": self.weights,
            "agreement": self.agreement,
            "confidence": self.confidence,
            "h2h_used": self.h2h_used,
            "recommended_pick": self.recommended_pick,
            "reasoning": list(self.reasoning),
        }


class EnsembleScorer:
    """
    Blends factor channels with the Poisson model and prices the
    resulting probabilities against bookmaker odds.

    Usage:
        scorer = EnsembleScorer()
        result = scorer.predict(fixture)
        result.recommended_pick, result.best_bet
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        poisson_model: Optional[PoissonGoalModel] = None,
        aggregator: Optional[FactorAggregator] = None,
    ):
        self.config = config or get_config()
        self.poisson_model = poisson_model or PoissonGoalModel(
            league_avg_home_goals=self.config.league_avg_home_goals,
            league_avg_away_goals=self.config.league_avg_away_goals,
            max_goals=self.config.max_goals,
            top_n=self.config.top_scores,
        )
        self.aggregator = aggregator or FactorAggregator()
        self.detector = ValueBetDetector(self.config.value)
        self.staker = KellyStaker(self.config.risk)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def channel_probabilities(
        self,
        factors: PredictionFactors,
        poisson: PoissonPrediction,
    ) -> Dict[str, np.ndarray]:
        """One (home, draw, away) distribution per factor channel."""
        form, h2h, standings, motivation = (
            factors.form, factors.h2h, factors.standings, factors.motivation
        )

        form_logits = np.array([
            HOME_ADVANTAGE + (form.home_form - 50) * 0.025 + (form.home_home_form - 50) * 0.01,
            -abs(form.form_difference) * 0.006,
            (form.away_form - 50) * 0.025 + (form.away_away_form - 50) * 0.01,
        ])

        if h2h.total_matches > 0:
            ratio = (h2h.home_wins - h2h.away_wins) / h2h.total_matches
            draw_ratio = h2h.draws / h2h.total_matches
        else:
            ratio, draw_ratio = 0.0, 0.25
        h2h_logits = np.array([
            HOME_ADVANTAGE + ratio * 0.8,
            (draw_ratio - 0.25) * 0.6,
            -ratio * 0.8,
        ])

        position_edge = standings.position_difference / max(standings.league_size, 1)
        standings_logits = np.array([
            HOME_ADVANTAGE + position_edge * 1.5,
            -abs(position_edge) * 0.5,
            -position_edge * 1.5,
        ])

        motivation_logits = np.array([
            HOME_ADVANTAGE + (motivation.home_motivation - 70) * 0.02,
            0.0,
            (motivation.away_motivation - 70) * 0.02,
        ])

        return {
            "form": softmax(form_logits),
            "h2h": softmax(h2h_logits),
            "stats": np.array([poisson.home, poisson.draw, poisson.away]),
            "standings": softmax(standings_logits),
            "motivation": softmax(motivation_logits),
        }

    def effective_weights(self, factors: PredictionFactors) -> Tuple[Dict[str, float], bool]:
        """
        Configured weights, with the H2H share redistributed
        proportionally when the meeting sample is too small.

        Returns:
            (weights summing to 1, h2h_used)
        """
        weights = self.config.weights.as_dict()
        h2h_used = factors.h2h.total_matches >= self.config.min_h2h_matches
        if not h2h_used:
            weights["h2h"] = 0.0

        total = sum(weights.values())
        if total <= 0:
            # Only H2H carried weight and it was dropped: fall back to Poisson
            return {k: (1.0 if k == "stats" else 0.0) for k in weights}, h2h_used
        return {k: v / total for k, v in weights.items()}, h2h_used

    # ------------------------------------------------------------------
    # 1X2 blend
    # ------------------------------------------------------------------

    def score(
        self,
        factors: PredictionFactors,
        poisson: Optional[PoissonPrediction] = None,
    ) -> EnsembleScore:
        """Blend the 1X2 market and decide whether a pick is emitted."""
        poisson = poisson or self.poisson_model.predict_from_factors(factors)
        channels = self.channel_probabilities(factors, poisson)
        weights, h2h_used = self.effective_weights(factors)

        heuristic = sum(weights[name] * probs for name, probs in channels.items())
        heuristic = heuristic / heuristic.sum()
        poisson_vec = channels["stats"]

        pw = self.config.poisson_weight
        blended = (1 - pw) * heuristic + pw * poisson_vec
        blended = np.clip(blended, 0.0, 1.0)
        blended = blended / blended.sum()

        tvd = total_variation(heuristic, poisson_vec)
        agreement = 1.0 - tvd
        sharpness = (blended.max() - 1 / 3) / (2 / 3)
        confidence = 100 * (0.5 * agreement + 0.5 * sharpness)

        reasoning = []
        if tvd > DISAGREEMENT_TVD:
            reasoning.append(
                f"Factor model and Poisson model disagree ({tvd:.0%} apart) - confidence reduced"
            )
        if poisson.low_confidence:
            confidence -= LOW_CONFIDENCE_PENALTY
            reasoning.append("Expected goals fell back to league averages")
        if not h2h_used:
            confidence -= THIN_H2H_PENALTY
            reasoning.append(
                f"Only {factors.h2h.total_matches} head-to-head meetings - H2H ignored"
            )
        missing = [m for m in factors.missing if m != "h2h"]
        if missing:
            confidence -= MISSING_BLOCK_PENALTY * len(missing)
            reasoning.append(f"Neutral defaults used for: {', '.join(missing)}")
        confidence = float(min(100.0, max(0.0, confidence)))

        pick = OUTCOMES[int(np.argmax(blended))]
        recommended = pick if confidence >= self.config.min_confidence else None
        if recommended is None:
            reasoning.append(
                f"No pick: confidence {confidence:.0f} below {self.config.min_confidence:.0f}"
            )

        return EnsembleScore(
            blended=dict(zip(OUTCOMES, map(float, blended))),
            heuristic=dict(zip(OUTCOMES, map(float, heuristic))),
            poisson=dict(zip(OUTCOMES, map(float, poisson_vec))),
            channels={k: dict(zip(OUTCOMES, map(float, v))) for k, v in channels.items()},
            weights=weights,
            agreement=agreement,
            confidence=confidence,
            h2h_used=h2h_used,
            recommended_pick=recommended,
            reasoning=reasoning,
        )

    # ------------------------------------------------------------------
    # Goals markets
    # ------------------------------------------------------------------

    def goals_markets(
        self,
        factors: PredictionFactors,
        poisson: PoissonPrediction,
        h2h_used: bool,
    ) -> Tuple[Dict[str, Tuple[float, float]], Tuple[float, float]]:
        """
        Over/under lines and BTTS, Poisson-based; the 2.5 line and BTTS
        lean on head-to-head rates when there are enough meetings.

        Returns:
            ({line: (over, under)}, (btts_yes, btts_no))
        """
        over_under = dict(poisson.over_under)
        btts_yes = poisson.btts_yes

        if h2h_used:
            w = H2H_GOALS_WEIGHT
            h2h_over = float(poisson_dist.sf(2, factors.h2h.avg_goals))
            if "2.5" in over_under:
                over = (1 - w) * over_under["2.5"][0] + w * h2h_over
                over_under["2.5"] = (over, 1.0 - over)
            btts_yes = (1 - w) * btts_yes + w * factors.h2h.btts_percentage / 100

        return over_under, (btts_yes, 1.0 - btts_yes)

    # ------------------------------------------------------------------
    # Full prediction
    # ------------------------------------------------------------------

    def predict(self, fixture: Any, bankroll: Optional[float] = None) -> PredictionResult:
        """Factors -> Poisson -> ensemble -> value bets -> suggestions."""
        fixture = validate_fixture(fixture)
        factors = self.aggregator.build(fixture)
        poisson = self.poisson_model.predict_from_factors(factors)
        ensemble = self.score(factors, poisson)
        over_under, (btts_yes, btts_no) = self.goals_markets(factors, poisson, ensemble.h2h_used)

        penalty = LOW_CONFIDENCE_PENALTY if poisson.low_confidence else 0.0
        odds = fixture.odds

        match_result = {
            k: self._market_probability(p, 3, penalty, odds.match_result.get(k))
            for k, p in ensemble.blended.items()
        }
        ou_markets = {}
        for line, (over, under) in over_under.items():
            line_odds = odds.market("over_under", float(line))
            ou_markets[line] = {
                "over": self._market_probability(over, 2, penalty, line_odds.get("over")),
                "under": self._market_probability(under, 2, penalty, line_odds.get("under")),
            }
        btts = {
            "yes": self._market_probability(btts_yes, 2, penalty, odds.btts.get("yes")),
            "no": self._market_probability(btts_no, 2, penalty, odds.btts.get("no")),
        }

        value_bets, suggestions = self._value_bets(
            fixture, factors, match_result, ou_markets, btts,
            bankroll if bankroll is not None else self.config.bankroll,
            h2h_used=ensemble.h2h_used,
        )

        eligible = [s for s in suggestions if s.confidence >= self.config.min_confidence]
        best_bet = max(eligible, key=lambda s: (s.edge or 0) * s.confidence) if eligible else None

        reasoning = list(ensemble.reasoning) + list(poisson.notes)
        if best_bet is None and ensemble.recommended_pick is not None:
            reasoning.append("No value bet found against the available odds")

        result = PredictionResult(
            fixture_id=fixture.fixture_id,
            home_team=fixture.home_team,
            away_team=fixture.away_team,
            match_result=match_result,
            over_under=ou_markets,
            btts=btts,
            correct_scores=poisson.top_scores,
            expected_goals={
                "home": poisson.lambda_home,
                "away": poisson.lambda_away,
                "total": poisson.lambda_home + poisson.lambda_away,
            },
            factors=factors,
            overall_confidence=ensemble.confidence,
            agreement=ensemble.agreement,
            low_confidence=poisson.low_confidence,
            recommended_pick=ensemble.recommended_pick,
            best_bet=best_bet,
            suggestions=suggestions,
            value_bets=value_bets,
            reasoning=reasoning,
        )

        logger.info(
            f"{fixture.label}: pick={result.recommended_pick} "
            f"conf={result.overall_confidence:.0f} value_bets={len(suggestions)}"
        )
        return result

    def _market_probability(
        self,
        probability: float,
        n_outcomes: int,
        penalty: float,
        bookmaker_odds: Optional[float],
    ) -> MarketProbability:
        probability = float(min(1.0, max(0.0, probability)))
        fair = 1.0 / probability if probability > 0 else None
        return MarketProbability(
            probability=probability,
            confidence=outcome_confidence(probability, n_outcomes, penalty),
            bookmaker_odds=bookmaker_odds if bookmaker_odds and bookmaker_odds > 1 else None,
            fair_odds=fair if fair is not None and fair > 1 else None,
        )

    def _value_bets(
        self,
        fixture: FixtureInput,
        factors: PredictionFactors,
        match_result: Dict[str, MarketProbability],
        over_under: Dict[str, Dict[str, MarketProbability]],
        btts: Dict[str, MarketProbability],
        bankroll: float,
        h2h_used: Optional[bool] = None,
    ) -> Tuple[List[ValueBetResult], List[BetSuggestion]]:
        odds = fixture.odds
        markets = [
            ("match_result", None, match_result, odds.match_result),
            ("btts", None, btts, odds.btts),
        ]
        for line, probs in over_under.items():
            line_odds = odds.market("over_under", float(line))
            if line_odds:
                markets.append(("over_under", float(line), probs, line_odds))

        value_bets: List[ValueBetResult] = []
        suggestions: List[BetSuggestion] = []

        for name, line, probs, prices in markets:
            if not prices:
                continue
            results = self.detector.evaluate_market(
                name, {k: mp.probability for k, mp in probs.items()}, prices
            )
            value_bets.extend(results)

            for vb in results:
                if not vb.is_value:
                    continue
                mp = probs[vb.selection]
                kelly = self.staker.stake(vb.odds, vb.model_prob, bankroll)
                rec, _ = recommend(
                    vb.edge, vb.model_prob,
                    self.staker.half_kelly_pct(vb.odds, vb.model_prob),
                    self.config.value.min_value_edge,
                )
                suggestions.append(BetSuggestion(
                    fixture_id=fixture.fixture_id,
                    market=self._market_for(name, vb.selection, line),
                    pick=vb.selection,
                    probability=vb.model_prob,
                    confidence=mp.confidence,
                    edge=vb.edge,
                    odds=vb.odds,
                    stake=stake_level(mp.confidence, vb.edge),
                    stake_amount=kelly.suggested_amount,
                    recommendation=rec,
                    reasoning=generate_reasoning(name, vb.selection, factors, h2h_used) + list(vb.warnings),
                ))

        return value_bets, suggestions

    @staticmethod
    def _market_for(name: str, selection: str, line: Optional[float]):
        if name == "match_result":
            return MatchResult(pick=selection)
        if name == "btts":
            return BTTS(pick=selection)
        if name == "over_under":
            return OverUnder(line=line, side=selection)
        raise ValueError(f"Unknown market {name}")


def generate_reasoning(
    market: str,
    selection: str,
    factors: PredictionFactors,
    h2h_used: Optional[bool] = None,
) -> List[str]:
    """
    Short human-readable reasons behind a suggestion.

    Head-to-head reasons are left out when the meeting sample is too
    thin. h2h_used carries the scorer's decision; when omitted, fewer
    than MIN_H2H_MATCHES meetings count as thin.
    """
    if h2h_used is None:
        h2h_used = factors.h2h.total_matches >= MIN_H2H_MATCHES
    reasons = []
    form, h2h, stats, standings = factors.form, factors.h2h, factors.stats, factors.standings

    if market == "match_result" and selection == "home":
        if form.home_form >= 70:
            reasons.append("Home side in good form")
        if form.home_home_form >= 70:
            reasons.append("Strong at home")
        if standings.position_difference > 5:
            reasons.append("Table position advantage")
        if h2h_used and h2h.recent_trend.value == "home":
            reasons.append("Head-to-head trend favours the home side")
    elif market == "match_result" and selection == "away":
        if form.away_form >= 70:
            reasons.append("Away side in good form")
        if standings.position_difference < -5:
            reasons.append("Away side higher in the table")
        if h2h_used and h2h.recent_trend.value == "away":
            reasons.append("Head-to-head trend favours the away side")
    elif market == "over_under" and selection == "over":
        if stats.home_attack >= 60:
            reasons.append("Home attack is strong")
        if stats.away_attack >= 60:
            reasons.append("Away attack is strong")
        if h2h_used and h2h.avg_goals >= 2.8:
            reasons.append("High-scoring head-to-head history")
    elif market == "btts" and selection == "yes":
        if h2h_used and h2h.btts_percentage >= 60:
            reasons.append("Both teams often score in this fixture")
        if stats.home_goals_scored >= 1.5 and stats.away_goals_scored >= 1.2:
            reasons.append("Both sides score regularly")

    if not reasons:
        reasons.append("Statistical model edge")
    return reasons


__all__ = [
    "EnsembleScorer",
    "EnsembleScore",
    "ReferenceCheck",
    "validate_against_reference",
    "generate_reasoning",
    "stake_level",
    "softmax",
    "total_variation",
]
