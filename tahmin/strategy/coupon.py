"""
Coupon / System Bet Combiner
============================

Enumerates the combinations of a coupon and prices them:

- single: every selection on its own, one stake each
- full:   one accumulator over all selections
- k/n:    every k-subset of exactly n selections

    combiner = CouponCombiner()
    result = combiner.calculate(selections, "3/4", stake=10)
    result.total_combinations, result.total_stake   # 4, 40.0
"""

from itertools import combinations as iter_combinations
from typing import Dict, List, Optional, Sequence, Tuple, Union
import logging

from tahmin.data.schemas import (
    BetOutcome, CouponSelection, CouponSystemResult, RiskCategory,
)

logger = logging.getLogger(__name__)

SYSTEM_TYPES = ("single", "full", "2/3", "3/4", "4/5", "5/6", "2/4", "3/5", "3/6")

CATEGORY_THRESHOLDS = {
    "banko": {"min_confidence": 80, "max_odds": 1.65},
    "value": {"min_confidence": 60, "max_confidence": 79, "min_odds": 1.60, "max_odds": 1.90, "min_edge": 10},
    "surprise": {"min_odds": 2.50, "max_confidence": 65},
}


class InvalidSystemError(ValueError):
    """Unknown system type, or a selection count the system cannot take."""


def parse_system(system: str) -> Optional[Tuple[int, int]]:
    """'3/4' -> (3, 4); None for single/full."""
    if system not in SYSTEM_TYPES:
        raise InvalidSystemError(f"Unknown system type {system!r}; expected one of {SYSTEM_TYPES}")
    if system in ("single", "full"):
        return None
    k, n = system.split("/")
    return int(k), int(n)


def _product(values) -> float:
    result = 1.0
    for v in values:
        result *= v
    return result


class CouponCombiner:
    """Combination and payout arithmetic for coupons."""

    def combinations(self, n_selections: int, system: str) -> List[Tuple[int, ...]]:
        """
        Index tuples of every combination the system places.

        A k/n system is a fixed-size coupon: it takes exactly n
        selections. Fewer or more raise InvalidSystemError rather than
        being trimmed or padded.
        """
        parsed = parse_system(system)
        if n_selections < 1:
            raise InvalidSystemError("A coupon needs at least one selection")

        if system == "single":
            return [(i,) for i in range(n_selections)]
        if system == "full":
            return [tuple(range(n_selections))]

        k, n = parsed
        if n_selections != n:
            raise InvalidSystemError(
                f"System {system} needs exactly {n} selections, got {n_selections}"
            )
        return list(iter_combinations(range(n_selections), k))

    def calculate(
        self,
        selections: Sequence[Union[CouponSelection, dict]],
        system: str,
        stake: float,
        outcomes: Optional[Sequence[Union[BetOutcome, str]]] = None,
    ) -> CouponSystemResult:
        """
        Price a coupon.

        Args:
            selections: Coupon legs (odds > 1 each)
            system: One of SYSTEM_TYPES
            stake: Stake per combination
            outcomes: Optional per-selection results (won/lost/void); when
                given, potential_win only counts combinations that win and
                void legs count at odds 1.0

        Raises:
            InvalidSystemError: unknown system or wrong selection count
        """
        legs = [s if isinstance(s, CouponSelection) else CouponSelection(**s) for s in selections]
        if stake <= 0:
            raise InvalidSystemError(f"Stake per combination must be positive, got {stake}")

        combos = self.combinations(len(legs), system)
        payouts = [_product(legs[i].odds for i in combo) * stake for combo in combos]

        winning = None
        if outcomes is not None:
            if len(outcomes) != len(legs):
                raise InvalidSystemError(
                    f"Got {len(outcomes)} outcomes for {len(legs)} selections"
                )
            results = [BetOutcome(o) for o in outcomes]
            for r in results:
                if r not in (BetOutcome.WON, BetOutcome.LOST, BetOutcome.VOID):
                    raise InvalidSystemError(f"Unsupported coupon leg outcome: {r.value}")
            settled = []
            for combo in combos:
                if any(results[i] == BetOutcome.LOST for i in combo):
                    continue
                settled.append(_product(
                    1.0 if results[i] == BetOutcome.VOID else legs[i].odds for i in combo
                ) * stake)
            winning = len(settled)
            potential = sum(settled)
        else:
            potential = sum(payouts)

        result = CouponSystemResult(
            system=system,
            total_combinations=len(combos),
            total_stake=stake * len(combos),
            potential_win=potential,
            min_win=min(payouts),
            max_win=max(payouts),
            combinations=combos,
            winning_combinations=winning,
        )
        logger.debug(
            f"Coupon {system}: {result.total_combinations} combos, "
            f"stake {result.total_stake:.2f}, potential {result.potential_win:.2f}"
        )
        return result

    def available_systems(self, n_selections: int) -> List[str]:
        """Systems that accept this many selections."""
        systems = []
        for system in SYSTEM_TYPES:
            parsed = parse_system(system)
            if parsed is None:
                if n_selections >= 1:
                    systems.append(system)
            elif parsed[1] == n_selections:
                systems.append(system)
        return systems


def categorize_selection(
    odds: float,
    confidence: float,
    edge: Optional[float] = None,
) -> Tuple[RiskCategory, str]:
    """
    Sort a pick into banko / value / surprise.

    Returns:
        (category, reason)
    """
    t = CATEGORY_THRESHOLDS
    if confidence >= t["banko"]["min_confidence"] and odds <= t["banko"]["max_odds"]:
        return RiskCategory.BANKO, f"{confidence:.0f}% confidence at {odds:.2f} - safe pick"

    if odds >= t["surprise"]["min_odds"] and confidence <= t["surprise"]["max_confidence"]:
        return RiskCategory.SURPRISE, f"{odds:.2f} long price - upset potential"

    v = t["value"]
    if v["min_confidence"] <= confidence <= v["max_confidence"] and v["min_odds"] <= odds <= v["max_odds"]:
        return RiskCategory.VALUE, f"Price {odds:.2f} generous for the probability"

    if edge is not None and edge >= v["min_edge"]:
        return RiskCategory.VALUE, f"High value - {edge:.0f}% edge"

    if confidence >= 75:
        return RiskCategory.BANKO, f"{confidence:.0f}% confidence - strong prediction"
    if confidence >= 55:
        return RiskCategory.VALUE, f"{confidence:.0f}% confidence at {odds:.2f}"
    return RiskCategory.SURPRISE, "Balanced risk/reward pick"


def categorize_selections(
    selections: Sequence[CouponSelection],
) -> Dict[RiskCategory, List[CouponSelection]]:
    groups: Dict[RiskCategory, List[CouponSelection]] = {c: [] for c in RiskCategory}
    for s in selections:
        category, _ = categorize_selection(s.odds, s.confidence or 0.0, s.edge)
        groups[category].append(s)
    return groups
