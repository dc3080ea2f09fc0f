"""
Coupon (accumulator / system bet) schemas.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class RiskCategory(str, Enum):
    BANKO = "banko"          # high confidence, short price
    VALUE = "value"
    SURPRISE = "surprise"    # long price, low confidence


class CouponSelection(BaseModel):
    """One leg of a coupon."""

    model_config = ConfigDict(frozen=True)

    fixture_id: int
    odds: float = Field(..., gt=1)
    pick: str = ""
    confidence: Optional[float] = Field(None, ge=0, le=100)
    edge: Optional[float] = None


class CouponSystemResult(BaseModel):
    """Combinations, stake and payout of a system bet."""

    model_config = ConfigDict(frozen=True)

    system: str
    total_combinations: int
    total_stake: float
    potential_win: float
    min_win: float = 0.0
    max_win: float = 0.0
    # Each combination as indices into the selection list
    combinations: List[Tuple[int, ...]] = Field(default_factory=list)
    winning_combinations: Optional[int] = None

    @property
    def profit(self) -> float:
        return self.potential_win - self.total_stake
