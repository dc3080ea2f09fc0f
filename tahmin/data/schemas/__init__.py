"""
Data schemas package.

Re-exports all schema classes for convenient importing:
    from tahmin.data.schemas import FixtureInput, PredictionFactors, KellyResult
"""

from .inputs import (
    FormMatch,
    H2HMeeting,
    TeamSeasonStats,
    StandingRow,
    OddsBook,
    FixtureInput,
)

from .factors import (
    clamp_score,
    ImportanceLevel,
    RecentTrend,
    FormFactors,
    H2HFactors,
    StatsFactors,
    StandingsFactors,
    MotivationFactors,
    PredictionFactors,
)

from .markets import (
    BetOutcome,
    Scoreline,
    MatchResult,
    OverUnder,
    BTTS,
    DoubleChance,
    HalfTimeResult,
    GoalRange,
    AsianHandicap,
    Market,
    parse_market,
)

from .prediction import (
    StakeLevel,
    RiskLevel,
    ValueTier,
    Recommendation,
    MarketProbability,
    ScoreProbability,
    ValueBetResult,
    KellyResult,
    BetSuggestion,
    PredictionResult,
)

from .live import (
    Urgency,
    SignalType,
    FixtureStatus,
    TeamLiveStats,
    LiveSnapshot,
    DetectorSignal,
    LiveOpportunity,
)

from .coupon import (
    RiskCategory,
    CouponSelection,
    CouponSystemResult,
)


__all__ = [
    # Inputs
    "FormMatch",
    "H2HMeeting",
    "TeamSeasonStats",
    "StandingRow",
    "OddsBook",
    "FixtureInput",
    # Factors
    "clamp_score",
    "ImportanceLevel",
    "RecentTrend",
    "FormFactors",
    "H2HFactors",
    "StatsFactors",
    "StandingsFactors",
    "MotivationFactors",
    "PredictionFactors",
    # Markets
    "BetOutcome",
    "Scoreline",
    "MatchResult",
    "OverUnder",
    "BTTS",
    "DoubleChance",
    "HalfTimeResult",
    "GoalRange",
    "AsianHandicap",
    "Market",
    "parse_market",
    # Prediction
    "StakeLevel",
    "RiskLevel",
    "ValueTier",
    "Recommendation",
    "MarketProbability",
    "ScoreProbability",
    "ValueBetResult",
    "KellyResult",
    "BetSuggestion",
    "PredictionResult",
    # Live
    "Urgency",
    "SignalType",
    "FixtureStatus",
    "TeamLiveStats",
    "LiveSnapshot",
    "DetectorSignal",
    "LiveOpportunity",
    # Coupon
    "RiskCategory",
    "CouponSelection",
    "CouponSystemResult",
]
