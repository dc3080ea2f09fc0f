"""
Configuration management for TAHMIN.

Loads settings from environment variables with sensible defaults,
allows JSON overrides, and validates everything at load time.
Configures logging with rotation to prevent unbounded log growth.
"""

import os
import json
import logging
import logging.handlers
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field, fields, is_dataclass, asdict
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
LOG_DIR = PROJECT_ROOT / "logs"

WEIGHT_TOLERANCE = 1e-6


class ConfigError(ValueError):
    """Raised when configuration values are malformed."""


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB per file
    backup_count: int = 3,
) -> None:
    """Configure logging with console output AND rotating file handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files (defaults to PROJECT_ROOT/logs)
        max_bytes: Max size per log file before rotation (default 5MB)
        backup_count: Number of rotated backup files to keep
    """
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers to avoid duplicates on reload
    root.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / "tahmin.log",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"Environment variable {name}={raw!r} is not a number")


@dataclass
class EnsembleWeights:
    """Blend weights for the heuristic factor channels. Must sum to 1."""
    form: float = 0.30
    h2h: float = 0.20
    stats: float = 0.25
    standings: float = 0.15
    motivation: float = 0.10

    def __post_init__(self):
        values = self.as_dict()
        negative = [k for k, v in values.items() if v < 0]
        if negative:
            raise ConfigError(f"Ensemble weights must be non-negative: {negative}")
        total = sum(values.values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigError(f"Ensemble weights must sum to 1, got {total:.6f}")

    def as_dict(self) -> Dict[str, float]:
        return {
            "form": self.form,
            "h2h": self.h2h,
            "stats": self.stats,
            "standings": self.standings,
            "motivation": self.motivation,
        }


@dataclass
class ValueThresholds:
    """Edge thresholds (percent) for value-bet tiers."""
    min_value_edge: float = field(default_factory=lambda: _env_float("MIN_VALUE_EDGE", "5"))
    high_edge: float = 15.0
    strong_edge: float = 20.0
    # Edges above this are treated as a data-quality problem
    max_plausible_edge: float = 60.0

    def __post_init__(self):
        if not (0 <= self.min_value_edge <= self.high_edge <= self.strong_edge):
            raise ConfigError(
                "Edge thresholds must satisfy 0 <= min_value_edge <= high_edge <= strong_edge"
            )
        if self.max_plausible_edge <= self.strong_edge:
            raise ConfigError("max_plausible_edge must exceed strong_edge")


@dataclass
class RiskLimits:
    """Bankroll risk limits used by Kelly sizing and the ledger."""
    kelly_fraction: float = field(default_factory=lambda: _env_float("KELLY_FRACTION", "0.25"))
    max_bet_pct: float = field(default_factory=lambda: _env_float("MAX_BET_PCT", "0.05"))
    max_single_bet: float = field(default_factory=lambda: _env_float("MAX_SINGLE_BET", "500"))
    daily_loss_limit: float = field(default_factory=lambda: _env_float("DAILY_LOSS_LIMIT", "200"))
    weekly_loss_limit: float = field(default_factory=lambda: _env_float("WEEKLY_LOSS_LIMIT", "500"))
    min_stake_amount: float = 1.0

    def __post_init__(self):
        if not (0 < self.kelly_fraction <= 1):
            raise ConfigError(f"kelly_fraction must be in (0, 1], got {self.kelly_fraction}")
        if not (0 < self.max_bet_pct <= 1):
            raise ConfigError(f"max_bet_pct must be in (0, 1], got {self.max_bet_pct}")
        for name in ("max_single_bet", "daily_loss_limit", "weekly_loss_limit"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.min_stake_amount < 0:
            raise ConfigError("min_stake_amount must be non-negative")


# ---------------------------------------------------------------------------
# Live scanner thresholds
# ---------------------------------------------------------------------------

@dataclass
class ShotPressureThresholds:
    min_minute: int = 15
    min_shots_on_target: int = 3
    shot_ratio_threshold: float = 0.65   # share of shots on target
    min_shot_quality: float = 0.15       # on target / total shots


@dataclass
class PossessionThresholds:
    min_minute: int = 10
    dominance_threshold: float = 55.0    # possession percent
    max_confidence: float = 75.0


@dataclass
class AggressivenessThresholds:
    min_minute: int = 20
    max_minute: int = 75
    foul_rate: float = 0.35              # combined fouls per minute
    card_threshold: int = 1
    early_card_minute: int = 30


@dataclass
class CornerPressureThresholds:
    min_minute: int = 25
    max_minute: int = 70
    min_corners: int = 4
    dominance_threshold: float = 0.65


@dataclass
class MomentumThresholds:
    min_minute: int = 15
    stat_swing_threshold: float = 0.10
    window_minutes: int = 10


@dataclass
class GoalExpectancyThresholds:
    min_minute: int = 25
    high_expectancy: float = 2.0         # projected full-time xG
    low_expectancy: float = 0.5
    xg_gap: float = 1.0                  # xG minus goals scored
    dominance_multiplier: float = 1.15


@dataclass
class LiveThresholds:
    """Detector thresholds plus urgency and deduplication settings."""
    shot_pressure: ShotPressureThresholds = field(default_factory=ShotPressureThresholds)
    possession: PossessionThresholds = field(default_factory=PossessionThresholds)
    aggressiveness: AggressivenessThresholds = field(default_factory=AggressivenessThresholds)
    corner_pressure: CornerPressureThresholds = field(default_factory=CornerPressureThresholds)
    momentum: MomentumThresholds = field(default_factory=MomentumThresholds)
    goal_expectancy: GoalExpectancyThresholds = field(default_factory=GoalExpectancyThresholds)

    min_confidence: float = 60.0
    critical_confidence: float = 85.0
    high_confidence: float = 70.0
    late_game_minute: int = 80
    merge_bonus: float = 5.0
    max_confidence: float = 95.0
    cooldown_minutes: float = field(
        default_factory=lambda: _env_float("LIVE_COOLDOWN_MINUTES", "15")
    )
    poll_interval_seconds: float = 60.0
    opportunity_ttl_minutes: float = 10.0

    def __post_init__(self):
        if self.cooldown_minutes < 0:
            raise ConfigError("cooldown_minutes must be non-negative")
        if self.poll_interval_seconds <= 0:
            raise ConfigError("poll_interval_seconds must be positive")
        if self.high_confidence > self.critical_confidence:
            raise ConfigError("high_confidence must not exceed critical_confidence")


@dataclass
class BatchSettings:
    """Backpressure policy for scoring many fixtures."""
    batch_size: int = 5
    max_workers: int = 5
    batch_delay_seconds: float = 1.0

    def __post_init__(self):
        if self.batch_size < 1 or self.max_workers < 1:
            raise ConfigError("batch_size and max_workers must be >= 1")
        if self.batch_delay_seconds < 0:
            raise ConfigError("batch_delay_seconds must be non-negative")


@dataclass
class Config:
    """Application configuration."""

    # Ensemble
    weights: EnsembleWeights = field(default_factory=EnsembleWeights)
    poisson_weight: float = field(default_factory=lambda: _env_float("POISSON_WEIGHT", "0.5"))
    min_confidence: float = field(default_factory=lambda: _env_float("MIN_CONFIDENCE", "55"))
    min_h2h_matches: int = 3

    # Poisson model
    league_avg_home_goals: float = 1.5
    league_avg_away_goals: float = 1.2
    max_goals: int = 8
    top_scores: int = 5

    # Strategy
    value: ValueThresholds = field(default_factory=ValueThresholds)
    risk: RiskLimits = field(default_factory=RiskLimits)
    bankroll: float = field(default_factory=lambda: _env_float("BANKROLL", "1000"))
    ledger_path: Optional[Path] = field(default_factory=lambda: (
        Path(os.environ["LEDGER_PATH"]) if os.getenv("LEDGER_PATH") else None
    ))

    # Live + batch
    live: LiveThresholds = field(default_factory=LiveThresholds)
    batch: BatchSettings = field(default_factory=BatchSettings)

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def __post_init__(self):
        if not (0 <= self.poisson_weight <= 1):
            raise ConfigError(f"poisson_weight must be in [0, 1], got {self.poisson_weight}")
        if not (0 <= self.min_confidence <= 100):
            raise ConfigError(f"min_confidence must be in [0, 100], got {self.min_confidence}")
        if self.league_avg_home_goals <= 0 or self.league_avg_away_goals <= 0:
            raise ConfigError("League average goals must be positive")
        if self.max_goals < 1:
            raise ConfigError("max_goals must be >= 1")
        if self.ledger_path is not None:
            self.ledger_path = Path(self.ledger_path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a config from (possibly partial, nested) overrides."""
        return _build_dataclass(cls, data or {}, path="config")

    @classmethod
    def from_file(cls, path: str) -> "Config":
        """Load overrides from a JSON file."""
        try:
            data = json.loads(Path(path).read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["ledger_path"] = str(self.ledger_path) if self.ledger_path else None
        return data


def _build_dataclass(cls, data: Dict[str, Any], path: str):
    """Instantiate a dataclass, recursing into nested dataclass fields."""
    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ConfigError(f"Unknown {path} keys: {sorted(unknown)}")

    kwargs = {}
    for name, value in data.items():
        f = known[name]
        default = f.default_factory() if callable(f.default_factory) else f.default
        if is_dataclass(default):
            if not isinstance(value, dict):
                raise ConfigError(f"{path}.{name} must be an object")
            kwargs[name] = _build_dataclass(type(default), value, f"{path}.{name}")
        else:
            kwargs[name] = value

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid {path}: {e}")


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    load_dotenv(override=True)
    _config = Config()
    return _config
