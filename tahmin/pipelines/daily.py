"""
Daily Batch Pipeline
====================

Scores a day's fixtures with bounded parallelism:
1. Split fixtures into batches of `batch_size`
2. Score each batch on a thread pool of `max_workers`
3. Sleep `batch_delay_seconds` between batches (upstream rate limits)
4. Collect per-fixture results and per-fixture errors

A failure on one fixture is logged and reported in `errors`; it never
aborts the batch.

Usage:
    pipeline = DailyPipeline()
    batch = pipeline.run(fixtures)
    batch.to_dataframe()
"""

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from tahmin.config import BatchSettings, Config, get_config
from tahmin.data.schemas import BetSuggestion, PredictionResult
from tahmin.models.ensemble import EnsembleScorer

logger = logging.getLogger(__name__)

SUGGESTION_COLUMNS = [
    "fixture_id", "match", "market", "pick", "probability", "confidence",
    "edge", "odds", "stake", "stake_amount", "recommendation", "best_bet",
]


@dataclass
class FixtureError:
    """A fixture that could not be scored."""
    fixture_id: Optional[int]
    error: str
    error_type: str

    def to_dict(self) -> dict:
        return {
            "fixture_id": self.fixture_id,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class BatchResult:
    """Outcome of a batch run: successes and failures, never an exception."""
    results: List[PredictionResult] = field(default_factory=list)
    errors: List[FixtureError] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def suggestions(self) -> List[BetSuggestion]:
        return [s for r in self.results for s in r.suggestions]

    @property
    def best_bets(self) -> List[BetSuggestion]:
        bets = [r.best_bet for r in self.results if r.best_bet is not None]
        return sorted(bets, key=lambda b: -(b.edge or 0))

    def to_dataframe(self) -> pd.DataFrame:
        """One row per suggestion, sorted by edge descending."""
        rows = []
        for r in self.results:
            best = r.best_bet
            for s in r.suggestions:
                row = s.to_dict()
                row["match"] = f"{r.home_team} vs {r.away_team}"
                row["best_bet"] = best is not None and s == best
                row.pop("reasoning", None)
                rows.append(row)

        df = pd.DataFrame(rows, columns=SUGGESTION_COLUMNS)
        if not df.empty:
            df = df.sort_values("edge", ascending=False).reset_index(drop=True)
        return df

    def summary(self) -> Dict[str, Any]:
        return {
            "fixtures_scored": len(self.results),
            "fixtures_failed": len(self.errors),
            "recommendations": sum(1 for r in self.results if r.has_recommendation),
            "value_bets": len(self.suggestions),
            "total_stake": round(sum(s.stake_amount for s in self.suggestions), 2),
        }


class DailyPipeline:
    """
    Bounded-concurrency batch scorer around EnsembleScorer.

    The sleep function is injectable so tests can run without delays.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        scorer: Optional[EnsembleScorer] = None,
        settings: Optional[BatchSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or get_config()
        self.scorer = scorer or EnsembleScorer(self.config)
        self.settings = settings or self.config.batch
        self.sleep = sleep

    def run(self, fixtures: Sequence[Any], bankroll: Optional[float] = None) -> BatchResult:
        """
        Score every fixture.

        Args:
            fixtures: FixtureInput objects or raw dicts
            bankroll: Bankroll used for Kelly stakes (defaults to config)

        Returns:
            BatchResult with results in input order
        """
        logger.info("=" * 50)
        logger.info(f"Starting daily batch: {len(fixtures)} fixtures")
        logger.info("=" * 50)

        batch = BatchResult()
        size = self.settings.batch_size
        ordered: Dict[int, PredictionResult] = {}

        chunks = [fixtures[i:i + size] for i in range(0, len(fixtures), size)]
        for n, chunk in enumerate(chunks):
            offset = n * size
            logger.info(f"Batch {n + 1}/{len(chunks)}: {len(chunk)} fixtures")

            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                futures = {
                    pool.submit(self.scorer.predict, fixture, bankroll): offset + i
                    for i, fixture in enumerate(chunk)
                }
                for future in as_completed(futures):
                    index = futures[future]
                    fixture = fixtures[index]
                    try:
                        ordered[index] = future.result()
                    except Exception as e:
                        fixture_id = _fixture_id(fixture)
                        logger.error(f"Fixture {fixture_id} failed: {type(e).__name__}: {e}")
                        batch.errors.append(FixtureError(
                            fixture_id=fixture_id,
                            error=str(e),
                            error_type=type(e).__name__,
                        ))

            if n < len(chunks) - 1 and self.settings.batch_delay_seconds > 0:
                self.sleep(self.settings.batch_delay_seconds)

        batch.results = [ordered[i] for i in sorted(ordered)]
        batch.finished_at = datetime.now()

        logger.info("=" * 50)
        logger.info(
            f"Batch complete: {len(batch.results)} scored, {len(batch.errors)} failed, "
            f"{len(batch.suggestions)} value bets"
        )
        logger.info("=" * 50)
        return batch

    def save_output(self, batch: BatchResult, output_dir: Path) -> Path:
        """Write the batch as JSON plus a CSV of suggestions; returns the JSON path."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = output_dir / f"predictions_{timestamp}.json"

        output = {
            "timestamp": datetime.now().isoformat(),
            "summary": batch.summary(),
            "predictions": [r.model_dump(mode="json") for r in batch.results],
            "errors": [e.to_dict() for e in batch.errors],
        }
        with open(filepath, "w") as f:
            json.dump(output, f, indent=2)

        batch.to_dataframe().to_csv(output_dir / f"suggestions_{timestamp}.csv", index=False)
        logger.info(f"Saved batch output to {filepath}")
        return filepath


def _fixture_id(fixture: Any) -> Optional[int]:
    if isinstance(fixture, dict):
        return fixture.get("fixture_id")
    return getattr(fixture, "fixture_id", None)
