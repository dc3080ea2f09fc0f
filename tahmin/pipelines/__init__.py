"""Pipelines for TAHMIN batch scoring."""

from .daily import DailyPipeline, BatchResult, FixtureError

__all__ = ["DailyPipeline", "BatchResult", "FixtureError"]
