"""ETL module: fetch fixtures and odds, assemble rows, reconcile the cache."""

from fixturecast.etl.api_football import APIFootballProvider, MissingAPIKeyError, UpstreamError
from fixturecast.etl.assembler import assemble
from fixturecast.etl.pipeline import BASE_DATA_CACHE_KEY, ReconcileResult, ScoreReconciler, is_cooling_down

__all__ = [
    "APIFootballProvider",
    "MissingAPIKeyError",
    "UpstreamError",
    "assemble",
    "BASE_DATA_CACHE_KEY",
    "ReconcileResult",
    "ScoreReconciler",
    "is_cooling_down",
]
