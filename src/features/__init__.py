"""Stats bundle assembly for the factor engine."""

from src.features.bundle import build_bundle, fetch_stats_bundle

__all__ = ["build_bundle", "fetch_stats_bundle"]
