"""
Factor registry and per-factor computation functions.

FACTOR_FUNCTIONS maps each registry key to its compute function. Factors whose
registry entry needs injuries take ``(bundle, ctx, injury_impact)``; all others
take ``(bundle, ctx)``.
"""

from typing import Callable, Dict

from src.factors import shared, spread, totals
from src.factors.registry import FACTOR_REGISTRY, default_weights, get_factor, get_factors_by_context

FACTOR_FUNCTIONS: Dict[str, Callable] = {
    # Totals
    "pace_index": totals.compute_pace_index,
    "off_form": totals.compute_off_form,
    "def_erosion": totals.compute_def_erosion,
    "three_env": totals.compute_three_env,
    "whistle_env": totals.compute_whistle_env,
    "injury_availability_total": totals.compute_injury_availability_total,
    # Spread / moneyline
    "net_rating": spread.compute_net_rating,
    "turnover_diff": spread.compute_turnover_diff,
    "shooting_momentum": spread.compute_shooting_momentum,
    "home_away_splits": spread.compute_home_away_splits,
    "four_factors": spread.compute_four_factors,
    "injury_availability": spread.compute_injury_availability,
    "rebounding_diff": spread.compute_rebounding_diff,
    "pace_mismatch": spread.compute_pace_mismatch,
    "momentum_index": spread.compute_momentum_index,
    "defensive_pressure": spread.compute_defensive_pressure,
    "assist_efficiency": spread.compute_assist_efficiency,
    "clutch_shooting": spread.compute_clutch_shooting,
    "scoring_margin": spread.compute_scoring_margin,
    "perimeter_defense": spread.compute_perimeter_defense,
    # Shared
    "rest_advantage": shared.compute_rest_advantage,
}

__all__ = [
    "FACTOR_FUNCTIONS",
    "FACTOR_REGISTRY",
    "default_weights",
    "get_factor",
    "get_factors_by_context",
]
