"""
Static catalog of scoring factors.

Each entry says where a factor applies (sport and bet type), how many points
it can contribute after weighting, and its default share of the weight
budget. The catalog is built once at import and never mutated.

Usage:
    from src.factors.registry import get_factors_by_context

    for meta in get_factors_by_context("NBA", "SPREAD/MONEYLINE"):
        print(meta.key, meta.max_points)
"""
from __future__ import annotations

import logging
from typing import Dict, Tuple

from src.factors.models import BetType, FactorMeta, Sport
from src.utils.logging import get_logger, log_event

logger = get_logger(__name__)

SPREAD_ML: Tuple[BetType, ...] = ("SPREAD", "MONEYLINE")

# Composite bet types and the tags they match
COMPOSITE_BET_TYPES: Dict[str, Tuple[str, ...]] = {
    "SPREAD/MONEYLINE": SPREAD_ML,
}


class UnknownFactorError(KeyError):
    """Raised for a factor key that is not in the registry."""
    pass


FACTOR_REGISTRY: Tuple[FactorMeta, ...] = (
    # =========================================================================
    # TOTALS
    # =========================================================================
    FactorMeta(
        key="pace_index",
        name="Pace Index",
        short_name="Pace",
        description="Blended season/last-10 expected possessions vs league pace",
        sports=("NBA",),
        bet_types=("TOTAL",),
        scope="matchup",
        max_points=2.0,
        default_weight=0.20,
    ),
    FactorMeta(
        key="off_form",
        name="Offensive Form",
        short_name="ORtg Form",
        description="Opponent-adjusted recent offensive rating of both teams vs league",
        sports=("NBA",),
        bet_types=("TOTAL",),
        scope="matchup",
        max_points=2.0,
        default_weight=0.20,
    ),
    FactorMeta(
        key="def_erosion",
        name="Defensive Erosion",
        short_name="DRtg/Avail",
        description="Defensive rating decline blended with injury-driven defensive impact",
        sports=("NBA",),
        bet_types=("TOTAL",),
        scope="matchup",
        max_points=2.0,
        default_weight=0.30,
        data_source="injuries",
    ),
    FactorMeta(
        key="three_env",
        name="3PT Environment",
        short_name="3P Env",
        description="Three-point attempt rate and hot-shooting variance vs league",
        sports=("NBA",),
        bet_types=("TOTAL",),
        scope="matchup",
        max_points=1.0,
        default_weight=0.20,
    ),
    FactorMeta(
        key="whistle_env",
        name="FT/Whistle Environment",
        short_name="FT Env",
        description="Free-throw rate environment vs league",
        sports=("NBA",),
        bet_types=("TOTAL",),
        scope="matchup",
        max_points=1.0,
        default_weight=0.20,
    ),
    FactorMeta(
        key="injury_availability_total",
        name="Key Injuries & Availability (Totals)",
        short_name="Injuries",
        description="Offensive vs defensive value of unavailable players",
        sports=("NBA",),
        bet_types=("TOTAL",),
        scope="player",
        max_points=0.8,
        default_weight=0.12,
        data_source="injuries",
        needs_stats=False,
    ),
    # =========================================================================
    # SPREAD / MONEYLINE
    # =========================================================================
    FactorMeta(
        key="net_rating",
        name="Net Rating Differential",
        short_name="Net Rtg",
        description="Pace-scaled net rating margin, compared to the spread when given",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=1.0,
        default_weight=0.30,
    ),
    FactorMeta(
        key="turnover_diff",
        name="Turnover Differential",
        short_name="TOV",
        description="Recent turnovers per game, converted to points",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=1.0,
        default_weight=0.25,
    ),
    FactorMeta(
        key="shooting_momentum",
        name="Shooting Efficiency + Momentum",
        short_name="Shooting",
        description="eFG/FTr shooting quality plus last-3 vs last-10 offensive trend",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=1.0,
        default_weight=0.20,
    ),
    FactorMeta(
        key="home_away_splits",
        name="Home/Away Splits",
        short_name="Splits",
        description="Away team's road net rating vs home team's home net rating",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=1.0,
        default_weight=0.15,
    ),
    FactorMeta(
        key="four_factors",
        name="Four Factors Differential",
        short_name="4 Factors",
        description="Dean Oliver's four factors rating difference",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=1.0,
        default_weight=0.10,
    ),
    FactorMeta(
        key="injury_availability",
        name="Key Injuries & Availability",
        short_name="Injuries",
        description="Status-weighted scoring and minutes lost to injury, away vs home",
        sports=("NBA", "NFL", "MLB"),
        bet_types=SPREAD_ML,
        scope="player",
        max_points=0.8,
        default_weight=0.10,
        data_source="injuries",
        needs_stats=False,
    ),
    FactorMeta(
        key="rebounding_diff",
        name="Rebounding Differential",
        short_name="Boards",
        description="Offensive plus defensive rebound percentage gap",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=0.5,
        default_weight=0.10,
    ),
    FactorMeta(
        key="pace_mismatch",
        name="Pace Mismatch",
        short_name="Pace Gap",
        description="Tempo gap between the teams; the slower side controls",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=0.5,
        default_weight=0.10,
    ),
    FactorMeta(
        key="momentum_index",
        name="Momentum Index",
        short_name="Momentum",
        description="Current streak and last-10 record",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="team",
        max_points=0.5,
        default_weight=0.10,
    ),
    FactorMeta(
        key="defensive_pressure",
        name="Defensive Pressure",
        short_name="Disruption",
        description="Steals and blocks per game",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=0.5,
        default_weight=0.10,
    ),
    FactorMeta(
        key="assist_efficiency",
        name="Assist Efficiency",
        short_name="AST/TOV",
        description="Assist-to-turnover ratio gap",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=0.5,
        default_weight=0.10,
    ),
    FactorMeta(
        key="clutch_shooting",
        name="Clutch Shooting",
        short_name="Clutch",
        description="Free-throw and field-goal accuracy gap",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=0.5,
        default_weight=0.10,
    ),
    FactorMeta(
        key="scoring_margin",
        name="Scoring Margin",
        short_name="Margin",
        description="Points scored minus allowed per game, away vs home",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=0.5,
        default_weight=0.10,
    ),
    FactorMeta(
        key="perimeter_defense",
        name="Perimeter Defense",
        short_name="Perimeter D",
        description="Opponent three-point and field-goal percentage allowed",
        sports=("NBA",),
        bet_types=SPREAD_ML,
        scope="matchup",
        max_points=0.5,
        default_weight=0.10,
    ),
    # =========================================================================
    # SHARED
    # =========================================================================
    FactorMeta(
        key="rest_advantage",
        name="Rest Advantage",
        short_name="Rest",
        description="Days of rest and back-to-back fatigue",
        sports=("NBA", "NFL"),
        bet_types=("SPREAD", "MONEYLINE", "TOTAL"),
        scope="matchup",
        max_points=0.4,
        default_weight=0.08,
    ),
)

_BY_KEY: Dict[str, FactorMeta] = {meta.key: meta for meta in FACTOR_REGISTRY}


def _matches_sport(meta: FactorMeta, sport: str) -> bool:
    return meta.sports == "*" or sport in meta.sports


def _matches_bet_type(meta: FactorMeta, bet_type: str) -> bool:
    if meta.bet_types == "*":
        return True
    wanted = COMPOSITE_BET_TYPES.get(bet_type, (bet_type,))
    return any(tag in meta.bet_types for tag in wanted)


def get_factors_by_context(sport: Sport, bet_type: BetType) -> Tuple[FactorMeta, ...]:
    """
    All factors applicable to (sport, bet_type), in registry order.

    A composite bet type such as "SPREAD/MONEYLINE" matches factors tagged
    with any of its parts. Returns an empty tuple when nothing applies.
    """
    matched = []
    for meta in FACTOR_REGISTRY:
        sport_ok = _matches_sport(meta, sport)
        bet_ok = _matches_bet_type(meta, bet_type)
        if logger.isEnabledFor(logging.DEBUG):
            log_event(
                logger,
                logging.DEBUG,
                "factor match decision",
                factor=meta.key,
                sport=sport,
                bet_type=bet_type,
                sport_match=sport_ok,
                bet_type_match=bet_ok,
            )
        if sport_ok and bet_ok:
            matched.append(meta)
    return tuple(matched)


def get_factor(key: str) -> FactorMeta:
    try:
        return _BY_KEY[key]
    except KeyError:
        raise UnknownFactorError(key) from None


def default_weights(sport: Sport, bet_type: BetType) -> Dict[str, float]:
    """Default weight percentages for every factor applicable to the context."""
    return {
        meta.key: round(meta.default_weight * 100.0, 6)
        for meta in get_factors_by_context(sport, bet_type)
    }
