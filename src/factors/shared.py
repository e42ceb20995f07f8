"""
Factors that apply to both totals and spread/moneyline markets.

Rest advantage scores each team's rest (back-to-back -2, one day 0, two days
+0.5, three or more +1). Totals use the sum of both teams (rested teams score
more); spread/moneyline use away minus home.
"""
from __future__ import annotations

from src.factors.base import build_computation, neutral_computation
from src.factors.models import FactorComputation, RunCtx, StatsBundle
from src.factors.scaling import saturate

REST_SCALE = 2.0


def rest_points(days: float) -> float:
    if days <= 0:
        return -2.0
    if days < 2:
        return 0.0
    if days < 3:
        return 0.5
    return 1.0


def fatigue_level(away_days: float, home_days: float) -> str:
    away_b2b, home_b2b = away_days <= 0, home_days <= 0
    if away_b2b and home_b2b:
        return "SEVERE"
    if away_b2b or home_b2b:
        return "MODERATE"
    if away_days <= 1 or home_days <= 1:
        return "MILD"
    return "NONE"


def _rest_note(away_days: float, home_days: float) -> str:
    a, h = int(away_days), int(home_days)
    if away_days <= 0 and home_days <= 0:
        return "Both teams on back-to-back"
    if away_days <= 0:
        return f"Away team B2B ({a}d), Home rested ({h}d)"
    if home_days <= 0:
        return f"Away rested ({a}d), Home team B2B ({h}d)"
    if away_days >= 2 and home_days >= 2:
        return f"Both teams well rested ({a}d/{h}d)"
    return f"Normal rest ({a}d/{h}d)"


def compute_rest_advantage(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    key = "rest_advantage"
    r = bundle.reader()
    v = r.many("away_rest_days", "home_rest_days")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_days, home_days = v["away_rest_days"], v["home_rest_days"]
    away_pts, home_pts = rest_points(away_days), rest_points(home_days)
    x = away_pts + home_pts if ctx.is_totals else away_pts - home_pts
    signal = saturate(x, REST_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={
            "away_rest_points": away_pts,
            "home_rest_points": home_pts,
            "rest_impact": x,
            "rest_diff": away_days - home_days,
            "away_back_to_back": away_days <= 0,
            "home_back_to_back": home_days <= 0,
            "fatigue_level": fatigue_level(away_days, home_days),
        },
        notes=_rest_note(away_days, home_days),
    )
