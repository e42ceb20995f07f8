"""
NBA spread/moneyline factors. Positive signal favours the away team,
negative favours the home team.

Percent-style inputs (eFG, FT%, FG%, 3P% allowed) arrive as fractions and are
converted to percentage points where a formula is expressed in them.
"""
from __future__ import annotations

from typing import Dict

from src.factors.base import build_computation, neutral_computation, require_positive
from src.factors.models import FactorComputation, InjuryImpact, RunCtx, StatsBundle
from src.factors.scaling import all_finite, cap, safe_ratio, saturate

NET_RATING_SCALE = 3.5
NET_RATING_CAP = 20.0
TURNOVER_SCALE = 5.0
TURNOVER_POINT_VALUE = 1.1
SHOOTING_SCALE = 6.0
SPLITS_SCALE = 6.0
FOUR_FACTORS_SCALE = 8.0
INJURY_SCALE = 5.0
REBOUNDING_SCALE = 10.0
PACE_MISMATCH_SCALE = 3.0
MOMENTUM_SCALE = 4.0
PRESSURE_SCALE = 4.0
ASSIST_SCALE = 0.5
MARGIN_SCALE = 8.0
MARGIN_CAP = 20.0
CLUTCH_SCALE = 6.0
CLUTCH_CAP = 15.0
PERIMETER_SCALE = 4.0
PERIMETER_CAP = 10.0

# Four factors weights (Dean Oliver)
EFG_WEIGHT = 0.50
TOV_WEIGHT = 0.30
OREB_WEIGHT = 0.15
FTR_WEIGHT = 0.05


def _pair(v: Dict[str, float], name: str):
    return v[f"away_{name}"], v[f"home_{name}"]


# =============================================================================
# CORE
# =============================================================================


def compute_net_rating(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """Pace-scaled net rating margin; compared to the away line when one is given."""
    key = "net_rating"
    r = bundle.reader()
    v = r.many("away_ortg_last10", "away_drtg_season", "home_ortg_last10", "home_drtg_season", "league_pace")
    require_positive(r, v, *v.keys())
    if not r.ok or (ctx.spread_line is not None and not all_finite(ctx.spread_line)):
        return neutral_computation(key, ctx, r, v)

    away_net = v["away_ortg_last10"] - v["away_drtg_season"]
    home_net = v["home_ortg_last10"] - v["home_drtg_season"]
    expected_margin = (away_net - home_net) * (v["league_pace"] / 100.0)
    spread_edge = None
    edge = expected_margin
    if ctx.spread_line is not None:
        # Away line: away covers when margin + line > 0
        spread_edge = expected_margin + ctx.spread_line
        edge = spread_edge
    capped, hit = cap(edge, NET_RATING_CAP)
    signal = saturate(capped, NET_RATING_SCALE)

    note = f"Net rating: away {away_net:+.1f}, home {home_net:+.1f}, expected margin {expected_margin:+.1f}"
    if spread_edge is not None:
        note += f", edge vs line {spread_edge:+.1f}"
    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values={**v, "spread_line": ctx.spread_line},
        parsed_values={
            "away_net_rtg": away_net,
            "home_net_rtg": home_net,
            "expected_margin": expected_margin,
            "spread_edge": spread_edge,
        },
        notes=note,
        caps_applied=hit,
        cap_reason=f"edge capped at +/-{NET_RATING_CAP:g}",
    )


def compute_turnover_diff(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """Fewer turnovers than the opponent is worth ~1.1 points each."""
    key = "turnover_diff"
    r = bundle.reader()
    v = r.many("away_tov_last10", "home_tov_last10")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_tov, home_tov = _pair(v, "tov_last10")
    tov_diff = home_tov - away_tov
    expected_impact = tov_diff * TURNOVER_POINT_VALUE
    signal = saturate(expected_impact, TURNOVER_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"tov_differential": tov_diff, "expected_point_impact": expected_impact},
        notes=f"TOV/game: away {away_tov:.1f}, home {home_tov:.1f}, impact {expected_impact:+.1f} pts",
    )


def _trend(momentum: float) -> str:
    if momentum > 0.02:
        return "HEATING_UP"
    if momentum < -0.02:
        return "COOLING_DOWN"
    return "STABLE"


def compute_shooting_momentum(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """60% eFG/FTr shooting quality, 40% last-3 vs last-10 offensive trend."""
    key = "shooting_momentum"
    r = bundle.reader()
    v = r.many(
        "away_efg",
        "away_ftr",
        "home_efg",
        "home_ftr",
        "away_ortg_last3",
        "away_ortg_last10",
        "home_ortg_last3",
        "home_ortg_last10",
    )
    require_positive(r, v, "away_ortg_last10", "home_ortg_last10")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_shoot = 0.7 * v["away_efg"] + 0.3 * v["away_ftr"]
    home_shoot = 0.7 * v["home_efg"] + 0.3 * v["home_ftr"]
    away_mom = (v["away_ortg_last3"] - v["away_ortg_last10"]) / v["away_ortg_last10"]
    home_mom = (v["home_ortg_last3"] - v["home_ortg_last10"]) / v["home_ortg_last10"]
    shooting_diff = (away_shoot - home_shoot) * 100.0
    momentum_diff = (away_mom - home_mom) * 50.0
    x = 0.6 * shooting_diff + 0.4 * momentum_diff
    signal = saturate(x, SHOOTING_SCALE)

    away_trend, home_trend = _trend(away_mom), _trend(home_mom)
    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={
            "away_shooting": away_shoot,
            "home_shooting": home_shoot,
            "away_momentum": away_mom,
            "home_momentum": home_mom,
            "away_trend": away_trend,
            "home_trend": home_trend,
            "expected_impact": x,
        },
        notes=f"Shooting {shooting_diff:+.1f}, momentum {momentum_diff:+.1f} (away {away_trend}, home {home_trend})",
    )


def _split_label(net: float) -> str:
    if net > 5:
        return "Strong"
    if net > 0:
        return "Good"
    if net > -5:
        return "Average"
    return "Weak"


def compute_home_away_splits(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """Away team's road net rating against the home team's home net rating."""
    key = "home_away_splits"
    r = bundle.reader()
    v = r.many("away_ortg_venue", "away_drtg_venue", "home_ortg_venue", "home_drtg_venue")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_road_net = v["away_ortg_venue"] - v["away_drtg_venue"]
    home_home_net = v["home_ortg_venue"] - v["home_drtg_venue"]
    x = away_road_net - home_home_net
    signal = saturate(x, SPLITS_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={
            "away_road_net": away_road_net,
            "home_home_net": home_home_net,
            "differential": x,
            "away_road_label": _split_label(away_road_net),
            "home_home_label": _split_label(home_home_net),
        },
        notes=(
            f"Away road {away_road_net:+.1f} ({_split_label(away_road_net)}) vs "
            f"home home {home_home_net:+.1f} ({_split_label(home_home_net)})"
        ),
    )


def compute_four_factors(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """Weighted eFG, TOV%, OREB%, FTr rating gap, scaled to points."""
    key = "four_factors"
    r = bundle.reader()
    v = r.many(
        "away_efg",
        "away_tov_pct",
        "away_oreb",
        "away_opp_dreb",
        "away_ftr",
        "home_efg",
        "home_tov_pct",
        "home_oreb",
        "home_opp_dreb",
        "home_ftr",
    )
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    def rating(side: str) -> float:
        oreb_pct = safe_ratio(v[f"{side}_oreb"], v[f"{side}_oreb"] + v[f"{side}_opp_dreb"])
        return (
            EFG_WEIGHT * v[f"{side}_efg"]
            - TOV_WEIGHT * v[f"{side}_tov_pct"]
            + OREB_WEIGHT * oreb_pct
            + FTR_WEIGHT * v[f"{side}_ftr"]
        )

    away_rating, home_rating = rating("away"), rating("home")
    margin = (away_rating - home_rating) * 120.0
    signal = saturate(margin, FOUR_FACTORS_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"away_rating": away_rating, "home_rating": home_rating, "expected_margin": margin},
        notes=f"Four factors: away {away_rating:.3f}, home {home_rating:.3f}, margin {margin:+.1f}",
    )


def compute_injury_availability(
    bundle: StatsBundle, ctx: RunCtx, injury_impact: InjuryImpact
) -> FactorComputation:
    """The side that loses more to injury is disadvantaged."""
    key = "injury_availability"
    away_raw, home_raw = injury_impact.away_raw, injury_impact.home_raw
    raw = {"away_raw": away_raw, "home_raw": home_raw, "source": injury_impact.source}
    if away_raw is None or home_raw is None:
        away_raw, home_raw = injury_impact.away, injury_impact.home
    if not all_finite(away_raw, home_raw):
        return neutral_computation(key, ctx, raw_values=raw, notes="Invalid input: injury impact")

    net = away_raw - home_raw
    signal = -saturate(net, INJURY_SCALE)
    findings = len(injury_impact.findings)

    return build_computation(
        key,
        ctx,
        signal,
        raw_values=raw,
        parsed_values={"away_impact": away_raw, "home_impact": home_raw, "net_differential": net, "findings": findings},
        notes=injury_impact.summary or f"{findings} injuries, net differential {net:+.2f}",
    )


# =============================================================================
# SECONDARY
# =============================================================================


def compute_rebounding_diff(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """Combined OREB% + DREB% gap; the better rebounding side is favoured."""
    key = "rebounding_diff"
    r = bundle.reader()
    v = r.many(
        "away_oreb",
        "away_dreb",
        "away_opp_oreb",
        "away_opp_dreb",
        "home_oreb",
        "home_dreb",
        "home_opp_oreb",
        "home_opp_dreb",
    )
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    def total_pct(side: str) -> float:
        oreb_pct = safe_ratio(v[f"{side}_oreb"], v[f"{side}_oreb"] + v[f"{side}_opp_dreb"])
        dreb_pct = safe_ratio(v[f"{side}_dreb"], v[f"{side}_dreb"] + v[f"{side}_opp_oreb"])
        return oreb_pct + dreb_pct

    away_pct, home_pct = total_pct("away"), total_pct("home")
    differential = home_pct - away_pct
    impact = differential * 100.0
    # Differential is home-positive; flip to the away-positive signal
    signal = -saturate(impact, REBOUNDING_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={
            "away_total_reb_pct": away_pct,
            "home_total_reb_pct": home_pct,
            "differential": differential,
            "expected_point_impact": impact,
        },
        notes=(
            f"Away REB%: {away_pct * 100:.1f}%, Home REB%: {home_pct * 100:.1f}%, "
            f"Diff: {differential * 100:+.1f}%"
        ),
    )


def _mismatch_label(diff: float) -> str:
    gap = abs(diff)
    if gap > 8:
        return "Extreme"
    if gap > 5:
        return "High"
    if gap > 3:
        return "Moderate"
    return "Minimal"


def compute_pace_mismatch(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """The slower team dictates tempo and gets the edge."""
    key = "pace_mismatch"
    r = bundle.reader()
    v = r.many("away_pace_season", "home_pace_season")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    pace_diff = v["away_pace_season"] - v["home_pace_season"]
    x = -pace_diff * 0.3
    signal = saturate(x, PACE_MISMATCH_SCALE)
    label = _mismatch_label(pace_diff)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"pace_diff": pace_diff, "expected_impact": x, "mismatch": label},
        notes=f"Pace: away {v['away_pace_season']:.1f}, home {v['home_pace_season']:.1f} ({label} mismatch)",
    )


def team_momentum(streak: float, wins: float, losses: float) -> float:
    return max(-5.0, min(5.0, streak)) * 0.5 + (wins - losses) / 10.0 * 2.5


def _streak_str(streak: float) -> str:
    if streak > 0:
        return f"W{int(streak)}"
    if streak < 0:
        return f"L{int(abs(streak))}"
    return "Even"


def compute_momentum_index(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    key = "momentum_index"
    r = bundle.reader()
    v = r.many(
        "away_win_streak",
        "away_last10_wins",
        "away_last10_losses",
        "home_win_streak",
        "home_last10_wins",
        "home_last10_losses",
    )
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_m = team_momentum(v["away_win_streak"], v["away_last10_wins"], v["away_last10_losses"])
    home_m = team_momentum(v["home_win_streak"], v["home_last10_wins"], v["home_last10_losses"])
    diff = away_m - home_m
    signal = saturate(diff, MOMENTUM_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"away_momentum": away_m, "home_momentum": home_m, "momentum_diff": diff},
        notes=(
            f"Away {_streak_str(v['away_win_streak'])} "
            f"({int(v['away_last10_wins'])}-{int(v['away_last10_losses'])} L10), "
            f"Home {_streak_str(v['home_win_streak'])} "
            f"({int(v['home_last10_wins'])}-{int(v['home_last10_losses'])} L10)"
        ),
    )


def compute_defensive_pressure(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    key = "defensive_pressure"
    r = bundle.reader()
    v = r.many("away_stl", "away_blk", "home_stl", "home_blk")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_d = 1.5 * v["away_stl"] + 0.8 * v["away_blk"]
    home_d = 1.5 * v["home_stl"] + 0.8 * v["home_blk"]
    diff = away_d - home_d
    signal = saturate(diff, PRESSURE_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"away_disruption": away_d, "home_disruption": home_d, "differential": diff},
        notes=f"Disruption: away {away_d:.1f}, home {home_d:.1f}",
    )


def ast_tov_ratio(ast: float, tov: float) -> float:
    if tov == 0:
        return 3.0 if ast > 0 else 1.0
    return ast / tov


def compute_assist_efficiency(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    key = "assist_efficiency"
    r = bundle.reader()
    v = r.many("away_ast", "away_tov", "home_ast", "home_tov")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_ratio = ast_tov_ratio(v["away_ast"], v["away_tov"])
    home_ratio = ast_tov_ratio(v["home_ast"], v["home_tov"])
    diff = away_ratio - home_ratio
    signal = saturate(diff, ASSIST_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"away_ast_tov": away_ratio, "home_ast_tov": home_ratio, "differential": diff},
        notes=f"AST/TOV: away {away_ratio:.2f}, home {home_ratio:.2f}",
    )


def compute_clutch_shooting(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """Free-throw and field-goal accuracy gap in percentage points."""
    key = "clutch_shooting"
    r = bundle.reader()
    v = r.many("away_ft_pct", "away_fg_pct", "home_ft_pct", "home_fg_pct")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    ft_diff = (v["away_ft_pct"] - v["home_ft_pct"]) * 100.0
    fg_diff = (v["away_fg_pct"] - v["home_fg_pct"]) * 100.0
    x = 1.5 * ft_diff + 0.8 * fg_diff
    capped, hit = cap(x, CLUTCH_CAP)
    signal = saturate(capped, CLUTCH_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"ft_pct_diff": ft_diff, "fg_pct_diff": fg_diff, "clutch_impact": x},
        notes=f"FT% diff {ft_diff:+.1f}, FG% diff {fg_diff:+.1f}",
        caps_applied=hit,
        cap_reason=f"impact capped at +/-{CLUTCH_CAP:g}",
    )


def compute_scoring_margin(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    key = "scoring_margin"
    r = bundle.reader()
    v = r.many("away_ppg", "away_opp_ppg", "home_ppg", "home_opp_ppg")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_margin = v["away_ppg"] - v["away_opp_ppg"]
    home_margin = v["home_ppg"] - v["home_opp_ppg"]
    x = away_margin - home_margin
    capped, hit = cap(x, MARGIN_CAP)
    signal = saturate(capped, MARGIN_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"away_margin": away_margin, "home_margin": home_margin, "differential": x},
        notes=f"Margin: away {away_margin:+.1f}, home {home_margin:+.1f}",
        caps_applied=hit,
        cap_reason=f"differential capped at +/-{MARGIN_CAP:g}",
    )


def compute_perimeter_defense(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """The team that allows lower 3P% and FG% is favoured."""
    key = "perimeter_defense"
    r = bundle.reader()
    v = r.many("away_opp_three_pct", "away_opp_fg_pct", "home_opp_three_pct", "home_opp_fg_pct")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    three_diff = (v["home_opp_three_pct"] - v["away_opp_three_pct"]) * 100.0
    fg_diff = (v["home_opp_fg_pct"] - v["away_opp_fg_pct"]) * 100.0
    x = 1.5 * three_diff + 0.8 * fg_diff
    capped, hit = cap(x, PERIMETER_CAP)
    signal = saturate(capped, PERIMETER_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"opp_three_pct_diff": three_diff, "opp_fg_pct_diff": fg_diff, "defense_impact": x},
        notes=f"Allowed 3P% diff {three_diff:+.1f}, FG% diff {fg_diff:+.1f} (home minus away)",
        caps_applied=hit,
        cap_reason=f"impact capped at +/-{PERIMETER_CAP:g}",
    )
