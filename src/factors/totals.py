"""
NBA totals factors. Positive signal leans Over, negative leans Under.

Factors:
    pace_index                 - expected possessions vs league pace
    off_form                   - opponent-adjusted recent offense vs league
    def_erosion                - defensive rating decline plus injury impact
    three_env                  - 3PA rate environment and hot-shooting variance
    whistle_env                - free-throw rate environment
    injury_availability_total  - position-based injury net impact
"""
from __future__ import annotations

from src.factors.base import build_computation, neutral_computation, require_positive
from src.factors.models import FactorComputation, InjuryImpact, RunCtx, StatsBundle
from src.factors.scaling import all_finite, clamp, population_stdev, saturate

PACE_SCALE = 6.0
FORM_SCALE = 10.0
DRTG_SCALE = 8.0
THREE_ENV_SCALE = 0.1
FTR_SCALE = 0.06
INJURY_TOTAL_SCALE = 8.0


def compute_pace_index(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """F1: blended season/last-10 pace of both teams vs league pace."""
    key = "pace_index"
    r = bundle.reader()
    v = r.many("away_pace_season", "away_pace_last10", "home_pace_season", "home_pace_last10", "league_pace")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_pace = 0.6 * v["away_pace_season"] + 0.4 * v["away_pace_last10"]
    home_pace = 0.6 * v["home_pace_season"] + 0.4 * v["home_pace_last10"]
    exp_pace = (away_pace + home_pace) / 2.0
    delta = exp_pace - v["league_pace"]
    signal = saturate(delta, PACE_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={
            "away_pace": away_pace,
            "home_pace": home_pace,
            "exp_pace": exp_pace,
            "pace_delta": delta,
        },
        notes=f"Expected pace: {exp_pace:.1f} vs league {v['league_pace']:.1f}",
    )


def compute_off_form(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """F2: last-10 ORtg adjusted for the opponent's season defense."""
    key = "off_form"
    r = bundle.reader()
    v = r.many("away_ortg_last10", "home_ortg_last10", "away_drtg_season", "home_drtg_season", "league_ortg")
    require_positive(r, v, "away_drtg_season", "home_drtg_season")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    lg = v["league_ortg"]
    away_adj = v["away_ortg_last10"] * (lg / v["home_drtg_season"])
    home_adj = v["home_ortg_last10"] * (lg / v["away_drtg_season"])
    delta = (away_adj + home_adj) - 2.0 * lg
    signal = saturate(delta, FORM_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"away_ortg_adj": away_adj, "home_ortg_adj": home_adj, "form_delta_per_100": delta},
        notes=f"Combined ORtg: {away_adj + home_adj:.1f} vs league {2.0 * lg:.1f}",
    )


def compute_def_erosion(bundle: StatsBundle, ctx: RunCtx, injury_impact: InjuryImpact) -> FactorComputation:
    """F3: 70% defensive rating vs league, 30% injury defense impact, averaged over both teams."""
    key = "def_erosion"
    r = bundle.reader()
    v = r.many("away_drtg_season", "home_drtg_season", "league_drtg")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    away_dr = (v["away_drtg_season"] - v["league_drtg"]) / DRTG_SCALE
    home_dr = (v["home_drtg_season"] - v["league_drtg"]) / DRTG_SCALE
    away_erosion = 0.7 * away_dr + 0.3 * injury_impact.away
    home_erosion = 0.7 * home_dr + 0.3 * injury_impact.home
    erosion = (away_erosion + home_erosion) / 2.0
    signal = clamp(erosion)
    capped = signal != erosion

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values={**v, "away_injury": injury_impact.away, "home_injury": injury_impact.home},
        parsed_values={
            "away_dr_delta": away_dr,
            "home_dr_delta": home_dr,
            "away_erosion": away_erosion,
            "home_erosion": home_erosion,
            "erosion": erosion,
        },
        notes=(
            f"Erosion: {erosion:.2f} (DRtg: {away_dr:.2f}/{home_dr:.2f}, "
            f"Injury: {injury_impact.away:.2f}/{injury_impact.home:.2f})"
        ),
        caps_applied=capped,
        cap_reason="erosion clamped to +/-1",
    )


def compute_three_env(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """F4: three-point attempt environment plus recent shooting variance."""
    key = "three_env"
    r = bundle.reader()
    v = r.many(
        "away_three_par",
        "home_three_par",
        "away_opp_three_par",
        "home_opp_three_par",
        "away_three_pct_last10",
        "home_three_pct_last10",
        "league_three_par",
        "league_three_pct_stdev",
    )
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    env_rate = (v["away_three_par"] + v["home_three_par"] + v["away_opp_three_par"] + v["home_opp_three_par"]) / 4.0
    rate_delta = env_rate - v["league_three_par"]
    recent_stdev = population_stdev([v["away_three_pct_last10"], v["home_three_pct_last10"]])
    hot_var = max(0.0, recent_stdev - v["league_three_pct_stdev"])
    x = 2.0 * rate_delta + hot_var
    signal = saturate(x, THREE_ENV_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"env_rate": env_rate, "rate_delta": rate_delta, "recent_stdev": recent_stdev, "hot_var": hot_var},
        notes=f"Env rate: {env_rate:.3f} vs league {v['league_three_par']:.3f}, Var: {hot_var:.3f}",
    )


def compute_whistle_env(bundle: StatsBundle, ctx: RunCtx) -> FactorComputation:
    """F5: free-throw rate of both teams and their opponents vs league."""
    key = "whistle_env"
    r = bundle.reader()
    v = r.many("away_ftr", "home_ftr", "away_opp_ftr", "home_opp_ftr", "league_ftr")
    if not r.ok:
        return neutral_computation(key, ctx, r, v)

    ftr_env = (v["away_ftr"] + v["home_ftr"] + v["away_opp_ftr"] + v["home_opp_ftr"]) / 4.0
    ftr_delta = ftr_env - v["league_ftr"]
    signal = saturate(ftr_delta, FTR_SCALE)

    return build_computation(
        key,
        ctx,
        signal,
        r,
        raw_values=v,
        parsed_values={"ftr_env": ftr_env, "ftr_delta": ftr_delta},
        notes=f"FTr env: {ftr_env:.3f} vs league {v['league_ftr']:.3f}",
    )


def compute_injury_availability_total(
    bundle: StatsBundle, ctx: RunCtx, injury_impact: InjuryImpact
) -> FactorComputation:
    """F6: defensive absences push Over, scoring absences push Under."""
    key = "injury_availability_total"
    away_net = injury_impact.away_total_net
    home_net = injury_impact.home_total_net
    raw = {"away_net": away_net, "home_net": home_net, "source": injury_impact.source}
    if away_net is None or home_net is None:
        # Analyzer did not produce the position model (e.g. LLM path)
        away_net, home_net = injury_impact.away, injury_impact.home
    if not all_finite(away_net, home_net):
        return neutral_computation(key, ctx, raw_values=raw, notes="Invalid input: injury net impact")

    total = away_net + home_net
    signal = saturate(total, INJURY_TOTAL_SCALE)
    findings = len(injury_impact.findings)

    return build_computation(
        key,
        ctx,
        signal,
        raw_values=raw,
        parsed_values={"away_impact": away_net, "home_impact": home_net, "total_impact": total, "findings": findings},
        notes=injury_impact.summary or f"{findings} injuries, net impact {total:+.2f}",
    )