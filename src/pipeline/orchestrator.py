"""Factor scoring orchestration.

For one game and market this module resolves the applicable factors, checks
the configured weights, fetches the stats bundle and injury impact once
(concurrently, and only when an enabled factor needs them), runs every factor
and aggregates the weighted result.

There are no retries at this layer: a failed fetch or LLM call propagates to
the caller and no partial breakdown is returned.

Usage:
    from src.factors.models import RunCtx
    from src.pipeline.orchestrator import compute_factors

    ctx = RunCtx(game_id="20251201-BOS-LAL", away="BOS", home="LAL", bet_type="TOTAL")
    breakdown = await compute_factors(ctx)
    print(breakdown.to_frame())
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from src.config import settings
from src.factors import FACTOR_FUNCTIONS
from src.factors.models import (
    FACTOR_MAX_POINTS,
    FactorBreakdown,
    FactorComputation,
    FactorMeta,
    InjuryImpact,
    RunCtx,
    StatsBundle,
)
from src.factors.registry import default_weights, get_factors_by_context
from src.factors.scaling import edge_confidence, sides_for
from src.features.bundle import fetch_stats_bundle
from src.ingestion.mysportsfeeds import MySportsFeedsClient
from src.utils.logging import get_logger, log_event

logger = get_logger(__name__)

SUPPORTED_SPORTS = ("NBA",)

# Upper bound on the sum of enabled weight percentages
WEIGHT_BUDGET = 250.0

EDGE_STEEPNESS = 2.5


class WeightValidationError(ValueError):
    """Factor weights failed validation; ``problems`` lists every violation."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid factor weights: " + "; ".join(self.problems))


class UnsupportedContextError(ValueError):
    """The sport or bet type cannot be scored."""
    pass


class InjuryAnalyzer(Protocol):
    async def analyze(self, ctx: RunCtx) -> InjuryImpact: ...


def build_injury_analyzer(
    mode: Optional[str] = None, client: Optional[MySportsFeedsClient] = None
) -> InjuryAnalyzer:
    """Analyzer for INJURY_ANALYZER (``deterministic`` unless configured otherwise)."""
    mode = mode or settings.injury_analyzer
    if mode == "deterministic":
        from src.injuries.deterministic import DeterministicInjuryAnalyzer

        return DeterministicInjuryAnalyzer(client)
    if mode == "llm":
        from src.injuries.llm import LLMInjuryAnalyzer

        return LLMInjuryAnalyzer(client)
    raise ValueError(f"Unknown injury analyzer: {mode!r}")


def validate_factor_weights(
    weights: Mapping[str, Any], applicable: Sequence[FactorMeta]
) -> Dict[str, float]:
    """
    Check weight percentages against the applicable factors.

    Every weight must be a finite number in [0, 100] (0 disables the factor),
    every key must be applicable, and the enabled total must be in (0, 250].
    An empty mapping is valid and enables nothing.

    Returns:
        The enabled weights (non-zero), in registry order

    Raises:
        WeightValidationError: Listing every problem found
    """
    allowed = {meta.key for meta in applicable}
    problems: List[str] = []
    valid: Dict[str, float] = {}

    for key, raw in weights.items():
        if key not in allowed:
            problems.append(f"{key}: not applicable to this sport/bet type")
            continue
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            problems.append(f"{key}: weight must be a number, got {raw!r}")
            continue
        value = float(raw)
        if not math.isfinite(value):
            problems.append(f"{key}: weight must be finite")
        elif value < 0 or value > 100:
            problems.append(f"{key}: weight {value:g} outside [0, 100]")
        else:
            valid[key] = value

    total = sum(valid.values())
    if weights and not problems:
        if total <= 0:
            problems.append("total weight must be greater than 0")
        elif total > WEIGHT_BUDGET:
            problems.append(f"total weight {total:g} exceeds budget of {WEIGHT_BUDGET:g}")

    if problems:
        raise WeightValidationError(problems)
    return {meta.key: valid[meta.key] for meta in applicable if valid.get(meta.key, 0.0) > 0}


def _factor_version(ctx: RunCtx) -> str:
    return "nba_totals_v1" if ctx.is_totals else "nba_spread_v1"


def apply_weight(comp: FactorComputation, meta: FactorMeta, weight_pct: float) -> FactorComputation:
    """Weighted copy: a 100% weight contributes the factor's full max_points."""
    scale = (weight_pct / 100.0) * (meta.max_points / FACTOR_MAX_POINTS)
    return comp.model_copy(
        update={
            "weight_pct": weight_pct,
            "weighted_points": comp.points * scale,
            "weighted_side_scores": {side: score * scale for side, score in comp.side_scores.items()},
        }
    )


def _baseline_avg(ctx: RunCtx, bundle: Optional[StatsBundle]) -> Optional[float]:
    if not ctx.is_totals:
        return 0.0
    if bundle is None:
        return ctx.market_total
    r = bundle.reader()
    return r.get("away_ppg") + r.get("home_ppg")


async def _resolved(value: Any) -> Any:
    return value


def _empty_breakdown(ctx: RunCtx, reason: str) -> FactorBreakdown:
    log_event(logger, logging.INFO, "no factors enabled", game_id=ctx.game_id, reason=reason)
    return FactorBreakdown(
        factors=(),
        factor_version=_factor_version(ctx),
        baseline_avg=0.0 if not ctx.is_totals else None,
        side_totals={side: 0.0 for side in sides_for(ctx.bet_type)},
        debug={"branch": {"sport": ctx.sport, "bet_type": ctx.bet_type}, "factor_keys": [], "reason": reason},
    )


async def compute_factors(
    ctx: RunCtx,
    *,
    client: Optional[MySportsFeedsClient] = None,
    injury_analyzer: Optional[InjuryAnalyzer] = None,
) -> FactorBreakdown:
    """
    Score every enabled factor for ``ctx`` and aggregate the weighted result.

    Raises:
        UnsupportedContextError: For sports the stats fetcher cannot serve
        WeightValidationError: If ``ctx.factor_weights`` is invalid
        DataFetchError: If the stats bundle or player feed cannot be fetched
        LLMError: If the LLM injury analyzer is configured and fails
    """
    if ctx.sport not in SUPPORTED_SPORTS:
        raise UnsupportedContextError(f"Unsupported sport: {ctx.sport}")

    started = time.monotonic()
    applicable = get_factors_by_context(ctx.sport, ctx.bet_type)
    if ctx.factor_weights is None:
        weights = {k: w for k, w in default_weights(ctx.sport, ctx.bet_type).items() if w > 0}
    else:
        weights = validate_factor_weights(ctx.factor_weights, applicable)

    enabled = [meta for meta in applicable if meta.key in weights]
    if not enabled:
        return _empty_breakdown(ctx, "no applicable factors" if not applicable else "all weights zero")

    needs_injuries = any(meta.needs_injuries for meta in enabled)
    needs_stats = any(meta.needs_stats for meta in enabled)
    if client is None:
        client = MySportsFeedsClient()
    if needs_injuries and injury_analyzer is None:
        injury_analyzer = build_injury_analyzer(client=client)

    bundle, injury_impact = await asyncio.gather(
        fetch_stats_bundle(ctx, client) if needs_stats else _resolved(None),
        injury_analyzer.analyze(ctx) if needs_injuries else _resolved(InjuryImpact.neutral()),
    )

    factors: List[FactorComputation] = []
    for meta in enabled:
        fn = FACTOR_FUNCTIONS[meta.key]
        comp = fn(bundle, ctx, injury_impact) if meta.needs_injuries else fn(bundle, ctx)
        factors.append(apply_weight(comp, meta, weights[meta.key]))

    side_totals = {side: 0.0 for side in sides_for(ctx.bet_type)}
    for comp in factors:
        for side, score in (comp.weighted_side_scores or {}).items():
            side_totals[side] += score

    edge_raw, edge_pct, confidence = edge_confidence(
        ((weights[c.key] / 100.0, c.signal) for c in factors), k=EDGE_STEEPNESS
    )

    rows = [
        {"key": c.key, "signal": c.signal, "points": c.points, "weighted_points": c.weighted_points}
        for c in factors
    ]
    fallbacks: Dict[str, Tuple[str, ...]] = {c.key: c.fallbacks_used for c in factors if c.fallbacks_used}
    debug: Dict[str, Any] = {
        "branch": {"sport": ctx.sport, "bet_type": ctx.bet_type},
        "factor_keys": [c.key for c in factors],
        "weights": dict(weights),
        "league_anchors": bundle.anchors().model_dump() if bundle is not None else None,
        "injury_impact": injury_impact.model_dump(exclude={"raw_response"}),
        "bundle": bundle.snapshot() if bundle is not None else None,
        "rows": rows,
        "fallbacks": fallbacks,
        "bad_input": [c.key for c in factors if c.reason == "bad_input"],
    }

    breakdown = FactorBreakdown(
        factors=tuple(factors),
        factor_version=_factor_version(ctx),
        baseline_avg=_baseline_avg(ctx, bundle),
        side_totals=side_totals,
        edge_raw=edge_raw,
        edge_pct=edge_pct,
        confidence=confidence,
        debug=debug,
    )
    log_event(
        logger,
        logging.INFO,
        "factors computed",
        game_id=ctx.game_id,
        sport=ctx.sport,
        bet_type=ctx.bet_type,
        factors=len(factors),
        side_totals=side_totals,
        edge_raw=round(edge_raw, 4),
        confidence=round(confidence, 3),
        bad_input=debug["bad_input"],
        fallbacks=sorted(fallbacks),
        latency_ms=round((time.monotonic() - started) * 1000.0, 1),
    )
    return breakdown
