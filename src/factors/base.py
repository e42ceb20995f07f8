"""
Common result builders for factor functions.

A factor function reads its inputs through a BundleReader, bails out with
``neutral_computation`` when the reader flagged a bad value, and otherwise
hands its signal to ``build_computation`` which applies winner-take-all
points for the market.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from src.factors.models import BundleReader, FactorComputation, RunCtx
from src.factors.registry import get_factor
from src.factors.scaling import clamp, side_split, sides_for


def build_computation(
    key: str,
    ctx: RunCtx,
    signal: float,
    reader: Optional[BundleReader] = None,
    raw_values: Optional[Dict[str, Any]] = None,
    parsed_values: Optional[Dict[str, Any]] = None,
    notes: str = "",
    caps_applied: bool = False,
    cap_reason: Optional[str] = None,
) -> FactorComputation:
    signal = clamp(float(signal))
    points, side_scores = side_split(signal, ctx.bet_type)
    parsed = dict(parsed_values or {})
    parsed.update(signal=signal, points=points, **side_scores)
    return FactorComputation(
        key=key,
        name=get_factor(key).name,
        signal=signal,
        points=points,
        side_scores=side_scores,
        raw_values=dict(raw_values or {}),
        parsed_values=parsed,
        caps_applied=caps_applied,
        cap_reason=cap_reason if caps_applied else None,
        notes=notes,
        fallbacks_used=tuple(reader.fallbacks_used) if reader else (),
    )


def neutral_computation(
    key: str,
    ctx: RunCtx,
    reader: Optional[BundleReader] = None,
    raw_values: Optional[Dict[str, Any]] = None,
    notes: str = "",
) -> FactorComputation:
    """Zero-signal result for unusable inputs."""
    bad = list(reader.bad_fields) if reader else []
    return FactorComputation(
        key=key,
        name=get_factor(key).name,
        signal=0.0,
        points=0.0,
        side_scores={side: 0.0 for side in sides_for(ctx.bet_type)},
        raw_values=dict(raw_values or {}),
        parsed_values={"bad_fields": bad},
        notes=notes or f"Invalid input: {', '.join(bad) or 'unknown'}",
        reason="bad_input",
        fallbacks_used=tuple(reader.fallbacks_used) if reader else (),
    )


def require_positive(reader: BundleReader, values: Dict[str, float], *names: str) -> None:
    """Flag fields used as divisors when they are not strictly positive."""
    for name in names:
        if values[name] <= 0 and name not in reader.bad_fields:
            reader.bad_fields.append(name)
