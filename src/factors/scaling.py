"""
Saturation, capping and side assignment shared by every factor.

Sign convention: a positive signal favours the away team (spread/moneyline)
or the Over (totals); a negative signal favours home / Under.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from src.factors.models import FACTOR_MAX_POINTS, BetType

# Side labels per market
TOTALS_SIDES = ("over", "under")
SPREAD_SIDES = ("away", "home")


def clamp(x: float, lo: float = -1.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def saturate(x: float, scale: float) -> float:
    """tanh(x / scale), clamped to [-1, 1]."""
    return clamp(float(np.tanh(x / scale)))


def cap(x: float, limit: float) -> Tuple[float, bool]:
    """Clamp ``x`` to +/-limit; second item says whether the cap bit."""
    capped = clamp(x, -limit, limit)
    return capped, capped != x


def sides_for(bet_type: BetType) -> Tuple[str, str]:
    return TOTALS_SIDES if bet_type == "TOTAL" else SPREAD_SIDES


def side_split(
    signal: float,
    bet_type: BetType,
    max_points: float = FACTOR_MAX_POINTS,
) -> Tuple[float, Dict[str, float]]:
    """
    Winner-take-all points for ``signal``.

    The full |signal| x max_points goes to the favoured side, the other side
    gets exactly zero. A zero signal scores nothing for either side.
    """
    positive, negative = sides_for(bet_type)
    points = abs(signal) * max_points
    scores = {positive: 0.0, negative: 0.0}
    if signal > 0:
        scores[positive] = points
    elif signal < 0:
        scores[negative] = points
    return points, scores


def population_stdev(values: Iterable[float]) -> float:
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.std(arr))


def safe_ratio(num: float, den: float, default: float = 0.0) -> float:
    return num / den if den else default


def all_finite(*values: Optional[float]) -> bool:
    return all(v is not None and math.isfinite(v) for v in values)


def sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def edge_confidence(weighted_signals: Iterable[Tuple[float, float]], k: float = 2.5) -> Tuple[float, float, float]:
    """
    Collapse (weight share, signal) pairs into (edge_raw, edge_pct, confidence).

    edge_raw is the weighted signal sum, edge_pct = sigmoid(k * edge_raw), and
    confidence maps edge_pct onto a 0-5 scale.
    """
    edge_raw = sum(weight * signal for weight, signal in weighted_signals)
    edge_pct = sigmoid(k * edge_raw)
    return edge_raw, edge_pct, 5.0 * edge_pct
