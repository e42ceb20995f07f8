"""
Data model for the factor engine.

Everything here is immutable once built. FactorMeta is static registry data
(frozen dataclass); the per-request objects are frozen pydantic models that
are created for one scoring run and then discarded.

Missing-data policy, applied the same way by every factor:
    * a REQUIRED bundle field that is absent fails bundle construction with
      MissingFieldError (nothing downstream ever sees a partial bundle);
    * an OPTIONAL field that is absent resolves from OPTIONAL_FIELD_FALLBACKS
      and the factor records the substitution in ``fallbacks_used``;
    * a value that is present but non-finite (or negative where it cannot be)
      makes the factor return a neutral ``reason="bad_input"`` result.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.ingestion.gamelogs import DataFetchError

Sport = Literal["NBA", "NFL", "MLB"]
BetType = Literal["TOTAL", "SPREAD", "MONEYLINE", "SPREAD/MONEYLINE"]
Scope = Literal["matchup", "team", "player", "global"]
DataSource = Literal["stats", "injuries", "llm"]
Wildcard = Literal["*"]

# Every factor's unweighted contribution is |signal| x FACTOR_MAX_POINTS
FACTOR_MAX_POINTS = 5.0

# Current-era NBA league averages, used for anchors and optional-field fallbacks
NBA_LEAGUE_AVERAGES: Dict[str, float] = {
    "pace": 99.5,
    "ortg": 114.5,
    "drtg": 114.5,
    "three_par": 0.42,
    "three_pct": 0.36,
    "ftr": 0.26,
    "three_pct_stdev": 0.036,
    "ppg": 114.5,
    "efg": 0.54,
    "fg_pct": 0.47,
    "ft_pct": 0.77,
    "tov": 14.0,
    "tov_pct": 0.13,
    "ast": 26.0,
    "stl": 7.5,
    "blk": 5.0,
    "oreb": 10.5,
    "dreb": 33.5,
}


class MissingFieldError(DataFetchError):
    """A bundle was built without one or more required fields."""

    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__(f"Stats bundle missing required fields: {', '.join(self.fields)}")


@dataclass(frozen=True)
class FactorMeta:
    """Static descriptor of one scoring factor."""

    key: str
    name: str
    short_name: str
    description: str
    sports: Union[Tuple[Sport, ...], Wildcard]
    bet_types: Union[Tuple[BetType, ...], Wildcard]
    scope: Scope
    max_points: float
    default_weight: float  # 0-1 share of total signal
    data_source: DataSource = "stats"
    needs_stats: bool = True  # reads the stats bundle

    @property
    def needs_injuries(self) -> bool:
        return self.data_source in ("injuries", "llm")


class LeagueAnchors(BaseModel):
    """League-average reference values the factor formulas are centred on."""

    model_config = ConfigDict(frozen=True)

    pace: float = NBA_LEAGUE_AVERAGES["pace"]
    ortg: float = NBA_LEAGUE_AVERAGES["ortg"]
    drtg: float = NBA_LEAGUE_AVERAGES["drtg"]
    three_par: float = NBA_LEAGUE_AVERAGES["three_par"]
    three_pct: float = NBA_LEAGUE_AVERAGES["three_pct"]
    ftr: float = NBA_LEAGUE_AVERAGES["ftr"]
    three_pct_stdev: float = NBA_LEAGUE_AVERAGES["three_pct_stdev"]


class RunCtx(BaseModel):
    """Per-request scoring context. Read-only during computation."""

    model_config = ConfigDict(frozen=True)

    game_id: str
    away: str
    home: str
    sport: Sport = "NBA"
    bet_type: BetType
    game_date: Optional[date] = None
    # Away-team spread (e.g. +3.5); the net rating factor compares against it
    spread_line: Optional[float] = None
    market_total: Optional[float] = None
    league_anchors: Optional[LeagueAnchors] = None
    # Percentages keyed by factor key; None means registry defaults
    factor_weights: Optional[Dict[str, float]] = None

    @property
    def is_totals(self) -> bool:
        return self.bet_type == "TOTAL"


# Fields the fetcher always derives; a bundle without them is rejected
REQUIRED_BUNDLE_FIELDS: Tuple[str, ...] = (
    "away_pace_season",
    "away_pace_last10",
    "home_pace_season",
    "home_pace_last10",
    "away_ortg_last10",
    "home_ortg_last10",
    "away_drtg_season",
    "home_drtg_season",
    "league_pace",
    "league_ortg",
    "league_drtg",
    "league_three_par",
    "league_ftr",
)

_TEAM_FALLBACKS: Dict[str, float] = {
    "ortg_season": NBA_LEAGUE_AVERAGES["ortg"],
    "drtg_last10": NBA_LEAGUE_AVERAGES["drtg"],
    "ortg_last3": NBA_LEAGUE_AVERAGES["ortg"],
    "ortg_venue": NBA_LEAGUE_AVERAGES["ortg"],
    "drtg_venue": NBA_LEAGUE_AVERAGES["drtg"],
    "ppg": NBA_LEAGUE_AVERAGES["ppg"],
    "opp_ppg": NBA_LEAGUE_AVERAGES["ppg"],
    "three_par": NBA_LEAGUE_AVERAGES["three_par"],
    "opp_three_par": NBA_LEAGUE_AVERAGES["three_par"],
    "three_pct": NBA_LEAGUE_AVERAGES["three_pct"],
    "three_pct_last10": NBA_LEAGUE_AVERAGES["three_pct"],
    "opp_three_pct": NBA_LEAGUE_AVERAGES["three_pct"],
    "ftr": NBA_LEAGUE_AVERAGES["ftr"],
    "opp_ftr": NBA_LEAGUE_AVERAGES["ftr"],
    "efg": NBA_LEAGUE_AVERAGES["efg"],
    "fg_pct": NBA_LEAGUE_AVERAGES["fg_pct"],
    "opp_fg_pct": NBA_LEAGUE_AVERAGES["fg_pct"],
    "ft_pct": NBA_LEAGUE_AVERAGES["ft_pct"],
    "tov": NBA_LEAGUE_AVERAGES["tov"],
    "tov_last10": NBA_LEAGUE_AVERAGES["tov"],
    "tov_pct": NBA_LEAGUE_AVERAGES["tov_pct"],
    "ast": NBA_LEAGUE_AVERAGES["ast"],
    "stl": NBA_LEAGUE_AVERAGES["stl"],
    "blk": NBA_LEAGUE_AVERAGES["blk"],
    "oreb": NBA_LEAGUE_AVERAGES["oreb"],
    "dreb": NBA_LEAGUE_AVERAGES["dreb"],
    "opp_oreb": NBA_LEAGUE_AVERAGES["oreb"],
    "opp_dreb": NBA_LEAGUE_AVERAGES["dreb"],
    "rest_days": 1.0,
    "win_streak": 0.0,
    "last10_wins": 5.0,
    "last10_losses": 5.0,
}

OPTIONAL_FIELD_FALLBACKS: Dict[str, float] = {
    "league_three_pct": NBA_LEAGUE_AVERAGES["three_pct"],
    "league_three_pct_stdev": NBA_LEAGUE_AVERAGES["three_pct_stdev"],
    **{f"{side}_{name}": value for side in ("away", "home") for name, value in _TEAM_FALLBACKS.items()},
}

# Fields allowed to go negative
SIGNED_FIELDS = frozenset({"away_win_streak", "home_win_streak"})


class StatsBundle(BaseModel):
    """
    Raw statistics for both teams of one game, plus league anchors.

    ``*_venue`` ratings are the venue split that applies to the game: road
    games for the away team, home games for the home team. Shooting
    percentages and rates are fractions (0.36, not 36.0).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Required
    away_pace_season: float
    away_pace_last10: float
    home_pace_season: float
    home_pace_last10: float
    away_ortg_last10: float
    home_ortg_last10: float
    away_drtg_season: float
    home_drtg_season: float
    league_pace: float
    league_ortg: float
    league_drtg: float
    league_three_par: float
    league_ftr: float

    # Optional league anchors
    league_three_pct: Optional[float] = None
    league_three_pct_stdev: Optional[float] = None

    # Optional, away team
    away_ortg_season: Optional[float] = None
    away_drtg_last10: Optional[float] = None
    away_ortg_last3: Optional[float] = None
    away_ortg_venue: Optional[float] = None
    away_drtg_venue: Optional[float] = None
    away_ppg: Optional[float] = None
    away_opp_ppg: Optional[float] = None
    away_three_par: Optional[float] = None
    away_opp_three_par: Optional[float] = None
    away_three_pct: Optional[float] = None
    away_three_pct_last10: Optional[float] = None
    away_opp_three_pct: Optional[float] = None
    away_ftr: Optional[float] = None
    away_opp_ftr: Optional[float] = None
    away_efg: Optional[float] = None
    away_fg_pct: Optional[float] = None
    away_opp_fg_pct: Optional[float] = None
    away_ft_pct: Optional[float] = None
    away_tov: Optional[float] = None
    away_tov_last10: Optional[float] = None
    away_tov_pct: Optional[float] = None
    away_ast: Optional[float] = None
    away_stl: Optional[float] = None
    away_blk: Optional[float] = None
    away_oreb: Optional[float] = None
    away_dreb: Optional[float] = None
    away_opp_oreb: Optional[float] = None
    away_opp_dreb: Optional[float] = None
    away_rest_days: Optional[float] = None
    away_win_streak: Optional[float] = None
    away_last10_wins: Optional[float] = None
    away_last10_losses: Optional[float] = None

    # Optional, home team
    home_ortg_season: Optional[float] = None
    home_drtg_last10: Optional[float] = None
    home_ortg_last3: Optional[float] = None
    home_ortg_venue: Optional[float] = None
    home_drtg_venue: Optional[float] = None
    home_ppg: Optional[float] = None
    home_opp_ppg: Optional[float] = None
    home_three_par: Optional[float] = None
    home_opp_three_par: Optional[float] = None
    home_three_pct: Optional[float] = None
    home_three_pct_last10: Optional[float] = None
    home_opp_three_pct: Optional[float] = None
    home_ftr: Optional[float] = None
    home_opp_ftr: Optional[float] = None
    home_efg: Optional[float] = None
    home_fg_pct: Optional[float] = None
    home_opp_fg_pct: Optional[float] = None
    home_ft_pct: Optional[float] = None
    home_tov: Optional[float] = None
    home_tov_last10: Optional[float] = None
    home_tov_pct: Optional[float] = None
    home_ast: Optional[float] = None
    home_stl: Optional[float] = None
    home_blk: Optional[float] = None
    home_oreb: Optional[float] = None
    home_dreb: Optional[float] = None
    home_opp_oreb: Optional[float] = None
    home_opp_dreb: Optional[float] = None
    home_rest_days: Optional[float] = None
    home_win_streak: Optional[float] = None
    home_last10_wins: Optional[float] = None
    home_last10_losses: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _require_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            missing = [name for name in REQUIRED_BUNDLE_FIELDS if data.get(name) is None]
            if missing:
                raise MissingFieldError(missing)
        return data

    def anchors(self) -> LeagueAnchors:
        return LeagueAnchors(
            pace=self.league_pace,
            ortg=self.league_ortg,
            drtg=self.league_drtg,
            three_par=self.league_three_par,
            three_pct=self._or_fallback("league_three_pct"),
            ftr=self.league_ftr,
            three_pct_stdev=self._or_fallback("league_three_pct_stdev"),
        )

    def _or_fallback(self, name: str) -> float:
        value = getattr(self, name)
        return OPTIONAL_FIELD_FALLBACKS[name] if value is None else value

    def reader(self) -> "BundleReader":
        return BundleReader(self)

    def snapshot(self) -> Dict[str, float]:
        """Populated fields only, for debug output."""
        return self.model_dump(exclude_none=True)


class BundleReader:
    """
    Field access for one factor computation.

    Applies the optional-field fallbacks, remembers which ones were used, and
    flags values that are present but unusable.
    """

    def __init__(self, bundle: StatsBundle):
        self._bundle = bundle
        self.fallbacks_used: List[str] = []
        self.bad_fields: List[str] = []

    def get(self, name: str) -> float:
        value = getattr(self._bundle, name)
        if value is None:
            if name not in OPTIONAL_FIELD_FALLBACKS:
                # Required fields are enforced at construction
                raise MissingFieldError([name])
            self.fallbacks_used.append(name)
            return OPTIONAL_FIELD_FALLBACKS[name]

        value = float(value)
        if not math.isfinite(value) or (value < 0 and name not in SIGNED_FIELDS):
            self.bad_fields.append(name)
        return value

    def many(self, *names: str) -> Dict[str, float]:
        return {name: self.get(name) for name in names}

    @property
    def ok(self) -> bool:
        return not self.bad_fields


class InjuryFinding(BaseModel):
    """One reported absence, from the player feed or a news search."""

    model_config = ConfigDict(frozen=True)

    team: str
    player: str
    status: str
    minutes_impact: float = 0.0
    position: Optional[str] = None
    ppg: Optional[float] = None
    mpg: Optional[float] = None
    impact: Optional[float] = None
    source_url: Optional[str] = None


class InjuryImpact(BaseModel):
    """
    Per-team injury impact for one game.

    ``away``/``home`` are defense-impact scores in [-1, 1], positive meaning
    that team's defense is weakened. ``*_raw`` carry the unbounded team totals
    when the deterministic analyzer produced them.
    """

    model_config = ConfigDict(frozen=True)

    away: float = Field(default=0.0, ge=-1.0, le=1.0)
    home: float = Field(default=0.0, ge=-1.0, le=1.0)
    away_raw: Optional[float] = None
    home_raw: Optional[float] = None
    # Position-weighted totals-market net impact (defense minus offense)
    away_total_net: Optional[float] = None
    home_total_net: Optional[float] = None
    findings: Tuple[InjuryFinding, ...] = ()
    summary: str = ""
    source: Literal["deterministic", "llm", "none"] = "none"
    raw_response: Optional[str] = None

    @classmethod
    def neutral(cls, summary: str = "Not needed") -> "InjuryImpact":
        return cls(summary=summary)


class FactorComputation(BaseModel):
    """Output of one factor function. The orchestrator only reads and re-scales it."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    signal: float = Field(ge=-1.0, le=1.0)
    points: float = Field(ge=0.0)
    side_scores: Dict[str, float]
    raw_values: Dict[str, Any] = Field(default_factory=dict)
    parsed_values: Dict[str, Any] = Field(default_factory=dict)
    caps_applied: bool = False
    cap_reason: Optional[str] = None
    notes: str = ""
    reason: Optional[Literal["bad_input"]] = None
    fallbacks_used: Tuple[str, ...] = ()

    # Filled in by the orchestrator on its weighted copy
    weight_pct: Optional[float] = None
    weighted_points: Optional[float] = None
    weighted_side_scores: Optional[Dict[str, float]] = None

    @property
    def is_neutral(self) -> bool:
        return self.signal == 0.0


class FactorBreakdown(BaseModel):
    """Weighted factor list for one game plus diagnostics."""

    model_config = ConfigDict(frozen=True)

    factors: Tuple[FactorComputation, ...]
    factor_version: str
    baseline_avg: Optional[float] = None
    side_totals: Dict[str, float]
    edge_raw: float = 0.0
    edge_pct: float = 0.5
    confidence: float = 2.5
    debug: Dict[str, Any] = Field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "key": f.key,
                "name": f.name,
                "signal": f.signal,
                "points": f.points,
                "weight_pct": f.weight_pct,
                "weighted_points": f.weighted_points,
                "side": _leading_side(f.side_scores),
                "reason": f.reason,
                "notes": f.notes,
            }
            for f in self.factors
        ]
        columns = ["key", "name", "signal", "points", "weight_pct", "weighted_points", "side", "reason", "notes"]
        return pd.DataFrame(rows, columns=columns)


def _leading_side(side_scores: Dict[str, float]) -> Optional[str]:
    winners = [side for side, score in side_scores.items() if score > 0]
    return winners[0] if winners else None
