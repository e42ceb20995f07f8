"""
Deterministic injury impact from the MySportsFeeds player feed.

Only players averaging 15+ minutes with a reported playing probability count.

Spread/moneyline model (per player):
    impact = (PPG / 10 + MPG / 48 * 2) * status multiplier

Totals model (per player):
    offense = PPG / 10 * status multiplier
    defense = base(position) * min(MPG / 36, 1) * min(((BLK + STL) / 2) / 1.5, 1.5) * status multiplier
    net     = defense - offense     (positive = easier to score against)

Team totals get x1.3 with two qualifying injuries and x1.5 with three or more.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from src.factors.models import InjuryFinding, InjuryImpact, RunCtx
from src.factors.scaling import clamp
from src.features.bundle import resolve_abbrev
from src.ingestion.mysportsfeeds import MySportsFeedsClient
from src.utils.logging import get_logger, log_event

logger = get_logger(__name__)

STATUS_MULTIPLIERS: Dict[str, float] = {
    "OUT": 1.0,
    "DOUBTFUL": 0.75,
    "QUESTIONABLE": 0.5,
    "PROBABLE": 0.25,
}

# Feed spellings -> canonical status
STATUS_MAP: Dict[str, str] = {
    "out": "OUT",
    "o": "OUT",
    "injured": "OUT",
    "doubtful": "DOUBTFUL",
    "d": "DOUBTFUL",
    "questionable": "QUESTIONABLE",
    "q": "QUESTIONABLE",
    "gtd": "QUESTIONABLE",
    "game time decision": "QUESTIONABLE",
    "day-to-day": "QUESTIONABLE",
    "probable": "PROBABLE",
    "p": "PROBABLE",
}

MIN_MPG = 15.0
IMPACT_SCALE = 5.0
TOTALS_SCALE = 8.0

POSITION_DEFENSE = (("C", 2.5), ("F", 1.5), ("G", 1.0))


@dataclass(frozen=True)
class PlayerAvailability:
    """Season averages and current injury status for one player."""

    name: str
    team: str
    position: str
    status: Optional[str]
    ppg: float
    mpg: float
    spg: float
    bpg: float

    @property
    def qualifies(self) -> bool:
        return self.status in STATUS_MULTIPLIERS and self.mpg >= MIN_MPG


def _stat(block: Dict[str, Any], *path: str) -> float:
    value: Any = block
    for key in path:
        if not isinstance(value, dict):
            return 0.0
        value = value.get(key)
    try:
        out = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    return out if math.isfinite(out) else 0.0


def normalize_status(status: Optional[str]) -> Optional[str]:
    if not status:
        return None
    return STATUS_MAP.get(status.lower().strip())


def parse_player(entry: Dict[str, Any], team: str) -> PlayerAvailability:
    """Convert one ``playerStatsTotals[]`` element."""
    player = entry.get("player") or {}
    stats = entry.get("stats") or {}
    games = _stat(stats, "gamesPlayed")

    def per_game(total: float) -> float:
        return total / games if games else 0.0

    injury = player.get("currentInjury") or {}
    name = f"{player.get('firstName', '')} {player.get('lastName', '')}".strip()
    return PlayerAvailability(
        name=name or "Unknown",
        team=team,
        position=(player.get("primaryPosition") or "").upper(),
        status=normalize_status(injury.get("playingProbability")),
        ppg=per_game(_stat(stats, "offense", "pts")),
        mpg=per_game(_stat(stats, "miscellaneous", "minSeconds") / 60.0),
        spg=per_game(_stat(stats, "defense", "stl")),
        bpg=per_game(_stat(stats, "defense", "blk")),
    )


def status_multiplier(status: Optional[str]) -> float:
    return STATUS_MULTIPLIERS.get(status or "", 0.0)


def multi_injury_multiplier(count: int) -> float:
    if count >= 3:
        return 1.5
    if count >= 2:
        return 1.3
    return 1.0


def player_impact(p: PlayerAvailability) -> float:
    return (p.ppg / 10.0 + p.mpg / 48.0 * 2.0) * status_multiplier(p.status)


def defensive_impact(position: str, mpg: float, blk: float, stl: float) -> float:
    """Position-based defensive value; bigs protect the rim, guards the perimeter."""
    base = 0.0
    pos = position.upper()
    for tag, value in POSITION_DEFENSE:
        if tag in pos:
            base = value
            break
    minutes_factor = min(mpg / 36.0, 1.0)
    stats_factor = min(((blk + stl) / 2.0) / 1.5, 1.5)
    return base * minutes_factor * stats_factor


def team_injury_total(players: List[PlayerAvailability]) -> Tuple[float, List[InjuryFinding]]:
    """Spread-model team total and one finding per qualifying player."""
    injured = [p for p in players if p.qualifies]
    findings = []
    total = 0.0
    for p in injured:
        impact = player_impact(p)
        total += impact
        findings.append(
            InjuryFinding(
                team=p.team,
                player=p.name,
                status=p.status or "",
                position=p.position or None,
                ppg=round(p.ppg, 2),
                mpg=round(p.mpg, 2),
                impact=round(impact, 4),
            )
        )
    return total * multi_injury_multiplier(len(injured)), findings


def team_totals_net(players: List[PlayerAvailability]) -> float:
    """Totals-model net impact: defense lost minus offense lost."""
    injured = [p for p in players if p.qualifies]
    offense = defense = 0.0
    for p in injured:
        mult = status_multiplier(p.status)
        offense += p.ppg / 10.0 * mult
        defense += defensive_impact(p.position, p.mpg, p.bpg, p.spg) * mult
    return (defense - offense) * multi_injury_multiplier(len(injured))


def defense_impact_score(team_total: float) -> float:
    return clamp(math.tanh(team_total / IMPACT_SCALE))


def availability_signal(away_total: float, home_total: float) -> float:
    """Positive when the home side is hurt more, i.e. the away side is advantaged."""
    return clamp(-math.tanh((away_total - home_total) / IMPACT_SCALE))


def totals_availability_signal(away_net: float, home_net: float) -> float:
    return clamp(math.tanh((away_net + home_net) / TOTALS_SCALE))


def _summary(away: str, home: str, findings: List[InjuryFinding]) -> str:
    if not findings:
        return f"No significant injuries for {away} or {home}"
    parts = []
    for team in (away, home):
        top = max((f for f in findings if f.team == team), key=lambda f: f.impact or 0.0, default=None)
        if top is not None:
            parts.append(f"{team}: {top.player} {top.status} ({top.ppg or 0.0:.1f} PPG)")
    return "; ".join(parts)


class DeterministicInjuryAnalyzer:
    """Builds InjuryImpact from both teams' player feeds, fetched concurrently."""

    def __init__(self, client: Optional[MySportsFeedsClient] = None):
        self.client = client or MySportsFeedsClient()

    async def analyze(self, ctx: RunCtx) -> InjuryImpact:
        away = resolve_abbrev(ctx.away)
        home = resolve_abbrev(ctx.home)
        away_raw, home_raw = await asyncio.gather(
            self.client.fetch_team_players(away),
            self.client.fetch_team_players(home),
        )
        away_players = [parse_player(entry, away) for entry in away_raw]
        home_players = [parse_player(entry, home) for entry in home_raw]

        away_total, away_findings = team_injury_total(away_players)
        home_total, home_findings = team_injury_total(home_players)
        findings = away_findings + home_findings

        impact = InjuryImpact(
            away=defense_impact_score(away_total),
            home=defense_impact_score(home_total),
            away_raw=away_total,
            home_raw=home_total,
            away_total_net=team_totals_net(away_players),
            home_total_net=team_totals_net(home_players),
            findings=tuple(findings),
            summary=_summary(away, home, findings),
            source="deterministic",
        )
        log_event(
            logger,
            logging.INFO,
            "injury impact computed",
            game_id=ctx.game_id,
            source=impact.source,
            away_raw=round(away_total, 3),
            home_raw=round(home_total, 3),
            findings=len(findings),
        )
        return impact
