"""src.features.bundle

Assemble the per-game StatsBundle from MySportsFeeds game logs.

For each team three windows are fetched (season, last-10, last-3). All six
team/window calls run concurrently and are joined all-or-nothing: if any one
fails the whole fetch raises DataFetchError and no bundle is produced.

League anchors are the simple average of the two teams' season values. That
is an approximation of the league, not a league-wide average.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from src.config import get_mysportsfeeds_season
from src.factors.models import NBA_LEAGUE_AVERAGES, LeagueAnchors, RunCtx, StatsBundle
from src.ingestion.gamelogs import (
    DataFetchError,
    GameLine,
    ScheduleContext,
    TeamWindowStats,
    aggregate_window,
    schedule_context,
    venue_ratings,
)
from src.ingestion.mysportsfeeds import MySportsFeedsClient
from src.utils.logging import get_logger, log_event
from src.utils.team_names import resolve_team

logger = get_logger(__name__)

# Window name -> game limit (None = full season)
WINDOWS: Dict[str, Optional[int]] = {"season": None, "last10": 10, "last3": 3}


@dataclass(frozen=True)
class TeamSnapshot:
    """Everything fetched for one team, before it is flattened into the bundle."""

    abbrev: str
    season: TeamWindowStats
    last10: TeamWindowStats
    last3: TeamWindowStats
    venue: Optional[Dict[str, float]]
    schedule: ScheduleContext


def resolve_abbrev(team: str) -> str:
    try:
        return resolve_team(team).abbrev
    except ValueError as e:
        raise DataFetchError(str(e)) from e


def build_snapshot(
    abbrev: str,
    windows: Dict[str, Tuple[List[GameLine], Dict[int, GameLine]]],
    is_home: bool,
    game_date: date,
) -> TeamSnapshot:
    """Aggregate raw window payloads for one team."""
    season_lines, season_opp = windows["season"]
    return TeamSnapshot(
        abbrev=abbrev,
        season=aggregate_window(abbrev, season_lines, season_opp),
        last10=aggregate_window(abbrev, *windows["last10"]),
        last3=aggregate_window(abbrev, *windows["last3"]),
        venue=venue_ratings(abbrev, season_lines, season_opp, home=is_home),
        schedule=schedule_context(abbrev, season_lines, game_date),
    )


def derive_league_anchors(away: TeamWindowStats, home: TeamWindowStats) -> LeagueAnchors:
    """Two-team average of season values; 3P% spread is a fixed league constant."""
    return LeagueAnchors(
        pace=(away.pace + home.pace) / 2.0,
        ortg=(away.ortg + home.ortg) / 2.0,
        drtg=(away.drtg + home.drtg) / 2.0,
        three_par=(away.three_par + home.three_par) / 2.0,
        three_pct=(away.three_pct + home.three_pct) / 2.0,
        ftr=(away.ftr + home.ftr) / 2.0,
        three_pct_stdev=NBA_LEAGUE_AVERAGES["three_pct_stdev"],
    )


def _team_fields(prefix: str, snap: TeamSnapshot) -> Dict[str, Any]:
    s, l10, l3 = snap.season, snap.last10, snap.last3
    venue = snap.venue or {}
    fields = {
        "pace_season": s.pace,
        "pace_last10": l10.pace,
        "ortg_season": s.ortg,
        "ortg_last10": l10.ortg,
        "ortg_last3": l3.ortg,
        "drtg_season": s.drtg,
        "drtg_last10": l10.drtg,
        "ortg_venue": venue.get("ortg"),
        "drtg_venue": venue.get("drtg"),
        "ppg": s.ppg,
        "opp_ppg": s.opp_ppg,
        "three_par": s.three_par,
        "opp_three_par": s.opp_three_par,
        "three_pct": s.three_pct,
        "three_pct_last10": l10.three_pct,
        "opp_three_pct": s.opp_three_pct,
        "ftr": s.ftr,
        "opp_ftr": s.opp_ftr,
        "efg": s.efg,
        "fg_pct": s.fg_pct,
        "opp_fg_pct": s.opp_fg_pct,
        "ft_pct": s.ft_pct,
        "tov": s.tov,
        "tov_last10": l10.tov,
        "tov_pct": s.tov_pct,
        "ast": s.ast,
        "stl": s.stl,
        "blk": s.blk,
        "oreb": s.oreb,
        "dreb": s.dreb,
        "opp_oreb": s.opp_oreb,
        "opp_dreb": s.opp_dreb,
        "rest_days": snap.schedule.rest_days,
        "win_streak": snap.schedule.win_streak,
        "last10_wins": snap.schedule.last10_wins,
        "last10_losses": snap.schedule.last10_losses,
    }
    return {f"{prefix}_{name}": value for name, value in fields.items()}


def build_bundle(
    away: TeamSnapshot,
    home: TeamSnapshot,
    anchors: Optional[LeagueAnchors] = None,
) -> StatsBundle:
    """Flatten two team snapshots and the league anchors into a StatsBundle."""
    anchors = anchors or derive_league_anchors(away.season, home.season)
    data: Dict[str, Any] = {
        **_team_fields("away", away),
        **_team_fields("home", home),
        "league_pace": anchors.pace,
        "league_ortg": anchors.ortg,
        "league_drtg": anchors.drtg,
        "league_three_par": anchors.three_par,
        "league_three_pct": anchors.three_pct,
        "league_ftr": anchors.ftr,
        "league_three_pct_stdev": anchors.three_pct_stdev,
    }
    try:
        return StatsBundle(**data)
    except ValidationError as e:
        raise DataFetchError(f"Stats bundle failed validation: {e}") from e


async def fetch_stats_bundle(
    ctx: RunCtx,
    client: Optional[MySportsFeedsClient] = None,
) -> StatsBundle:
    """
    Fetch and assemble the bundle for ``ctx.away`` at ``ctx.home``.

    Raises:
        DataFetchError: If a team is unknown or any team/window call fails
    """
    client = client or MySportsFeedsClient()
    away = resolve_abbrev(ctx.away)
    home = resolve_abbrev(ctx.home)
    if away == home:
        raise DataFetchError(f"Away and home resolve to the same team: {away}")
    season = get_mysportsfeeds_season(ctx.game_date) if ctx.game_date else None
    game_date = ctx.game_date or datetime.now(timezone.utc).date()

    plan = [(team, window) for team in (away, home) for window in WINDOWS]
    started = time.monotonic()
    results = await asyncio.gather(
        *(client.fetch_team_window(team, limit=WINDOWS[window], season=season) for team, window in plan)
    )

    payloads: Dict[str, Dict[str, Tuple[List[GameLine], Dict[int, GameLine]]]] = {away: {}, home: {}}
    for (team, window), result in zip(plan, results):
        payloads[team][window] = result

    bundle = build_bundle(
        build_snapshot(away, payloads[away], is_home=False, game_date=game_date),
        build_snapshot(home, payloads[home], is_home=True, game_date=game_date),
        anchors=ctx.league_anchors,
    )
    log_event(
        logger,
        logging.INFO,
        "stats bundle fetched",
        game_id=ctx.game_id,
        away=away,
        home=home,
        calls=len(plan),
        latency_ms=round((time.monotonic() - started) * 1000.0, 1),
    )
    return bundle
