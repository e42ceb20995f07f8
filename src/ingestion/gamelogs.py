"""
Box score derivations over MySportsFeeds team game logs.

The provider returns raw counting stats per team per game. Everything the
factors consume (pace, ratings, shooting rates, rebound shares, schedule
context) is derived here, without any network access:

    possessions = FGA + 0.44*FTA - OREB + TOV
    pace        = (team possessions + opponent possessions) / 2
    ORtg        = PTS / possessions * 100
    DRtg        = opponent PTS / opponent possessions * 100

Per-game pace and ratings are averaged across the window; shooting rates are
computed from window totals.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd


class DataFetchError(Exception):
    """A required stats call failed or returned unusable data."""
    pass


@dataclass(frozen=True)
class GameLine:
    """One team's box score line for one game."""

    game_id: int
    start_time: datetime
    team: str
    opponent: str
    is_home: bool
    pts: float
    opp_pts: float
    fga: float
    fgm: float
    fg3a: float
    fg3m: float
    fta: float
    ftm: float
    oreb: float
    dreb: float
    ast: float
    tov: float
    stl: float
    blk: float

    @property
    def possessions(self) -> float:
        return possessions(self.fga, self.fta, self.oreb, self.tov)

    @property
    def won(self) -> bool:
        return self.pts > self.opp_pts


@dataclass(frozen=True)
class TeamWindowStats:
    """Derived team statistics over one window of games (season, last-10, last-3)."""

    team: str
    games: int
    pace: float
    ortg: float
    drtg: float
    ppg: float
    opp_ppg: float
    fg_pct: float
    three_pct: float
    three_par: float
    ftr: float
    ft_pct: float
    efg: float
    tov: float
    tov_pct: float
    ast: float
    stl: float
    blk: float
    oreb: float
    dreb: float
    # From opponent lines; None when no opponent line was available
    opp_oreb: Optional[float] = None
    opp_dreb: Optional[float] = None
    opp_three_par: Optional[float] = None
    opp_three_pct: Optional[float] = None
    opp_fg_pct: Optional[float] = None
    opp_ftr: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def possessions(fga: float, fta: float, oreb: float, tov: float) -> float:
    return fga + 0.44 * fta - oreb + tov


def _num(block: Dict[str, Any], key: str, where: str) -> float:
    value = block.get(key, 0)
    if value is None:
        return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise DataFetchError(f"Non-numeric {key!r} in {where}: {value!r}") from None
    if not math.isfinite(out):
        raise DataFetchError(f"Non-finite {key!r} in {where}: {value!r}")
    return out


def _parse_time(value: Any) -> datetime:
    if not value:
        raise DataFetchError("Game log entry has no start time")
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise DataFetchError(f"Unparseable game start time: {value!r}") from None


def parse_gamelog(entry: Dict[str, Any]) -> GameLine:
    """Convert one ``gamelogs[]`` element into a GameLine."""
    try:
        game = entry["game"]
        team = entry["team"]["abbreviation"]
        stats = entry["stats"]
    except (KeyError, TypeError):
        raise DataFetchError("Malformed game log entry (missing game/team/stats)") from None

    where = f"game {game.get('id')} ({team})"
    fg = stats.get("fieldGoals") or {}
    ft = stats.get("freeThrows") or {}
    reb = stats.get("rebounds") or {}
    off = stats.get("offense") or {}
    dfn = stats.get("defense") or {}

    is_home = game.get("homeTeamAbbreviation") == team
    opponent = game.get("awayTeamAbbreviation") if is_home else game.get("homeTeamAbbreviation")

    return GameLine(
        game_id=int(game.get("id", 0)),
        start_time=_parse_time(game.get("startTime")),
        team=team,
        opponent=opponent or "",
        is_home=is_home,
        pts=_num(off, "pts", where),
        opp_pts=_num(dfn, "ptsAgainst", where),
        fga=_num(fg, "fgAtt", where),
        fgm=_num(fg, "fgMade", where),
        fg3a=_num(fg, "fg3PtAtt", where),
        fg3m=_num(fg, "fg3PtMade", where),
        fta=_num(ft, "ftAtt", where),
        ftm=_num(ft, "ftMade", where),
        oreb=_num(reb, "offReb", where),
        dreb=_num(reb, "defReb", where),
        ast=_num(off, "ast", where),
        tov=_num(dfn, "tov", where),
        stl=_num(dfn, "stl", where),
        blk=_num(dfn, "blk", where),
    )


def parse_gamelogs(payload: Dict[str, Any]) -> List[GameLine]:
    return [parse_gamelog(entry) for entry in payload.get("gamelogs") or []]


def _ratio(num: float, den: float) -> float:
    return float(num / den) if den else 0.0


def aggregate_window(
    team: str,
    lines: Iterable[GameLine],
    opponent_lines: Optional[Dict[int, GameLine]] = None,
) -> TeamWindowStats:
    """
    Aggregate a team's lines into window statistics.

    ``opponent_lines`` maps game id to the opponent's line for that game. When
    it is missing for a game, opponent possessions fall back to the team's own
    and the opponent-derived fields only use games that have a line.

    Raises:
        DataFetchError: If there are no lines for the team
    """
    own = [line for line in lines if line.team == team]
    if not own:
        raise DataFetchError(f"No game logs found for {team}")
    opponent_lines = opponent_lines or {}

    df = pd.DataFrame([asdict(line) for line in own])
    df["poss"] = possessions(df["fga"], df["fta"], df["oreb"], df["tov"])

    opp = [opponent_lines.get(line.game_id) for line in own]
    df["opp_poss"] = [o.possessions if o is not None else np.nan for o in opp]
    df["opp_poss"] = df["opp_poss"].fillna(df["poss"])

    df["pace"] = (df["poss"] + df["opp_poss"]) / 2.0
    df["ortg"] = np.where(df["poss"] > 0, df["pts"] / df["poss"] * 100.0, 0.0)
    df["drtg"] = np.where(df["opp_poss"] > 0, df["opp_pts"] / df["opp_poss"] * 100.0, 0.0)

    games = len(df)
    totals = df[["fga", "fgm", "fg3a", "fg3m", "fta", "ftm", "tov", "poss"]].sum()

    stats = dict(
        team=team,
        games=games,
        pace=float(df["pace"].mean()),
        ortg=float(df["ortg"].mean()),
        drtg=float(df["drtg"].mean()),
        ppg=float(df["pts"].mean()),
        opp_ppg=float(df["opp_pts"].mean()),
        fg_pct=_ratio(totals["fgm"], totals["fga"]),
        three_pct=_ratio(totals["fg3m"], totals["fg3a"]),
        three_par=_ratio(totals["fg3a"], totals["fga"]),
        ftr=_ratio(totals["fta"], totals["fga"]),
        ft_pct=_ratio(totals["ftm"], totals["fta"]),
        efg=_ratio(totals["fgm"] + 0.5 * totals["fg3m"], totals["fga"]),
        tov=float(df["tov"].mean()),
        tov_pct=_ratio(totals["tov"], totals["poss"]),
        ast=float(df["ast"].mean()),
        stl=float(df["stl"].mean()),
        blk=float(df["blk"].mean()),
        oreb=float(df["oreb"].mean()),
        dreb=float(df["dreb"].mean()),
    )

    matched = [o for o in opp if o is not None]
    if matched:
        odf = pd.DataFrame([asdict(o) for o in matched])
        o_tot = odf[["fga", "fgm", "fg3a", "fg3m", "fta"]].sum()
        stats.update(
            opp_oreb=float(odf["oreb"].mean()),
            opp_dreb=float(odf["dreb"].mean()),
            opp_three_par=_ratio(o_tot["fg3a"], o_tot["fga"]),
            opp_three_pct=_ratio(o_tot["fg3m"], o_tot["fg3a"]),
            opp_fg_pct=_ratio(o_tot["fgm"], o_tot["fga"]),
            opp_ftr=_ratio(o_tot["fta"], o_tot["fga"]),
        )

    return TeamWindowStats(**stats)


def venue_ratings(
    team: str,
    lines: Iterable[GameLine],
    opponent_lines: Optional[Dict[int, GameLine]],
    home: bool,
) -> Optional[Dict[str, float]]:
    """ORtg/DRtg over the team's home (``home=True``) or road games only."""
    venue = [line for line in lines if line.team == team and line.is_home == home]
    if not venue:
        return None
    stats = aggregate_window(team, venue, opponent_lines)
    return {"ortg": stats.ortg, "drtg": stats.drtg}


@dataclass(frozen=True)
class ScheduleContext:
    rest_days: Optional[int]
    back_to_back: bool
    win_streak: int  # positive = wins in a row, negative = losses
    last10_wins: int
    last10_losses: int


def schedule_context(team: str, lines: Iterable[GameLine], game_date: date) -> ScheduleContext:
    """Rest, streak and last-10 record from games played before ``game_date``."""
    played = sorted(
        (line for line in lines if line.team == team and line.start_time.date() < game_date),
        key=lambda line: line.start_time,
        reverse=True,
    )

    rest_days: Optional[int] = None
    if played:
        rest_days = max(0, (game_date - played[0].start_time.date()).days - 1)

    streak = 0
    for line in played:
        if streak == 0:
            streak = 1 if line.won else -1
        elif (streak > 0) == line.won:
            streak += 1 if line.won else -1
        else:
            break

    last10 = played[:10]
    wins = sum(1 for line in last10 if line.won)
    return ScheduleContext(
        rest_days=rest_days,
        back_to_back=rest_days == 0,
        win_streak=streak,
        last10_wins=wins,
        last10_losses=len(last10) - wins,
    )
