"""
Team name reconciliation for the stats provider.

Callers pass whatever the upstream schedule uses ("Los Angeles Lakers",
"Lakers", "LAL", "GS"). MySportsFeeds filters by its own abbreviations, so
everything is resolved to those before a request is built.
"""
from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class TeamInfo:
    abbrev: str
    full: str
    city: str
    nickname: str


NBA_TEAMS: dict[str, TeamInfo] = {
    t.abbrev: t
    for t in (
        TeamInfo("ATL", "Atlanta Hawks", "Atlanta", "Hawks"),
        TeamInfo("BOS", "Boston Celtics", "Boston", "Celtics"),
        TeamInfo("BRO", "Brooklyn Nets", "Brooklyn", "Nets"),
        TeamInfo("CHA", "Charlotte Hornets", "Charlotte", "Hornets"),
        TeamInfo("CHI", "Chicago Bulls", "Chicago", "Bulls"),
        TeamInfo("CLE", "Cleveland Cavaliers", "Cleveland", "Cavaliers"),
        TeamInfo("DAL", "Dallas Mavericks", "Dallas", "Mavericks"),
        TeamInfo("DEN", "Denver Nuggets", "Denver", "Nuggets"),
        TeamInfo("DET", "Detroit Pistons", "Detroit", "Pistons"),
        TeamInfo("GSW", "Golden State Warriors", "Golden State", "Warriors"),
        TeamInfo("HOU", "Houston Rockets", "Houston", "Rockets"),
        TeamInfo("IND", "Indiana Pacers", "Indiana", "Pacers"),
        TeamInfo("LAC", "Los Angeles Clippers", "Los Angeles", "Clippers"),
        TeamInfo("LAL", "Los Angeles Lakers", "Los Angeles", "Lakers"),
        TeamInfo("MEM", "Memphis Grizzlies", "Memphis", "Grizzlies"),
        TeamInfo("MIA", "Miami Heat", "Miami", "Heat"),
        TeamInfo("MIL", "Milwaukee Bucks", "Milwaukee", "Bucks"),
        TeamInfo("MIN", "Minnesota Timberwolves", "Minnesota", "Timberwolves"),
        TeamInfo("NOP", "New Orleans Pelicans", "New Orleans", "Pelicans"),
        TeamInfo("NYK", "New York Knicks", "New York", "Knicks"),
        TeamInfo("OKL", "Oklahoma City Thunder", "Oklahoma City", "Thunder"),
        TeamInfo("ORL", "Orlando Magic", "Orlando", "Magic"),
        TeamInfo("PHI", "Philadelphia 76ers", "Philadelphia", "76ers"),
        TeamInfo("PHX", "Phoenix Suns", "Phoenix", "Suns"),
        TeamInfo("POR", "Portland Trail Blazers", "Portland", "Trail Blazers"),
        TeamInfo("SAC", "Sacramento Kings", "Sacramento", "Kings"),
        TeamInfo("SAS", "San Antonio Spurs", "San Antonio", "Spurs"),
        TeamInfo("TOR", "Toronto Raptors", "Toronto", "Raptors"),
        TeamInfo("UTA", "Utah Jazz", "Utah", "Jazz"),
        TeamInfo("WAS", "Washington Wizards", "Washington", "Wizards"),
    )
}

# Alternate abbreviations seen in odds feeds and box scores
ALIASES = {
    "BKN": "BRO",
    "GS": "GSW",
    "NO": "NOP",
    "NOR": "NOP",
    "NY": "NYK",
    "OKC": "OKL",
    "SA": "SAS",
    "UTAH": "UTA",
    "WSH": "WAS",
    "PHO": "PHX",
    "LA CLIPPERS": "LAC",
    "LA LAKERS": "LAL",
}

VARIANT_TO_ABBREV: dict[str, str] = {}
for _abbrev, _team in NBA_TEAMS.items():
    for _variant in (_abbrev, _team.full, _team.nickname):
        VARIANT_TO_ABBREV[_variant.lower()] = _abbrev
for _alias, _abbrev in ALIASES.items():
    VARIANT_TO_ABBREV[_alias.lower()] = _abbrev


def find_best_match(query: str, candidates: Iterable[str], threshold: float = 0.8) -> Optional[str]:
    """Best fuzzy match for ``query`` above ``threshold`` similarity, or None."""
    matches = difflib.get_close_matches(query, list(candidates), n=1, cutoff=threshold)
    return matches[0] if matches else None


def resolve_team(team_name: str) -> TeamInfo:
    """
    Resolve any team name variant to its TeamInfo.

    Examples:
        >>> resolve_team("Lakers").abbrev
        'LAL'
        >>> resolve_team("okc").abbrev
        'OKL'

    Raises:
        ValueError: If the name is empty or matches no NBA team
    """
    if not team_name or not team_name.strip():
        raise ValueError("Team name input is required")

    key = team_name.lower().strip()
    abbrev = VARIANT_TO_ABBREV.get(key)
    if abbrev is None:
        best = find_best_match(key, VARIANT_TO_ABBREV.keys())
        if best is None:
            raise ValueError(f"Unknown NBA team: {team_name!r}")
        abbrev = VARIANT_TO_ABBREV[best]
    return NBA_TEAMS[abbrev]


def normalize_team_name(team_name: str) -> str:
    """Resolve a team name variant to its MySportsFeeds abbreviation."""
    return resolve_team(team_name).abbrev


def are_same_team(team1: str, team2: str) -> bool:
    try:
        return normalize_team_name(team1) == normalize_team_name(team2)
    except ValueError:
        return False
