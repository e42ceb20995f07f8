"""
Injury news search and per-100 edge calculation.

The actual search backend is injected: any async callable that takes a query
string and returns a list of result dicts. Each result is expected to carry
``player`` and ``text`` keys and may carry ``url`` and ``published`` (ISO
timestamp). Results without a player are ignored.

Impact model (per 100 possessions):
    star -2.0, starter -1.0, bench -0.5, unknown -1.0 when out/doubtful
    half of that when questionable
    +0.5 for a player returning on a minutes restriction
    total edge capped at +/-3.0

Usage:
    analyzer = NewsAnalyzer(search_fn=my_search, roster={"BOS": {"Jayson Tatum": "star"}})
    away_edge, home_edge = await analyzer.matchup_news("BOS", "LAL")
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Tuple

from src.factors.models import InjuryFinding
from src.utils.logging import get_logger, log_event

logger = get_logger(__name__)

InjuryStatus = Literal["out", "doubtful", "questionable", "probable", "available"]
PlayerRole = Literal["star", "starter", "bench", "unknown"]
PlayerRoster = Dict[str, Dict[str, PlayerRole]]
SearchFn = Callable[[str], Awaitable[List[Dict[str, Any]]]]

# Impact per role when the player is out (per 100 possessions)
IMPACT_BY_ROLE: Dict[str, float] = {
    "star": -2.0,
    "starter": -1.0,
    "bench": -0.5,
    "unknown": -1.0,
}

RETURNING_IMPACT = 0.5
EDGE_CAP = 3.0
NEWS_CACHE_TTL_SECONDS = 30 * 60
DEFAULT_WINDOW_HOURS = 48

# Ranked; earlier sources win when the same player shows up twice
NEWS_SOURCES = (
    "https://www.nba.com/injury-report",
    "https://www.espn.com/nba/injuries",
    "https://www.rotowire.com/basketball/injuries.php",
)

_STATUS_KEYWORDS: Tuple[Tuple[InjuryStatus, re.Pattern], ...] = (
    ("out", re.compile(r"\bout\b")),
    ("doubtful", re.compile(r"\bdoubtful\b")),
    ("questionable", re.compile(r"\bquestionable\b")),
    ("probable", re.compile(r"\bprobable\b")),
)

_RETURNING = re.compile(r"\b(return|returning|returns|minutes restriction|minutes limit)\b")


def calculate_minutes_impact(status: str, role: str, returning: bool = False) -> float:
    """Edge per 100 possessions for one player's status."""
    if status in ("available", "probable"):
        return 0.0
    if returning and status in ("questionable", "doubtful"):
        return RETURNING_IMPACT
    impact = IMPACT_BY_ROLE.get(role, IMPACT_BY_ROLE["unknown"])
    if status in ("out", "doubtful"):
        return impact
    if status == "questionable":
        return impact / 2.0
    return 0.0


def calculate_news_edge(findings: List[InjuryFinding]) -> float:
    total = sum(f.minutes_impact for f in findings)
    return max(-EDGE_CAP, min(EDGE_CAP, total))


def build_search_queries(team: str, opponent: str, window_hours: int) -> List[str]:
    return [
        f"{team} injury report last {window_hours} hours",
        f"{team} vs {opponent} injuries",
        f"{team} status questionable doubtful out minutes restriction",
    ]


def parse_injury_status(text: str) -> InjuryStatus:
    lower = text.lower()
    for status, pattern in _STATUS_KEYWORDS:
        if pattern.search(lower):
            return status
    return "available"


def get_player_role(player: str, team: str, roster: Optional[PlayerRoster] = None) -> PlayerRole:
    if not roster or team not in roster:
        return "unknown"
    return roster[team].get(player, "unknown")


def _cache_key(team: str, opponent: str, window_hours: int) -> str:
    return hashlib.sha1(f"{team}:{opponent}:{window_hours}".encode()).hexdigest()


def _published(item: Dict[str, Any]) -> Optional[datetime]:
    value = item.get("published")
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class NewsEdge:
    ok: bool
    findings: Tuple[InjuryFinding, ...] = ()
    edge_per_100: float = 0.0
    window_hours: int = DEFAULT_WINDOW_HOURS
    latency_ms: float = 0.0
    cache: Literal["hit", "miss"] = "miss"
    error: Optional[str] = None


@dataclass
class NewsAnalyzer:
    """
    Searches injury news for a team and turns it into a capped edge.

    Search failures do not raise: the result comes back with ``ok=False`` and
    zero edge so the caller can decide what to do with it. Successful results
    are cached in memory for ``ttl_seconds``.
    """

    search_fn: SearchFn
    roster: Optional[PlayerRoster] = None
    ttl_seconds: float = NEWS_CACHE_TTL_SECONDS
    _cache: Dict[str, Tuple[float, NewsEdge]] = field(default_factory=dict, repr=False)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def _get_cached(self, key: str) -> Optional[NewsEdge]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if time.time() - stored_at > self.ttl_seconds:
                del self._cache[key]
                return None
            return value

    def _set_cached(self, key: str, value: NewsEdge) -> None:
        with self._lock:
            self._cache[key] = (time.time(), value)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _findings_from_results(
        self, team: str, results: List[Dict[str, Any]], window_hours: int
    ) -> List[InjuryFinding]:
        cutoff = datetime.now(timezone.utc) - timedelta(hours=window_hours)
        seen: Dict[str, InjuryFinding] = {}
        for item in results:
            player = (item.get("player") or "").strip()
            if not player or player in seen:
                continue
            published = _published(item)
            if published is not None and published < cutoff:
                continue
            text = str(item.get("text") or item.get("title") or "")
            status = parse_injury_status(text)
            returning = bool(_RETURNING.search(text.lower()))
            role = get_player_role(player, team, self.roster)
            seen[player] = InjuryFinding(
                team=team,
                player=player,
                status=status,
                minutes_impact=calculate_minutes_impact(status, role, returning),
                source_url=item.get("url"),
            )
        return list(seen.values())

    async def search_injuries(
        self, team: str, opponent: str = "", window_hours: int = DEFAULT_WINDOW_HOURS
    ) -> NewsEdge:
        started = time.monotonic()
        key = _cache_key(team, opponent, window_hours)
        cached = self._get_cached(key)
        if cached is not None:
            return replace(cached, cache="hit", latency_ms=round((time.monotonic() - started) * 1000.0, 1))

        try:
            batches = await asyncio.gather(
                *(self.search_fn(q) for q in build_search_queries(team, opponent, window_hours))
            )
        except Exception as e:
            log_event(
                logger,
                logging.WARNING,
                "injury news search failed",
                team=team,
                opponent=opponent,
                window_hours=window_hours,
                error=str(e),
            )
            return NewsEdge(
                ok=False,
                window_hours=window_hours,
                latency_ms=round((time.monotonic() - started) * 1000.0, 1),
                error=str(e),
            )

        results = [item for batch in batches for item in (batch or [])]
        findings = self._findings_from_results(team, results, window_hours)
        edge = NewsEdge(
            ok=True,
            findings=tuple(findings),
            edge_per_100=calculate_news_edge(findings),
            window_hours=window_hours,
            latency_ms=round((time.monotonic() - started) * 1000.0, 1),
        )
        self._set_cached(key, edge)
        log_event(
            logger,
            logging.INFO,
            "injury news searched",
            team=team,
            opponent=opponent,
            window_hours=window_hours,
            findings=len(findings),
            edge_per_100=edge.edge_per_100,
            latency_ms=edge.latency_ms,
        )
        return edge

    async def matchup_news(
        self, away: str, home: str, window_hours: int = DEFAULT_WINDOW_HOURS
    ) -> Tuple[NewsEdge, NewsEdge]:
        away_edge, home_edge = await asyncio.gather(
            self.search_injuries(away, home, window_hours),
            self.search_injuries(home, away, window_hours),
        )
        return away_edge, home_edge
