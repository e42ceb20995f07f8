"""
MySportsFeeds v2.1 client for the NBA stats bundle.

ENDPOINTS USED:
    team_gamelogs.json        - per-game team box scores (filter by team, game ids)
    player_stats_totals.json  - season player totals incl. currentInjury

Every request is Basic-authenticated with "<api key>:MYSPORTSFEEDS", retried
with exponential backoff, and guarded by the "mysportsfeeds" circuit breaker.
Any failure that survives the retries surfaces as DataFetchError; callers
never get partial data back.

Usage:
    from src.ingestion.mysportsfeeds import MySportsFeedsClient

    client = MySportsFeedsClient()
    lines, opponents = await client.fetch_team_window("BOS", limit=10)
    players = await client.fetch_team_players("BOS")
"""

from __future__ import annotations

import base64
import time
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.config import settings
from src.ingestion.gamelogs import DataFetchError, GameLine, parse_gamelogs
from src.utils.circuit_breaker import CircuitBreakerConfig, CircuitBreakerError, get_breaker
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Player injury status changes quickly; keep the roster cache short
PLAYER_CACHE_TTL_SECONDS = 5 * 60


def basic_auth_header(api_key: str) -> str:
    token = base64.b64encode(f"{api_key}:MYSPORTSFEEDS".encode()).decode()
    return f"Basic {token}"


class MySportsFeedsClient:
    """Async client for the MySportsFeeds NBA pull API."""

    _player_cache: Dict[str, Tuple[float, List[Dict[str, Any]]]] = {}
    _player_cache_lock = Lock()

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        season: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.mysportsfeeds_base_url).rstrip("/")
        self.season = season or settings.mysportsfeeds_season
        self.timeout = timeout or settings.stats_timeout_seconds
        self.headers = {
            "Accept": "application/json",
            "Authorization": basic_auth_header(api_key or settings.mysportsfeeds_api_key),
        }
        self.breaker = get_breaker(
            "mysportsfeeds",
            CircuitBreakerConfig(
                failure_threshold=5,
                success_threshold=2,
                timeout=60.0,
                expected_exception=(httpx.HTTPError, RetryError),
            ),
        )

    # =========================================================================
    # CORE HTTP METHOD
    # =========================================================================

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def _fetch(
        self, endpoint: str, params: dict[str, Any] | None = None, season: str | None = None
    ) -> dict[str, Any]:
        """Make one HTTP request to MySportsFeeds."""
        url = f"{self.base_url}/{season or self.season}/{endpoint}"
        logger.debug(f"Fetching endpoint: {url} with params: {params}")
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            resp = await client.get(url, params=params or {})
            if resp.status_code == 204:
                # No content is a valid "nothing for this filter" answer
                return {}
            resp.raise_for_status()
            return resp.json()

    async def fetch_json(
        self, endpoint: str, params: dict[str, Any] | None = None, season: str | None = None
    ) -> dict[str, Any]:
        """Breaker-guarded fetch that reports every failure as DataFetchError."""
        try:
            data = await self.breaker.call_async(self._fetch, endpoint, params, season)
        except CircuitBreakerError as e:
            raise DataFetchError(str(e)) from e
        except (httpx.HTTPError, RetryError) as e:
            raise DataFetchError(f"MySportsFeeds request failed for {endpoint}: {e}") from e
        except ValueError as e:
            raise DataFetchError(f"MySportsFeeds returned invalid JSON for {endpoint}: {e}") from e
        if not isinstance(data, dict):
            raise DataFetchError(f"Unexpected MySportsFeeds payload for {endpoint}: {type(data).__name__}")
        return data

    # =========================================================================
    # GAME LOGS
    # =========================================================================

    async def fetch_team_gamelogs(
        self, team: str, limit: int | None = None, season: str | None = None
    ) -> List[GameLine]:
        """Most recent game logs for ``team`` (all season when ``limit`` is None)."""
        params: dict[str, Any] = {"team": team, "sort": "game.starttime.D"}
        if limit:
            params["limit"] = limit
        data = await self.fetch_json("team_gamelogs.json", params, season)
        lines = parse_gamelogs(data)
        logger.info(f"Fetched {len(lines)} game logs for {team} (limit={limit})")
        return lines

    async def fetch_game_gamelogs(
        self, game_ids: List[int], season: str | None = None
    ) -> List[GameLine]:
        """Both teams' lines for the given games."""
        if not game_ids:
            return []
        params = {"game": ",".join(str(g) for g in game_ids)}
        data = await self.fetch_json("team_gamelogs.json", params, season)
        return parse_gamelogs(data)

    async def fetch_team_window(
        self, team: str, limit: int | None = None, season: str | None = None
    ) -> Tuple[List[GameLine], Dict[int, GameLine]]:
        """
        A team's lines for one window plus the opponent line of each game.

        Raises:
            DataFetchError: If either call fails or the team has no games
        """
        lines = await self.fetch_team_gamelogs(team, limit=limit, season=season)
        if not lines:
            raise DataFetchError(f"No game logs returned for {team} (limit={limit})")
        both = await self.fetch_game_gamelogs([line.game_id for line in lines], season=season)
        opponents = {line.game_id: line for line in both if line.team != team}
        return lines, opponents

    # =========================================================================
    # PLAYERS
    # =========================================================================

    async def fetch_team_players(self, team: str, season: str | None = None) -> List[Dict[str, Any]]:
        """Season player totals for ``team``, cached for five minutes."""
        cache_key = f"{season or self.season}:{team}"
        now = time.time()
        with self._player_cache_lock:
            cached = self._player_cache.get(cache_key)
            if cached and now - cached[0] < PLAYER_CACHE_TTL_SECONDS:
                logger.debug(f"Player stats cache hit for {team}")
                return cached[1]

        data = await self.fetch_json("player_stats_totals.json", {"team": team}, season)
        players = data.get("playerStatsTotals") or []
        with self._player_cache_lock:
            self._player_cache[cache_key] = (now, players)
        logger.info(f"Fetched player stats for {team}: {len(players)} players")
        return players

    @classmethod
    def clear_player_cache(cls) -> None:
        with cls._player_cache_lock:
            cls._player_cache.clear()
