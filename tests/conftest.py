"""Shared pytest fixtures and configuration hooks."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Ensure the project root (which contains the `src` package) is importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT_STR = str(PROJECT_ROOT)
if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)


# =============================================================================
# Environment Variables Setup - MUST run before any src imports
# =============================================================================
# src/config.py builds Settings at import time and raises on missing required
# variables, so these have to be in os.environ first

TEST_ENV_VARS = {
    # Stats provider
    "MYSPORTSFEEDS_API_KEY": "test_msf_api_key_12345",
    "MYSPORTSFEEDS_BASE_URL": "https://api.mysportsfeeds.com/v2.1/pull/nba",
    "MYSPORTSFEEDS_SEASON": "2025-2026-regular",
    "STATS_TIMEOUT_SECONDS": "5",

    # Injury analysis
    "INJURY_ANALYZER": "deterministic",
    "LLM_API_KEY": "test_llm_api_key_12345",
    "LLM_BASE_URL": "https://llm.example.test/v1",
    "LLM_MODEL": "test-model",

    # Logging
    "LOG_LEVEL": "WARNING",
}

# Apply test environment variables
for key, value in TEST_ENV_VARS.items():
    if key not in os.environ:
        os.environ[key] = value


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Ensure test environment variables are set for each test."""
    for key, value in TEST_ENV_VARS.items():
        monkeypatch.setenv(key, value)


@pytest.fixture(autouse=True)
def fast_isolated_clients(monkeypatch):
    """No retry backoff, closed breakers and empty caches for every test."""
    from tenacity import wait_none

    from src.ingestion.mysportsfeeds import MySportsFeedsClient
    from src.injuries.llm import LLMClient
    from src.utils.circuit_breaker import reset_all_breakers

    monkeypatch.setattr(MySportsFeedsClient._fetch.retry, "wait", wait_none())
    monkeypatch.setattr(LLMClient._post.retry, "wait", wait_none())
    reset_all_breakers()
    MySportsFeedsClient.clear_player_cache()
    yield
    reset_all_breakers()
    MySportsFeedsClient.clear_player_cache()


# =============================================================================
# Bundle / context builders
# =============================================================================

def league_average_bundle_data(**overrides):
    """Every bundle field at league average, so each factor is neutral."""
    from src.factors.models import NBA_LEAGUE_AVERAGES, OPTIONAL_FIELD_FALLBACKS

    lg = NBA_LEAGUE_AVERAGES
    data = dict(OPTIONAL_FIELD_FALLBACKS)
    data.update(
        away_pace_season=lg["pace"],
        away_pace_last10=lg["pace"],
        home_pace_season=lg["pace"],
        home_pace_last10=lg["pace"],
        away_ortg_last10=lg["ortg"],
        home_ortg_last10=lg["ortg"],
        away_drtg_season=lg["drtg"],
        home_drtg_season=lg["drtg"],
        league_pace=lg["pace"],
        league_ortg=lg["ortg"],
        league_drtg=lg["drtg"],
        league_three_par=lg["three_par"],
        league_ftr=lg["ftr"],
    )
    data.update(overrides)
    return data


@pytest.fixture
def bundle_data():
    return league_average_bundle_data


@pytest.fixture
def make_bundle():
    from src.factors.models import StatsBundle

    def _make(**overrides):
        return StatsBundle(**league_average_bundle_data(**overrides))

    return _make


@pytest.fixture
def make_ctx():
    from src.factors.models import RunCtx

    def _make(bet_type="TOTAL", **overrides):
        fields = dict(game_id="test-game", away="BOS", home="LAL", bet_type=bet_type)
        fields.update(overrides)
        return RunCtx(**fields)

    return _make


# =============================================================================
# MySportsFeeds payload builders
# =============================================================================

def msf_gamelog_entry(
    game_id,
    team,
    opponent,
    is_home,
    start="2025-12-01T00:30:00.000Z",
    pts=110,
    pts_against=100,
    fga=90,
    fgm=40,
    fg3a=35,
    fg3m=14,
    fta=20,
    ftm=16,
    oreb=10,
    dreb=34,
    ast=25,
    tov=12,
    stl=8,
    blk=5,
):
    """One ``gamelogs[]`` element shaped like the MySportsFeeds response."""
    home, away = (team, opponent) if is_home else (opponent, team)
    return {
        "game": {
            "id": game_id,
            "startTime": start,
            "awayTeamAbbreviation": away,
            "homeTeamAbbreviation": home,
        },
        "team": {"abbreviation": team},
        "stats": {
            "fieldGoals": {"fgAtt": fga, "fgMade": fgm, "fg3PtAtt": fg3a, "fg3PtMade": fg3m},
            "freeThrows": {"ftAtt": fta, "ftMade": ftm},
            "rebounds": {"offReb": oreb, "defReb": dreb},
            "offense": {"pts": pts, "ast": ast},
            "defense": {"ptsAgainst": pts_against, "tov": tov, "stl": stl, "blk": blk},
        },
    }


def msf_player_entry(first, last, position, status=None, games=50, pts=1000, minutes=1500, stl=50, blk=25):
    """One ``playerStatsTotals[]`` element; ``minutes`` is the season total."""
    player = {"firstName": first, "lastName": last, "primaryPosition": position}
    if status is not None:
        player["currentInjury"] = {"description": "injury", "playingProbability": status}
    return {
        "player": player,
        "stats": {
            "gamesPlayed": games,
            "offense": {"pts": pts},
            "miscellaneous": {"minSeconds": minutes * 60},
            "defense": {"stl": stl, "blk": blk},
        },
    }


@pytest.fixture
def gamelog_entry():
    return msf_gamelog_entry


@pytest.fixture
def player_entry():
    return msf_player_entry
