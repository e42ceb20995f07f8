"""Tests for stats bundle assembly."""
from datetime import date

import pytest

from src.factors.models import LeagueAnchors, StatsBundle
from src.features.bundle import WINDOWS, build_bundle, build_snapshot, derive_league_anchors, fetch_stats_bundle
from src.ingestion.gamelogs import DataFetchError, aggregate_window, parse_gamelog


class FakeStatsClient:
    """Serves four early-December games per team through ``fetch_team_window``."""

    def __init__(self, gamelog_entry, fail_team=None, pts_by_team=None):
        self.gamelog_entry = gamelog_entry
        self.fail_team = fail_team
        self.pts_by_team = pts_by_team or {}
        self.calls = []

    def _games(self, team):
        lines, opponents = [], {}
        pts = self.pts_by_team.get(team, 110)
        for i in range(4):
            game_id = 1000 + i
            start = f"2025-12-0{4 - i}T00:30:00Z"
            is_home = i % 2 == 0
            lines.append(parse_gamelog(self.gamelog_entry(game_id, team, "MIA", is_home, start=start, pts=pts)))
            opponents[game_id] = parse_gamelog(
                self.gamelog_entry(game_id, "MIA", team, not is_home, start=start, pts=100, pts_against=pts)
            )
        return lines, opponents

    async def fetch_team_window(self, team, limit=None, season=None):
        self.calls.append((team, limit, season))
        if team == self.fail_team:
            raise DataFetchError(f"MySportsFeeds request failed for {team}")
        lines, opponents = self._games(team)
        return lines[:limit] if limit else lines, opponents


class TestFetchStatsBundle:
    @pytest.mark.asyncio
    async def test_six_calls_one_bundle(self, gamelog_entry, make_ctx):
        client = FakeStatsClient(gamelog_entry, pts_by_team={"BOS": 120, "LAL": 105})
        ctx = make_ctx("SPREAD", away="Boston Celtics", home="Lakers", game_date=date(2025, 12, 5))

        bundle = await fetch_stats_bundle(ctx, client)

        assert isinstance(bundle, StatsBundle)
        assert sorted(client.calls, key=str) == sorted(
            [(team, limit, "2025-2026-regular") for team in ("BOS", "LAL") for limit in WINDOWS.values()],
            key=str,
        )
        assert bundle.away_ppg == 120.0
        assert bundle.home_ppg == 105.0
        assert bundle.away_ortg_season > bundle.home_ortg_season
        assert bundle.league_ortg == pytest.approx((bundle.away_ortg_season + bundle.home_ortg_season) / 2)
        # Last game Dec 4, next game Dec 5
        assert bundle.away_rest_days == 0
        assert bundle.away_win_streak == 4
        assert bundle.home_last10_losses == 0

    @pytest.mark.asyncio
    async def test_explicit_anchors_win(self, gamelog_entry, make_ctx):
        anchors = LeagueAnchors(pace=101.0, ortg=115.0, drtg=115.0)
        ctx = make_ctx(game_date=date(2025, 12, 5), league_anchors=anchors)

        bundle = await fetch_stats_bundle(ctx, FakeStatsClient(gamelog_entry))

        assert bundle.league_pace == 101.0
        assert bundle.league_ortg == 115.0

    @pytest.mark.asyncio
    async def test_any_failed_call_fails_the_bundle(self, gamelog_entry, make_ctx):
        client = FakeStatsClient(gamelog_entry, fail_team="LAL")
        with pytest.raises(DataFetchError, match="LAL"):
            await fetch_stats_bundle(make_ctx(game_date=date(2025, 12, 5)), client)

    @pytest.mark.asyncio
    async def test_unknown_team(self, gamelog_entry, make_ctx):
        client = FakeStatsClient(gamelog_entry)
        with pytest.raises(DataFetchError, match="Unknown NBA team"):
            await fetch_stats_bundle(make_ctx(away="Seattle Supersonics"), client)
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_same_team_rejected(self, gamelog_entry, make_ctx):
        client = FakeStatsClient(gamelog_entry)
        with pytest.raises(DataFetchError, match="same team"):
            await fetch_stats_bundle(make_ctx(away="Lakers", home="LAL"), client)
        assert client.calls == []


class TestBuildBundle:
    def _snapshot(self, gamelog_entry, team, is_home, pts=110):
        client = FakeStatsClient(gamelog_entry, pts_by_team={team: pts})
        lines, opponents = client._games(team)
        windows = {"season": (lines, opponents), "last10": (lines, opponents), "last3": (lines[:3], opponents)}
        return build_snapshot(team, windows, is_home=is_home, game_date=date(2025, 12, 5))

    def test_venue_split_matches_role(self, gamelog_entry):
        away = self._snapshot(gamelog_entry, "BOS", is_home=False)
        home = self._snapshot(gamelog_entry, "LAL", is_home=True)
        bundle = build_bundle(away, home)

        assert bundle.away_ortg_venue is not None
        assert bundle.home_drtg_venue is not None
        assert bundle.away_three_pct_last10 == pytest.approx(14 / 35)

    def test_derive_league_anchors(self, gamelog_entry):
        away = aggregate_window("BOS", *FakeStatsClient(gamelog_entry, pts_by_team={"BOS": 120})._games("BOS"))
        home = aggregate_window("LAL", *FakeStatsClient(gamelog_entry, pts_by_team={"LAL": 100})._games("LAL"))
        anchors = derive_league_anchors(away, home)

        assert anchors.ortg == pytest.approx((away.ortg + home.ortg) / 2)
        assert anchors.three_pct_stdev == LeagueAnchors().three_pct_stdev

    def test_invalid_snapshot_is_fetch_error(self, gamelog_entry):
        away = self._snapshot(gamelog_entry, "BOS", is_home=False)
        home = self._snapshot(gamelog_entry, "LAL", is_home=True)
        with pytest.raises(DataFetchError, match="validation"):
            build_bundle(away, home, anchors=LeagueAnchors().model_copy(update={"pace": "fast"}))
