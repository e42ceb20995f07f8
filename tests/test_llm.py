"""Tests for the LLM injury analyzer."""
import dataclasses
import json
from datetime import date
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from src.factors.models import InjuryFinding
from src.injuries.llm import (
    LLMClient,
    LLMError,
    LLMInjuryAnalyzer,
    ParseError,
    build_prompt,
    parse_llm_response,
)
from src.injuries.news import NewsAnalyzer

GOOD_CONTENT = json.dumps(
    {
        "away": {"key_absences": [{"player": "Jayson Tatum", "role": "wing defender", "status": "OUT"}],
                 "minutes_limits": [], "defense_impact_score": 0.6},
        "home": {"key_absences": [], "minutes_limits": [], "defense_impact_score": -0.1},
        "summary": "Boston without its best wing defender",
    }
)


def mock_llm_http(envelope=None, error=None):
    mock_response = Mock()
    mock_response.json.return_value = envelope
    mock_response.raise_for_status = Mock(side_effect=error)

    mock_client = AsyncMock()
    mock_client.__aenter__.return_value.post = AsyncMock(return_value=mock_response)
    return mock_client


def envelope(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class FakePlayerClient:
    def __init__(self, players_by_team):
        self.players_by_team = players_by_team

    async def fetch_team_players(self, team, season=None):
        return self.players_by_team.get(team, [])


class TestParseResponse:
    def test_valid(self):
        parsed = parse_llm_response(GOOD_CONTENT)
        assert parsed == {"away": 0.6, "home": -0.1, "summary": "Boston without its best wing defender"}

    def test_scores_clamped(self):
        content = json.dumps({"away": {"defense_impact_score": 1.7}, "home": {"defense_impact_score": -3}})
        parsed = parse_llm_response(content)
        assert parsed["away"] == 1.0
        assert parsed["home"] == -1.0
        assert parsed["summary"] == ""

    @pytest.mark.parametrize(
        "content,message",
        [
            ("not json", "malformed JSON"),
            ("[1, 2]", "expected object"),
            ('{"home": {"defense_impact_score": 0}}', "missing 'away'"),
            ('{"away": {"defense_impact_score": "high"}, "home": {"defense_impact_score": 0}}', "non-numeric"),
            ('{"away": {"defense_impact_score": true}, "home": {"defense_impact_score": 0}}', "non-numeric"),
            ('{"away": {"defense_impact_score": Infinity}, "home": {"defense_impact_score": 0}}', "non-finite"),
        ],
    )
    def test_invalid(self, content, message):
        with pytest.raises(ParseError, match=message):
            parse_llm_response(content)

    def test_parse_error_is_llm_error(self):
        with pytest.raises(LLMError):
            parse_llm_response(None)


def test_build_prompt(make_ctx):
    findings = [
        InjuryFinding(team="BOS", player="Jayson Tatum", status="OUT", ppg=27.0, mpg=36.0),
        InjuryFinding(team="LAL", player="Anthony Davis", status="doubtful", minutes_impact=-1.0),
    ]
    prompt = build_prompt(make_ctx(game_date=date(2025, 12, 5)), findings)

    assert "BOS at LAL (date 2025-12-05)" in prompt
    assert "[BOS] Jayson Tatum (OUT) - 27.0 PPG, 36.0 MPG" in prompt
    assert "[LAL] Anthony Davis (doubtful) - -1.0 impact" in prompt
    assert "No reported absences." in build_prompt(make_ctx(), [])


class TestLLMClient:
    def test_requires_api_key(self, monkeypatch):
        from src.injuries import llm

        monkeypatch.setattr(llm, "settings", dataclasses.replace(llm.settings, llm_api_key=None))
        with pytest.raises(LLMError, match="LLM_API_KEY"):
            LLMClient()

    @pytest.mark.asyncio
    async def test_complete_json(self):
        mock_client = mock_llm_http(envelope(GOOD_CONTENT))
        with patch("httpx.AsyncClient", return_value=mock_client):
            content = await LLMClient().complete_json("prompt text")

        assert content == GOOD_CONTENT
        post = mock_client.__aenter__.return_value.post
        assert post.call_args.args[0] == "https://llm.example.test/v1/chat/completions"
        payload = post.call_args.kwargs["json"]
        assert payload["model"] == "test-model"
        assert payload["temperature"] == 0.1
        assert payload["messages"] == [{"role": "user", "content": "prompt text"}]

    @pytest.mark.asyncio
    async def test_http_failure_raises_llm_error(self):
        request = httpx.Request("POST", "https://llm.example.test/v1/chat/completions")
        error = httpx.HTTPStatusError("429", request=request, response=httpx.Response(429, request=request))
        mock_client = mock_llm_http(error=error)

        with patch("httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(LLMError, match="LLM request failed"):
                await LLMClient().complete_json("prompt")
        assert mock_client.__aenter__.return_value.post.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout_raises_llm_error(self):
        mock_client = AsyncMock()
        mock_client.__aenter__.return_value.post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch("httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(LLMError):
                await LLMClient().complete_json("prompt")

    @pytest.mark.asyncio
    async def test_missing_content_is_parse_error(self):
        with patch("httpx.AsyncClient", return_value=mock_llm_http({"choices": []})):
            with pytest.raises(ParseError, match="no message content"):
                await LLMClient().complete_json("prompt")


class TestLLMInjuryAnalyzer:
    @pytest.mark.asyncio
    async def test_analyze(self, make_ctx, player_entry):
        players = FakePlayerClient({"BOS": [player_entry("Jayson", "Tatum", "SF", status="OUT")]})
        llm = Mock()
        llm.complete_json = AsyncMock(return_value=GOOD_CONTENT)

        impact = await LLMInjuryAnalyzer(players, llm=llm).analyze(make_ctx("SPREAD"))

        assert impact.source == "llm"
        assert impact.away == 0.6
        assert impact.home == -0.1
        assert impact.away_raw is None
        assert impact.raw_response == GOOD_CONTENT
        assert [f.player for f in impact.findings] == ["Jayson Tatum"]
        assert "Jayson Tatum (OUT)" in llm.complete_json.call_args.args[0]

    @pytest.mark.asyncio
    async def test_news_findings_reach_the_prompt(self, make_ctx):
        async def search(query):
            if query.startswith("LAL"):
                return [{"player": "Anthony Davis", "text": "Davis out"}]
            return []

        llm = Mock()
        llm.complete_json = AsyncMock(return_value=GOOD_CONTENT)
        analyzer = LLMInjuryAnalyzer(FakePlayerClient({}), llm=llm, news=NewsAnalyzer(search_fn=search))

        impact = await analyzer.analyze(make_ctx())

        assert [f.player for f in impact.findings] == ["Anthony Davis"]
        assert "[LAL] Anthony Davis (out)" in llm.complete_json.call_args.args[0]

    @pytest.mark.asyncio
    async def test_bad_answer_fails(self, make_ctx):
        llm = Mock()
        llm.complete_json = AsyncMock(return_value="I think Boston is hurt")
        with pytest.raises(ParseError):
            await LLMInjuryAnalyzer(FakePlayerClient({}), llm=llm).analyze(make_ctx())

    @pytest.mark.asyncio
    async def test_llm_failure_propagates(self, make_ctx):
        llm = Mock()
        llm.complete_json = AsyncMock(side_effect=LLMError("LLM request failed: timeout"))
        with pytest.raises(LLMError):
            await LLMInjuryAnalyzer(FakePlayerClient({}), llm=llm).analyze(make_ctx())
