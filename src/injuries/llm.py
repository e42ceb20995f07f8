"""
LLM-backed injury impact (opt-in with INJURY_ANALYZER=llm).

The model sees the reported absences for both teams (player feed, plus news
findings when a NewsAnalyzer is configured) and must answer with strict JSON:

    {
      "away": {"key_absences": [...], "minutes_limits": [...], "defense_impact_score": -1..1},
      "home": {"key_absences": [...], "minutes_limits": [...], "defense_impact_score": -1..1},
      "summary": "..."
    }

There is no fallback on this path. A failed call raises LLMError, an
unusable answer raises ParseError, and either one fails the scoring run.
"""
from __future__ import annotations

import asyncio
import json
import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.config import settings
from src.factors.models import InjuryFinding, InjuryImpact, RunCtx
from src.factors.scaling import clamp
from src.features.bundle import resolve_abbrev
from src.injuries.deterministic import parse_player, team_injury_total
from src.injuries.news import NewsAnalyzer
from src.ingestion.mysportsfeeds import MySportsFeedsClient
from src.utils.circuit_breaker import CircuitBreakerConfig, CircuitBreakerError, get_breaker
from src.utils.logging import get_logger, log_event

logger = get_logger(__name__)

LLM_TEMPERATURE = 0.1


class LLMError(Exception):
    """The LLM call failed or timed out."""
    pass


class ParseError(LLMError):
    """The LLM answered with malformed JSON or the wrong shape."""
    pass


PROMPT_TEMPLATE = """You are an NBA availability parser. Return JSON only.

Given these reported absences for {away} at {home} (date {game_date}), produce:
{{
  "away": {{
    "key_absences": [{{"player": "Player Name", "role": "rim protector", "status": "OUT"}}],
    "minutes_limits": [{{"player": "Player Name", "limit": 28}}],
    "defense_impact_score": 0.0
  }},
  "home": {{ same shape as "away" }},
  "summary": "one sentence"
}}

defense_impact_score is in [-1, 1]; positive means that team's defense is weaker tonight.
Heavily weight absences of rim protection and top wing defenders. If information is uncertain, return 0.
TEXT:
<<<
{text}
>>>"""


def build_prompt(ctx: RunCtx, findings: List[InjuryFinding], game_date: Optional[date] = None) -> str:
    lines = []
    for f in findings:
        line = f"[{f.team}] {f.player} ({f.status})"
        if f.ppg is not None:
            line += f" - {f.ppg:.1f} PPG, {f.mpg or 0.0:.1f} MPG"
        elif f.minutes_impact:
            line += f" - {f.minutes_impact:+.1f} impact"
        lines.append(line)
    when = game_date or ctx.game_date or datetime.now(timezone.utc).date()
    return PROMPT_TEMPLATE.format(
        away=ctx.away,
        home=ctx.home,
        game_date=when.isoformat(),
        text="\n".join(lines) if lines else "No reported absences.",
    )


def _team_score(parsed: Dict[str, Any], side: str) -> float:
    block = parsed.get(side)
    if not isinstance(block, dict):
        raise ParseError(f"LLM response missing '{side}' object")
    score = block.get("defense_impact_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ParseError(f"LLM response has non-numeric {side}.defense_impact_score: {score!r}")
    if not math.isfinite(score):
        raise ParseError(f"LLM response has non-finite {side}.defense_impact_score")
    return clamp(float(score))


def parse_llm_response(content: str) -> Dict[str, Any]:
    """
    Parse the model's message content into {away, home, summary}.

    Raises:
        ParseError: If the content is not a JSON object of the expected shape
    """
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError) as e:
        raise ParseError(f"LLM returned malformed JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ParseError(f"LLM returned {type(parsed).__name__}, expected object")
    return {
        "away": _team_score(parsed, "away"),
        "home": _team_score(parsed, "home"),
        "summary": str(parsed.get("summary") or ""),
    }


class LLMClient:
    """Minimal OpenAI-compatible chat completion client."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ):
        api_key = api_key or settings.llm_api_key
        if not api_key:
            raise LLMError("LLM_API_KEY is not configured")
        self.base_url = (base_url or settings.llm_base_url).rstrip("/")
        self.model = model or settings.llm_model
        self.timeout = timeout or settings.llm_timeout_seconds
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self.breaker = get_breaker(
            "llm",
            CircuitBreakerConfig(
                failure_threshold=3,
                success_threshold=1,
                timeout=120.0,
                expected_exception=(httpx.HTTPError, RetryError),
            ),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            resp = await client.post(f"{self.base_url}/chat/completions", json=payload)
            resp.raise_for_status()
            return resp.json()

    async def complete_json(self, prompt: str) -> str:
        """
        Send one prompt and return the message content.

        Raises:
            LLMError: If the request fails or the circuit is open
            ParseError: If the response envelope has no message content
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": LLM_TEMPERATURE,
            "response_format": {"type": "json_object"},
        }
        try:
            data = await self.breaker.call_async(self._post, payload)
        except CircuitBreakerError as e:
            raise LLMError(str(e)) from e
        except (httpx.HTTPError, RetryError) as e:
            raise LLMError(f"LLM request failed: {e}") from e
        except ValueError as e:
            raise ParseError(f"LLM returned a non-JSON envelope: {e}") from e

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError(f"LLM response has no message content: {e}") from e


class LLMInjuryAnalyzer:
    """InjuryImpact from an LLM reading of both teams' absences."""

    def __init__(
        self,
        client: Optional[MySportsFeedsClient] = None,
        llm: Optional[LLMClient] = None,
        news: Optional[NewsAnalyzer] = None,
    ):
        self.client = client or MySportsFeedsClient()
        self.llm = llm or LLMClient()
        self.news = news

    async def _findings(self, away: str, home: str) -> List[InjuryFinding]:
        away_raw, home_raw = await asyncio.gather(
            self.client.fetch_team_players(away),
            self.client.fetch_team_players(home),
        )
        _, away_findings = team_injury_total([parse_player(e, away) for e in away_raw])
        _, home_findings = team_injury_total([parse_player(e, home) for e in home_raw])
        findings = away_findings + home_findings
        if self.news is not None:
            away_news, home_news = await self.news.matchup_news(away, home)
            findings += list(away_news.findings) + list(home_news.findings)
        return findings

    async def analyze(self, ctx: RunCtx) -> InjuryImpact:
        away = resolve_abbrev(ctx.away)
        home = resolve_abbrev(ctx.home)
        findings = await self._findings(away, home)

        content = await self.llm.complete_json(build_prompt(ctx, findings))
        parsed = parse_llm_response(content)

        impact = InjuryImpact(
            away=parsed["away"],
            home=parsed["home"],
            findings=tuple(findings),
            summary=parsed["summary"],
            source="llm",
            raw_response=content,
        )
        log_event(
            logger,
            logging.INFO,
            "injury impact computed",
            game_id=ctx.game_id,
            source=impact.source,
            away=impact.away,
            home=impact.home,
            findings=len(findings),
        )
        return impact
