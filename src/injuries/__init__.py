"""Injury impact analyzers: deterministic player-feed model and opt-in LLM reader."""

from src.injuries.deterministic import DeterministicInjuryAnalyzer
from src.injuries.llm import LLMError, LLMInjuryAnalyzer, ParseError
from src.injuries.news import NewsAnalyzer, calculate_minutes_impact, calculate_news_edge

__all__ = [
    "DeterministicInjuryAnalyzer",
    "LLMInjuryAnalyzer",
    "LLMError",
    "ParseError",
    "NewsAnalyzer",
    "calculate_minutes_impact",
    "calculate_news_edge",
]
