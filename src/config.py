from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional

from src.utils.secrets import read_secret_optional, read_secret_strict

# Anchor paths to the repository root even when scripts are executed elsewhere
PROJECT_ROOT = Path(__file__).resolve().parent.parent

INJURY_ANALYZERS = ("deterministic", "llm")


def get_nba_season(d: date | None = None) -> str:
    """Get the NBA season string for a given date.

    NBA seasons span two calendar years (Oct-Apr).
    - Oct 2025 - Apr 2026 = "2025-2026" season
    - Oct 2024 - Apr 2025 = "2024-2025" season
    """
    if d is None:
        d = date.today()

    if d.month >= 10:
        start_year = d.year
    else:
        start_year = d.year - 1

    return f"{start_year}-{start_year + 1}"


def get_mysportsfeeds_season(d: date | None = None) -> str:
    """MySportsFeeds season slug for a date, e.g. "2025-2026-regular"."""
    return f"{get_nba_season(d)}-regular"


def _env_required(key: str) -> str:
    """Resolve required environment variable - raises if not set."""
    value = os.getenv(key)
    if not value:
        raise ValueError(f"Required environment variable not set: {key}")
    return value


def _env_optional(key: str, default: Optional[str] = None) -> Optional[str]:
    """Resolve optional environment variable - returns default if not set."""
    value = os.getenv(key)
    return value if value else default


def _injury_analyzer() -> str:
    value = (_env_optional("INJURY_ANALYZER", "deterministic") or "").strip().lower()
    if value not in INJURY_ANALYZERS:
        raise ValueError(
            f"INJURY_ANALYZER must be one of {INJURY_ANALYZERS}, got {value!r}"
        )
    return value


@dataclass(frozen=True)
class Settings:
    # Stats provider (required) - env or secrets only
    mysportsfeeds_api_key: str = field(
        default_factory=lambda: read_secret_strict("MYSPORTSFEEDS_API_KEY")
    )
    mysportsfeeds_base_url: str = field(
        default_factory=lambda: _env_required("MYSPORTSFEEDS_BASE_URL").rstrip("/")
    )
    # "current", "latest", or an explicit slug like "2025-2026-regular"
    mysportsfeeds_season: str = field(
        default_factory=lambda: _env_optional("MYSPORTSFEEDS_SEASON", "current")
    )
    stats_timeout_seconds: float = field(
        default_factory=lambda: float(_env_optional("STATS_TIMEOUT_SECONDS", "30"))
    )

    # Injury analysis: deterministic is the production path, llm is opt-in
    injury_analyzer: str = field(default_factory=_injury_analyzer)

    # OpenAI-compatible completion service (only needed when injury_analyzer == "llm")
    llm_api_key: Optional[str] = field(
        default_factory=lambda: read_secret_optional("LLM_API_KEY")
    )
    llm_base_url: str = field(
        default_factory=lambda: _env_optional("LLM_BASE_URL", "https://api.openai.com/v1").rstrip("/")
    )
    llm_model: str = field(
        default_factory=lambda: _env_optional("LLM_MODEL", "gpt-4o-mini")
    )
    llm_timeout_seconds: float = field(
        default_factory=lambda: float(_env_optional("LLM_TIMEOUT_SECONDS", "20"))
    )


settings = Settings()
