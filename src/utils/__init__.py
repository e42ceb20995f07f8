"""
Utility modules for the factor engine.

Common utilities: logging, secrets, circuit breakers, team name handling.
"""

from src.utils.logging import get_logger, log_event
from src.utils.secrets import read_secret
from src.utils.team_names import NBA_TEAMS, normalize_team_name, resolve_team

__all__ = [
    "get_logger",
    "log_event",
    "normalize_team_name",
    "resolve_team",
    "NBA_TEAMS",
    "read_secret",
]
