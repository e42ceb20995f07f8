"""
Secret resolution for API credentials.

Lookup order:
1. Environment variable (CI, container platforms, local .env via python-dotenv)
2. Docker secret at /run/secrets/<NAME>
3. Local ./secrets/<NAME> file (development)
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from src.utils.logging import get_logger

logger = get_logger(__name__)


class SecretNotFoundError(Exception):
    """Raised when a required secret is not found."""
    pass


DOCKER_SECRETS_DIR = Path("/run/secrets")
LOCAL_SECRETS_DIR = Path("secrets")


def _read_file_secret(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    try:
        value = path.read_text().strip()
    except OSError as e:
        logger.warning(f"Could not read secret file {path}: {e}")
        return None
    return value or None


def read_secret(secret_name: str, required: bool = True) -> Optional[str]:
    """
    Read a secret from the environment, Docker secrets, or ./secrets.

    Args:
        secret_name: Name of the secret (e.g., "MYSPORTSFEEDS_API_KEY")
        required: If True, raises SecretNotFoundError when not found

    Returns:
        Secret value, or None if not found and not required
    """
    value = os.getenv(secret_name)
    if value and value.strip():
        logger.debug(f"Secret {secret_name}: found in environment variable")
        return value.strip()

    for source, directory in (("docker", DOCKER_SECRETS_DIR), ("local", LOCAL_SECRETS_DIR)):
        value = _read_file_secret(directory / secret_name)
        if value:
            logger.debug(f"Secret {secret_name}: found in {source} secrets")
            return value

    if required:
        raise SecretNotFoundError(
            f"Required secret '{secret_name}' not found. "
            f"Set the {secret_name} environment variable, or create "
            f"{DOCKER_SECRETS_DIR / secret_name} or {LOCAL_SECRETS_DIR / secret_name}."
        )
    return None


def read_secret_strict(secret_name: str) -> str:
    """Read a required secret. Used by src/config.py for API keys."""
    result = read_secret(secret_name, required=True)
    assert result is not None
    return result


def read_secret_optional(secret_name: str) -> Optional[str]:
    return read_secret(secret_name, required=False)

