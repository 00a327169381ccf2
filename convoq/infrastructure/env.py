"""
Centralized environment variable loader for convoq.

Hosts and scripts call ensure_env_loaded() before reading CONVOQ_* settings.

Side Effects:
    - Loads .env file from the nearest ancestor directory that has one
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

_ENV_LOADED = False


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """
    Ensure .env file is loaded exactly once.

    Args:
        env_path: Optional path to .env file. If None, searches upward from this package.

    Side Effects:
        - Loads environment variables from .env file (existing values win)
        - Sets module-level flag to prevent double-loading
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        current = Path(__file__).parent
        while current != current.parent:
            env_candidate = current / ".env"
            if env_candidate.exists():
                env_path = env_candidate
                break
            current = current.parent

    if env_path and env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()
    _ENV_LOADED = True

