from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def project_root() -> Path:
    # league_history/utils/env.py -> league_history/utils -> league_history -> project root
    return Path(__file__).resolve().parents[2]


def load_env() -> None:
    """
    Load env vars from dotenv file if present.

    - If ENV_FILE is set, we load that path explicitly.
    - Otherwise we look for a .env at the project root, then fall back to
      load_dotenv()'s own search from the working directory.
    """
    from dotenv import load_dotenv

    env_file = os.getenv("ENV_FILE")
    if env_file:
        load_dotenv(dotenv_path=env_file, override=False)
        return

    root_env = project_root() / ".env"
    if root_env.exists():
        load_dotenv(dotenv_path=root_env, override=False)
        return

    load_dotenv(override=False)


def getenv_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def getenv_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()
