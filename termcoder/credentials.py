from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, set_key

ENV_FILENAME = ".env"


def load_key_from_env_file(root: Path, name: str) -> str | None:
    """Read ``name`` from ``root/.env`` without touching ``os.environ``."""
    env_path = root / ENV_FILENAME
    if not env_path.is_file():
        return None
    value = (dotenv_values(env_path, encoding="utf-8").get(name) or "").strip()
    return value or None


def resolve_api_key(root: Path, name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    if value:
        return value
    return load_key_from_env_file(root, name)


def save_key_to_env_file(root: Path, name: str, value: str) -> Path:
    """Write ``NAME=value`` into ``root/.env``, replacing an existing entry."""
    env_path = root / ENV_FILENAME
    env_path.touch(exist_ok=True)
    set_key(env_path, name, value, quote_mode="never", encoding="utf-8")
    return env_path
