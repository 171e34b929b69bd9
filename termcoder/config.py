from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # pyright: ignore[reportMissingImports]

CONFIG_FILENAMES: tuple[str, ...] = (".termcoder.toml", "termcoder.toml")
PYPROJECT_FILENAME = "pyproject.toml"

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_API_KEY_ENV = "GEMINI_API_KEY"


@dataclass
class Config:
    # Extra exclusion rules appended to the built-in defaults.
    exclude: list[str] = field(default_factory=list)
    respect_gitignore: bool = True
    # Directory levels below the project root the scanner may enter.
    max_depth: int = 5
    # Files longer than this (in characters) are left out of the inventory.
    max_file_chars: int = 100_000
    # Byte ceiling for file contents placed in the prompt.
    context_budget: int = 1_000_000
    backups_dir: str = "backups"
    # Generation service (any OpenAI-compatible endpoint).
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key_env: str = DEFAULT_API_KEY_ENV
    token_count_encoding: str = "o200k_base"
    # - "strict": skip files that are not valid UTF-8 (default)
    # - "replace": keep them with invalid bytes replaced
    encoding_errors: Literal["replace", "strict"] = "strict"


def _find_config_path(root: Path) -> Path | None:
    root = root.resolve()
    for name in CONFIG_FILENAMES:
        p = root / name
        if p.exists():
            return p
    pyproject = root / PYPROJECT_FILENAME
    if pyproject.exists():
        return pyproject
    return None


def _extract_section(data: Any, *, from_pyproject: bool) -> dict[str, Any]:
    section: dict[str, Any] = {}
    if not isinstance(data, dict):
        return section

    if not from_pyproject:
        # Preferred for dedicated config files: [termcoder]
        tc = data.get("termcoder")
        if isinstance(tc, dict):
            return tc

    # Supported in all files; required for pyproject.toml.
    tool = data.get("tool")
    if isinstance(tool, dict):
        tc2 = tool.get("termcoder")
        if isinstance(tc2, dict):
            return tc2

    return section


def _positive_int(value: Any, default: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def _non_empty_str(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def load_config(root: Path) -> Config:
    cfg_path = _find_config_path(root)
    if cfg_path is None:
        return Config()

    data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    section = _extract_section(data, from_pyproject=cfg_path.name == PYPROJECT_FILENAME)
    cfg = Config()

    exc = section.get("exclude", cfg.exclude)
    if isinstance(exc, list):
        cfg.exclude = [str(x) for x in exc if str(x).strip()]
    cfg.respect_gitignore = bool(
        section.get("respect_gitignore", cfg.respect_gitignore)
    )

    cfg.max_depth = _positive_int(section.get("max_depth"), cfg.max_depth)
    cfg.max_file_chars = _positive_int(
        section.get("max_file_chars"), cfg.max_file_chars
    )
    cfg.context_budget = _positive_int(
        section.get("context_budget"), cfg.context_budget
    )

    cfg.backups_dir = _non_empty_str(section.get("backups_dir"), cfg.backups_dir)
    cfg.model = _non_empty_str(section.get("model"), cfg.model)
    cfg.base_url = _non_empty_str(section.get("base_url"), cfg.base_url)
    cfg.api_key_env = _non_empty_str(section.get("api_key_env"), cfg.api_key_env)
    cfg.token_count_encoding = _non_empty_str(
        section.get("token_count_encoding"), cfg.token_count_encoding
    )

    encoding_errors = section.get("encoding_errors", cfg.encoding_errors)
    if isinstance(encoding_errors, str):
        encoding_errors = encoding_errors.strip().lower()
        if encoding_errors in {"replace", "strict"}:
            cfg.encoding_errors = encoding_errors  # type: ignore[assignment]

    return cfg
