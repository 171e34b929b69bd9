from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

import pathspec

DEFAULT_EXCLUDES: tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    ".env",
    "*.log",
)

CODE_EXTENSIONS: tuple[str, ...] = (
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".py",
    ".java",
    ".cpp",
    ".c",
    ".cs",
    ".php",
    ".rb",
    ".go",
    ".rs",
    ".kt",
    ".swift",
    ".dart",
    ".vue",
    ".svelte",
    ".html",
    ".css",
    ".scss",
    ".sass",
    ".json",
    ".xml",
    ".yaml",
    ".yml",
    ".md",
    ".txt",
    ".env.example",
)

IGNORE_FILENAME = ".termcoderignore"


def is_code_file(name: str) -> bool:
    return name.endswith(CODE_EXTENSIONS)


def _wildcard_regex(pattern: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


class ExclusionRules:
    """Ordered, extendable set of path exclusion rules.

    A rule without ``*`` excludes any relative path that contains it as a
    substring. A rule with ``*`` treats each ``*`` as "any characters" and
    matches anywhere in the path (``*.log`` excludes ``logs/app.log``).
    """

    def __init__(self, patterns: Iterable[str] = DEFAULT_EXCLUDES) -> None:
        self._patterns: list[str] = []
        self._compiled: dict[str, re.Pattern[str]] = {}
        for p in patterns:
            self.add(p)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def add(self, pattern: str) -> bool:
        pattern = pattern.strip()
        if not pattern or pattern in self._patterns:
            return False
        self._patterns.append(pattern)
        if "*" in pattern:
            self._compiled[pattern] = _wildcard_regex(pattern)
        return True

    def extend(self, patterns: Iterable[str]) -> None:
        for p in patterns:
            self.add(p)

    def match(self, rel_path: str) -> str | None:
        """Return the first rule matching ``rel_path``, or None."""
        for pattern in self._patterns:
            rx = self._compiled.get(pattern)
            if rx is not None:
                if rx.search(rel_path):
                    return pattern
            elif pattern in rel_path:
                return pattern
        return None

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)


def _load_ignore_lines(root: Path, filename: str) -> list[str]:
    p = root / filename
    if not p.exists():
        return []
    return p.read_text(encoding="utf-8", errors="replace").splitlines()


def load_ignore_spec(root: Path, *, respect_gitignore: bool) -> pathspec.PathSpec:
    # Order matters: patterns later in the list take precedence (e.g. negations).
    lines: list[str] = []
    if respect_gitignore:
        lines.extend(_load_ignore_lines(root, ".gitignore"))
    # Tool-specific ignore is always respected and has higher priority.
    lines.extend(_load_ignore_lines(root, IGNORE_FILENAME))
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)
