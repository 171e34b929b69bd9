from __future__ import annotations

import posixpath
from collections.abc import Callable, Iterable

# (rule name, predicate(filename, extension), score); first match wins.
PriorityRule = tuple[str, Callable[[str, str], bool], int]

DEFAULT_PRIORITY = 50

PRIORITY_RULES: tuple[PriorityRule, ...] = (
    ("package-manifest", lambda name, ext: name == "package.json", 100),
    ("readme", lambda name, ext: name == "README.md", 90),
    ("config", lambda name, ext: "config" in name.lower(), 85),
    ("js-ts-source", lambda name, ext: ext in {".js", ".ts", ".jsx", ".tsx"}, 80),
    ("python-source", lambda name, ext: ext == ".py", 75),
    ("markup-style", lambda name, ext: ext in {".html", ".css", ".scss"}, 70),
    ("structured-data", lambda name, ext: ext in {".json", ".yaml", ".yml"}, 65),
    ("markdown", lambda name, ext: ext == ".md", 60),
)


def priority_score(
    rel_path: str, rules: tuple[PriorityRule, ...] = PRIORITY_RULES
) -> int:
    name = posixpath.basename(rel_path)
    ext = posixpath.splitext(name)[1]
    for _rule, predicate, score in rules:
        if predicate(name, ext):
            return score
    return DEFAULT_PRIORITY


def sort_by_priority(paths: Iterable[str]) -> list[str]:
    # sorted() is stable: equal scores keep their incoming order.
    return sorted(paths, key=priority_score, reverse=True)
