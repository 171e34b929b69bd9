from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ProjectInfo:
    project_type: str
    # Exclusion rules that only make sense for this kind of project.
    extra_excludes: list[str] = field(default_factory=list)


def _node_project(package_json: Path) -> ProjectInfo:
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return ProjectInfo("Node.js (unknown)")
    if not isinstance(data, dict):
        return ProjectInfo("Node.js (unknown)")

    deps: dict[str, object] = {}
    for key in ("dependencies", "devDependencies"):
        section = data.get(key)
        if isinstance(section, dict):
            deps.update(section)

    if "next" in deps:
        return ProjectInfo("Next.js", [".next", "out"])
    if "react" in deps:
        return ProjectInfo("React", ["build"])
    if "vue" in deps:
        return ProjectInfo("Vue.js")
    if any(name in deps for name in ("express", "fastify", "koa")):
        return ProjectInfo("Node.js Backend")
    return ProjectInfo("Node.js")


def detect_project_type(root: Path) -> ProjectInfo:
    package_json = root / "package.json"
    if package_json.exists():
        return _node_project(package_json)
    if (root / "requirements.txt").exists() or (root / "pyproject.toml").exists():
        return ProjectInfo("Python")
    if (root / "pom.xml").exists():
        return ProjectInfo("Java (Maven)")
    if (root / "Cargo.toml").exists():
        return ProjectInfo("Rust")
    return ProjectInfo("Generic")
