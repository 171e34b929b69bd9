from __future__ import annotations

from .context import bundle_token_estimate
from .model import ContextBundle

RESPONSE_FORMAT = """\
RESPONSE FORMAT:
Start with a short analysis of what you found and what you will change. Then,
for every file that needs a change, emit one block shaped exactly like this:

FILE: path/to/file.ext
ACTION: CREATE|MODIFY|DELETE
EXPLANATION: Why this change is needed and how it fits the rest of the project
CODE:
```
[complete file content here]
```

Paths are relative to the project root. CODE must hold the complete new file
content (omit it for DELETE). Only include files that actually need changes."""

INSTRUCTIONS = """\
INSTRUCTIONS:
1. Read the whole project structure and the included files before answering.
2. Take imports, dependencies and relationships between files into account.
3. Keep changes consistent across the project.
4. Follow {project_type} conventions and the patterns already in use.
5. Do not modify package manifests unless the request asks for it.
6. Make precise, targeted changes only where they are needed."""


def render_file_contents(bundle: ContextBundle) -> str:
    parts = [
        f"=== {path} ===\n{content}\n"
        for path, content in bundle.included_contents.items()
    ]
    return "\n".join(parts)


def build_prompt(request: str, bundle: ContextBundle, project_type: str) -> str:
    approx_k = round(bundle_token_estimate(bundle) / 1000)
    lines = [
        "You are a professional coding assistant with access to a "
        f"{project_type} project of {bundle.files_total} files.",
        "",
        "PROJECT ANALYSIS:",
        f"- Project Type: {project_type}",
        f"- Files Analyzed: {bundle.files_included}/{bundle.files_total}",
        f"- Total Context: ~{approx_k}k tokens",
        "",
        "PROJECT STRUCTURE:",
        *bundle.ordered_paths,
        "",
        "FILE CONTENTS:",
        render_file_contents(bundle),
        f"USER REQUEST: {request}",
        "",
        INSTRUCTIONS.format(project_type=project_type),
        "",
        RESPONSE_FORMAT,
    ]
    return "\n".join(lines) + "\n"
