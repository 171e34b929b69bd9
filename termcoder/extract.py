from __future__ import annotations

import re
from dataclasses import dataclass, field

from .model import CHANGE_ACTIONS, ChangeAction, ChangeRecord

FILE_MARKER = "FILE:"
NO_EXPLANATION = "No explanation provided"

_MARKER_RE = re.compile(
    r"^(?P<name>ACTION|EXPLANATION|CODE):[ \t]*(?P<value>.*)$", re.IGNORECASE
)
_ACTION_RE = re.compile(r"(?P<action>create|modify|delete)\b", re.IGNORECASE)
# Opening fence: three or more backticks, optionally followed by a language tag.
_FENCE_RE = re.compile(r"^(?P<fence>`{3,})[^`]*$")


def _fence_open(line: str) -> str | None:
    m = _FENCE_RE.match(line.strip())
    return m.group("fence") if m else None


def normalize_newlines(s: str) -> str:
    return s.replace("\r\n", "\n").replace("\r", "\n")


@dataclass
class _Block:
    path: str
    action: ChangeAction | None = None
    explanation: list[str] | None = None
    payload: str = ""
    has_code: bool = False
    # Set when a CODE fence never closed; the scanner re-reads those lines.
    skip_code: bool = False
    code_lines: list[str] = field(default_factory=list)

    def to_record(self) -> ChangeRecord | None:
        if self.action is None or not self.path:
            return None
        explanation = "\n".join(self.explanation or []).strip() or NO_EXPLANATION
        return ChangeRecord(
            path=self.path,
            action=self.action,
            explanation=explanation,
            payload=self.payload if self.has_code else "",
            has_code=self.has_code,
        )


def _clean_path(raw: str) -> str:
    return raw.strip().strip("`").strip()


def _parse_action(value: str) -> ChangeAction | None:
    m = _ACTION_RE.match(value.strip())
    if not m:
        return None
    action = m.group("action").lower()
    return action if action in CHANGE_ACTIONS else None  # type: ignore[return-value]


def _match_marker(line: str) -> tuple[str, str] | None:
    m = _MARKER_RE.match(line.strip())
    if not m:
        return None
    return m.group("name").upper(), m.group("value")


def extract_changes(text: str) -> list[ChangeRecord]:
    """Parse ``FILE:/ACTION:/EXPLANATION:/CODE:`` blocks out of free text.

    Text before the first ``FILE:`` line is prose and ignored. Blocks without
    a recognisable action are dropped. Lines inside a CODE fence are never
    treated as markers. Never raises; returns ``[]`` when nothing matched.
    """
    lines = normalize_newlines(text).split("\n")
    records: list[ChangeRecord] = []
    block: _Block | None = None
    state = "prose"  # prose | block | explanation | await_fence | code
    fence = ""
    code_start = 0

    def finish() -> None:
        if block is None:
            return
        rec = block.to_record()
        if rec is not None:
            records.append(rec)

    i = 0
    while True:
        if i >= len(lines):
            if state == "code" and block is not None:
                # Unterminated fence: forget the code and rescan its lines.
                block.skip_code = True
                block.code_lines = []
                state = "block"
                i = code_start + 1
                continue
            break
        line = lines[i]
        i += 1

        if state == "code" and block is not None:
            if line.strip() == fence:
                block.payload = "\n".join(block.code_lines).strip()
                block.has_code = True
                block.code_lines = []
                state = "block"
            else:
                block.code_lines.append(line)
            continue

        if line.startswith(FILE_MARKER):
            finish()
            block = _Block(path=_clean_path(line[len(FILE_MARKER) :]))
            state = "block"
            continue
        if block is None:
            continue

        if state == "await_fence":
            if not line.strip():
                continue
            opened = _fence_open(line)
            if opened is not None:
                fence = opened
                code_start = i - 1
                state = "code"
                continue
            state = "block"

        marker = _match_marker(line)
        if marker is not None and state == "explanation" and marker[0] == "EXPLANATION":
            marker = None
        if marker is None:
            if state == "explanation" and block.explanation is not None:
                block.explanation.append(line)
            continue

        name, value = marker
        state = "block"
        if name == "ACTION":
            if block.action is None:
                block.action = _parse_action(value)
        elif name == "EXPLANATION":
            if block.explanation is None:
                block.explanation = [value]
                state = "explanation"
        elif name == "CODE" and not block.has_code and not block.skip_code:
            opened = _fence_open(value)
            if opened is not None:
                fence = opened
                code_start = i - 1
                state = "code"
            elif not value.strip():
                state = "await_fence"

    finish()
    return records
