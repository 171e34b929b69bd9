from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal

ChangeAction = Literal["create", "modify", "delete"]
OutcomeStatus = Literal["applied", "not_found", "failed"]

CHANGE_ACTIONS: tuple[ChangeAction, ...] = ("create", "modify", "delete")


@dataclass(frozen=True)
class FileRecord:
    """A tracked project file as last seen on disk (or last written)."""

    path: str  # POSIX path relative to the project root; unique key
    content: str
    modified_at: datetime


@dataclass(frozen=True)
class ContextBundle:
    """Budget-limited view of the inventory, rebuilt for every request."""

    ordered_paths: tuple[str, ...]  # every tracked path, priority order
    included_contents: dict[str, str]  # prefix of ordered_paths that fit
    total_bytes_included: int
    files_included: int
    files_total: int
    budget: int

    @property
    def truncated(self) -> bool:
        return self.files_included < self.files_total

    @property
    def excluded_paths(self) -> tuple[str, ...]:
        return self.ordered_paths[self.files_included :]


@dataclass(frozen=True)
class ChangeRecord:
    """One proposed file change parsed from a generation response."""

    path: str
    action: ChangeAction
    explanation: str
    payload: str  # file content; empty for delete
    has_code: bool = False  # False when the block carried no CODE fence

    @property
    def payload_lines(self) -> int:
        return self.payload.count("\n") + 1 if self.payload else 0


@dataclass(frozen=True)
class RecordOutcome:
    record: ChangeRecord
    status: OutcomeStatus
    reason: str = ""


@dataclass(frozen=True)
class ApplyResult:
    outcomes: list[RecordOutcome]
    backup_dir: Path
    backed_up: list[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "applied")

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "failed")

    @property
    def not_found_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "not_found")
