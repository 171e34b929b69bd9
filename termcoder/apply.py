from __future__ import annotations

import posixpath
from collections.abc import Sequence
from pathlib import Path, PureWindowsPath

from .backup import BackupSession
from .inventory import FileInventory
from .model import ApplyResult, ChangeRecord, RecordOutcome


def normalize_target_path(path: str) -> str:
    """Return ``path`` as a clean POSIX path relative to the project root.

    Raises ValueError for empty, absolute or escaping paths.
    """
    raw = path.strip().replace("\\", "/")
    if not raw or raw.startswith("/") or PureWindowsPath(raw).drive:
        raise ValueError(f"Refusing absolute or empty target path: {path!r}")
    rel = posixpath.normpath(raw)
    if rel == "." or rel == ".." or rel.startswith("../"):
        raise ValueError(f"Refusing path traversal in target path: {path}")
    return rel


def target_within_root(root: Path, rel: str) -> Path:
    """Join ``rel`` onto ``root`` without following the final component.

    Only the parent directory is resolved for the containment check, so a
    symlink named by the change record is handled as the link itself.
    """
    root = root.resolve()
    target = root / rel
    parent = target.parent.resolve()
    if parent != root and root not in parent.parents:
        raise ValueError(f"Refusing path outside root: {rel}")
    return target


def _write_payload(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8", newline="\n")


def _apply_one(
    record: ChangeRecord,
    root: Path,
    inventory: FileInventory,
    session: BackupSession,
) -> RecordOutcome:
    rel = normalize_target_path(record.path)
    target = target_within_root(root, rel)
    is_link = target.is_symlink()

    if record.action == "delete":
        if not is_link and not target.exists():
            inventory.record_delete(rel)
            return RecordOutcome(record=record, status="not_found", reason="not found")
        session.capture(target, rel)
        target.unlink()
        inventory.record_delete(rel)
        return RecordOutcome(record=record, status="applied")

    if not record.has_code:
        return RecordOutcome(
            record=record, status="failed", reason="no content available"
        )
    if not is_link and target.is_dir():
        raise IsADirectoryError(f"target is a directory: {rel}")

    if record.action == "modify" and (is_link or target.exists()):
        session.capture(target, rel)
    if is_link:
        # The record names the link; replace it rather than write through it.
        target.unlink()
    _write_payload(target, record.payload)
    inventory.record_write(rel, record.payload)
    return RecordOutcome(record=record, status="applied")


def apply_changes(
    records: Sequence[ChangeRecord],
    inventory: FileInventory,
    root: Path,
    session: BackupSession,
) -> ApplyResult:
    """Apply change records one after another.

    Modify and delete back the current file up into ``session`` before
    touching it. A record that fails is reported and the batch moves on;
    records applied earlier in the batch are not rolled back.
    """
    root = root.resolve()
    outcomes: list[RecordOutcome] = []
    for record in records:
        try:
            outcome = _apply_one(record, root, inventory, session)
        except (OSError, ValueError) as e:
            reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
            outcome = RecordOutcome(record=record, status="failed", reason=reason)
        outcomes.append(outcome)
    return ApplyResult(
        outcomes=outcomes,
        backup_dir=session.session_dir,
        backed_up=sorted(session.captured_paths),
    )
