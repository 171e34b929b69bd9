from __future__ import annotations

import posixpath
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import pathspec

from .discover import ExclusionRules, is_code_file, load_ignore_spec
from .model import FileRecord

DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_FILE_CHARS = 100_000


@dataclass
class ScanReport:
    root: Path
    file_count: int = 0
    # (relative path, reason) for entries that could not be read or were too big
    skipped: list[tuple[str, str]] = field(default_factory=list)


def normalize_key(rel_path: str) -> str:
    return posixpath.normpath(rel_path.replace("\\", "/"))


class FileInventory:
    """Mapping of relative path -> FileRecord for one project root.

    ``scan`` rebuilds the mapping from disk. Between scans the only mutations
    are ``record_write`` and ``record_delete``, called after a change has
    actually landed on disk.
    """

    def __init__(
        self,
        exclusions: ExclusionRules | None = None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_file_chars: int = DEFAULT_MAX_FILE_CHARS,
        respect_gitignore: bool = True,
        encoding_errors: str = "strict",
        excluded_dirs: Iterable[str] = (),
    ) -> None:
        self.exclusions = exclusions if exclusions is not None else ExclusionRules()
        self.max_depth = max_depth
        self.max_file_chars = max_file_chars
        self.respect_gitignore = respect_gitignore
        self.encoding_errors = encoding_errors
        # Root-relative directories skipped by exact path, e.g. the backups folder.
        self.excluded_dirs = {normalize_key(d) for d in excluded_dirs}
        self.root: Path | None = None
        self._records: dict[str, FileRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, rel_path: object) -> bool:
        return isinstance(rel_path, str) and normalize_key(rel_path) in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def get(self, rel_path: str) -> FileRecord | None:
        return self._records.get(normalize_key(rel_path))

    def records(self) -> dict[str, FileRecord]:
        return dict(self._records)

    def scan(self, root: Path) -> ScanReport:
        root = root.resolve()
        ignore = load_ignore_spec(root, respect_gitignore=self.respect_gitignore)
        report = ScanReport(root=root)
        records: dict[str, FileRecord] = {}
        self._scan_dir(root, root, 0, ignore, records, report)
        self.root = root
        self._records = records
        report.file_count = len(records)
        return report

    def _scan_dir(
        self,
        root: Path,
        directory: Path,
        level: int,
        ignore: pathspec.PathSpec,
        records: dict[str, FileRecord],
        report: ScanReport,
    ) -> None:
        if level > self.max_depth:
            return
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            rel_dir = directory.relative_to(root).as_posix()
            report.skipped.append((rel_dir, f"inaccessible directory: {e.strerror}"))
            return

        for entry in entries:
            rel = entry.relative_to(root).as_posix()
            if self.exclusions.match(rel) is not None:
                continue
            try:
                is_dir = entry.is_dir()
            except OSError as e:
                report.skipped.append((rel, f"stat failed: {e.strerror}"))
                continue

            if is_dir:
                if rel in self.excluded_dirs or ignore.match_file(rel + "/"):
                    continue
                self._scan_dir(root, entry, level + 1, ignore, records, report)
                continue
            if ignore.match_file(rel) or not is_code_file(entry.name):
                continue

            try:
                content = entry.read_text(
                    encoding="utf-8", errors=self.encoding_errors
                )
                mtime = entry.stat().st_mtime
            except UnicodeDecodeError:
                report.skipped.append((rel, "not valid UTF-8"))
                continue
            except OSError as e:
                report.skipped.append((rel, f"unreadable: {e.strerror}"))
                continue
            if len(content) > self.max_file_chars:
                report.skipped.append(
                    (rel, f"too large ({len(content):,} > {self.max_file_chars:,} chars)")
                )
                continue
            records[rel] = FileRecord(
                path=rel,
                content=content,
                modified_at=datetime.fromtimestamp(mtime),
            )

    def record_write(self, rel_path: str, content: str) -> FileRecord:
        key = normalize_key(rel_path)
        rec = FileRecord(path=key, content=content, modified_at=datetime.now())
        self._records[key] = rec
        return rec

    def record_delete(self, rel_path: str) -> None:
        self._records.pop(normalize_key(rel_path), None)
