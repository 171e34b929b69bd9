from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path

SESSION_PREFIX = "backup_"


def session_name(now: datetime) -> str:
    return f"{SESSION_PREFIX}{now:%Y-%m-%d_%H-%M-%S}"


class BackupSession:
    """Snapshot area for one apply run.

    The session directory is named from the start time (second granularity)
    and is only created on disk when the first file is captured, so a run
    that destroys nothing leaves no trace.
    """

    def __init__(self, session_id: str, session_dir: Path) -> None:
        self.session_id = session_id
        self.session_dir = session_dir
        self.captured_paths: set[str] = set()

    @classmethod
    def start(cls, backups_root: Path, now: datetime | None = None) -> BackupSession:
        base = session_name(now or datetime.now())
        name = base
        idx = 2
        while (backups_root / name).exists():
            name = f"{base}-{idx}"
            idx += 1
        return cls(session_id=name, session_dir=backups_root / name)

    def capture(self, source: Path, rel_path: str) -> Path:
        """Copy ``source`` to ``session_dir/rel_path`` and return the copy."""
        target = self.session_dir / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_symlink():
            target.unlink()
        # Symlinks are copied as links.
        shutil.copy2(source, target, follow_symlinks=False)
        self.captured_paths.add(rel_path)
        return target

    @property
    def exists(self) -> bool:
        return self.session_dir.is_dir()
