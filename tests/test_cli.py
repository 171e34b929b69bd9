from __future__ import annotations

import json
from pathlib import Path

import pytest

import termcoder.cli as cli
from termcoder.cli import main
from termcoder.generation import GenerationError

RESPONSE = """Plan: add a file and drop another.

FILE: hello.txt
ACTION: CREATE
EXPLANATION: greeting
CODE:
```
hi
```

FILE: gone.txt
ACTION: DELETE
EXPLANATION: not needed
"""


def test_main_without_command_prints_friendly_help(capsys) -> None:
    main([])

    captured = capsys.readouterr()
    assert "usage: termcoder" in captured.out
    assert "Quick start examples:" in captured.out
    assert "termcoder chat ." in captured.out
    assert "termcoder apply response.txt . --yes" in captured.out


def test_main_help_flag_still_works(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["-h"])
    assert exc.value.code == 0

    captured = capsys.readouterr()
    for cmd in ("chat", "scan", "context", "extract", "apply", "ask"):
        assert cmd in captured.out


def test_main_version_flag_prints_version(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0

    captured = capsys.readouterr()
    assert captured.out.startswith("termcoder ")


def test_scan_lists_tracked_files(tmp_path: Path, capsys) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.js").write_text("1", encoding="utf-8")
    (tmp_path / "debug.log").write_text("noise", encoding="utf-8")
    (tmp_path / "vendor").mkdir()
    (tmp_path / "vendor" / "lib.js").write_text("2", encoding="utf-8")

    main(["scan", str(tmp_path), "--exclude", "vendor"])

    captured = capsys.readouterr()
    assert captured.out.splitlines() == ["src/app.js"]
    assert "1 file(s) tracked (Generic)." in captured.err


def test_scan_reports_skipped_files(tmp_path: Path, capsys) -> None:
    (tmp_path / "bad.txt").write_bytes(b"\xff\xfe\x00")

    main(["scan", str(tmp_path), "--print-skipped"])

    captured = capsys.readouterr()
    assert "Debug: skipped files:" in captured.err
    assert "bad.txt (not valid UTF-8)" in captured.err


def test_scan_rejects_missing_root(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["scan", str(tmp_path / "nope")])
    assert exc.value.code == 2
    assert "root is not a directory" in capsys.readouterr().err


def test_context_writes_bundle_and_summary(
    tmp_path: Path, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(cli.TokenCounter, "count", lambda self, text: 7)
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    (tmp_path / "index.js").write_text("x" * 100, encoding="utf-8")
    out = tmp_path / "ctx.txt"

    main(["context", str(tmp_path), "--budget", "50", "-o", str(out)])

    text = out.read_text(encoding="utf-8")
    assert text == "=== package.json ===\n{}\n"
    err = capsys.readouterr().err
    assert "Context Summary:" in err
    assert "1/2 included" in err
    assert "2 of 50 budget" in err
    assert "7 tokens" in err
    assert "left out 1 file(s): index.js" in err


def test_context_falls_back_to_approximate_tokens(
    tmp_path: Path, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    def boom(self, text: str) -> int:
        raise ValueError("no encoder")

    monkeypatch.setattr(cli.TokenCounter, "count", boom)
    (tmp_path / "a.py").write_text("print(1)\n", encoding="utf-8")

    main(["context", str(tmp_path), "--request", "Add logging"])

    captured = capsys.readouterr()
    assert "USER REQUEST: Add logging" in captured.out
    assert "Warning: token counting disabled (no encoder)" in captured.err
    assert "~" in captured.err


def test_context_rejects_non_positive_budget(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["context", str(tmp_path), "--budget", "0"])
    assert exc.value.code == 2


def test_extract_prints_records(tmp_path: Path, capsys) -> None:
    resp = tmp_path / "response.txt"
    resp.write_text(RESPONSE, encoding="utf-8")

    main(["extract", str(resp)])

    out = capsys.readouterr().out
    assert "1. CREATE hello.txt" in out
    assert "Content: 1 lines, 2 characters" in out
    assert "2. DELETE gone.txt" in out


def test_extract_json(tmp_path: Path, capsys) -> None:
    resp = tmp_path / "response.txt"
    resp.write_text(RESPONSE, encoding="utf-8")

    main(["extract", str(resp), "--json"])

    data = json.loads(capsys.readouterr().out)
    assert [(d["path"], d["action"], d["has_code"]) for d in data] == [
        ("hello.txt", "create", True),
        ("gone.txt", "delete", False),
    ]
    assert data[0]["payload"] == "hi"


def test_extract_without_blocks(tmp_path: Path, capsys) -> None:
    resp = tmp_path / "response.txt"
    resp.write_text("Nothing to do.", encoding="utf-8")

    main(["extract", str(resp)])

    assert "No actionable changes found" in capsys.readouterr().out


def test_apply_with_yes(tmp_path: Path) -> None:
    project = tmp_path / "proj"
    project.mkdir()
    (project / "gone.txt").write_text("bye", encoding="utf-8")
    resp = tmp_path / "response.txt"
    resp.write_text(RESPONSE, encoding="utf-8")

    main(["apply", str(resp), str(project), "--yes"])

    assert (project / "hello.txt").read_text(encoding="utf-8") == "hi"
    assert not (project / "gone.txt").exists()
    backups = list((project / "backups").glob("backup_*/gone.txt"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == "bye"


def test_apply_exits_non_zero_when_a_record_fails(tmp_path: Path) -> None:
    project = tmp_path / "proj"
    project.mkdir()
    resp = tmp_path / "response.txt"
    resp.write_text(
        "FILE: ../outside.txt\nACTION: CREATE\nCODE:\n```\nx\n```\n",
        encoding="utf-8",
    )

    with pytest.raises(SystemExit) as exc:
        main(["apply", str(resp), str(project), "--yes"])
    assert exc.value.code == 1
    assert not (tmp_path / "outside.txt").exists()


class _StubGenerator:
    def __init__(self, response: str = "", error: Exception | None = None) -> None:
        self.response = response
        self.error = error

    def generate(self, prompt: str) -> str:
        if self.error is not None:
            raise self.error
        return self.response


def test_ask_exits_non_zero_when_generation_fails(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    stub = _StubGenerator(error=GenerationError("quota exceeded", kind="quota"))
    monkeypatch.setattr(cli.Session, "ensure_generator", lambda self: stub)

    with pytest.raises(SystemExit) as exc:
        main(["ask", "make it faster", str(tmp_path)])

    message = str(exc.value.code)
    assert "quota exceeded" in message
    assert "Hint: Quota or size limit exceeded." in message


def test_ask_with_yes_saves_response_and_applies(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    project = tmp_path / "proj"
    project.mkdir()
    (project / "gone.txt").write_text("bye", encoding="utf-8")
    saved = tmp_path / "response.txt"
    stub = _StubGenerator(response=RESPONSE)
    monkeypatch.setattr(cli.Session, "ensure_generator", lambda self: stub)

    main(["ask", "tidy up", str(project), "--yes", "--save-response", str(saved)])

    assert saved.read_text(encoding="utf-8") == RESPONSE
    assert (project / "hello.txt").read_text(encoding="utf-8") == "hi"
    assert not (project / "gone.txt").exists()
