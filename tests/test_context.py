from __future__ import annotations

from datetime import datetime
from pathlib import Path

from termcoder.context import build_context, bundle_token_estimate, content_size
from termcoder.inventory import FileInventory
from termcoder.model import FileRecord


def _records(contents: dict[str, str]) -> dict[str, FileRecord]:
    now = datetime(2024, 1, 1)
    return {
        rel: FileRecord(path=rel, content=text, modified_at=now)
        for rel, text in contents.items()
    }


def test_all_files_fit_under_a_large_budget() -> None:
    records = _records({"a.py": "print(1)", "package.json": "{}"})

    bundle = build_context(records, budget=1_000)

    assert bundle.ordered_paths == ("package.json", "a.py")
    assert list(bundle.included_contents) == ["package.json", "a.py"]
    assert bundle.total_bytes_included == 10
    assert bundle.files_included == bundle.files_total == 2
    assert not bundle.truncated
    assert bundle.excluded_paths == ()


def test_packing_stops_at_first_file_that_does_not_fit() -> None:
    records = _records(
        {
            "package.json": "x" * 40,
            "src/app.js": "y" * 50,
            "tools/small.py": "z" * 5,
        }
    )

    bundle = build_context(records, budget=60)

    # small.py would fit on its own, but inclusion is a strict prefix.
    assert list(bundle.included_contents) == ["package.json"]
    assert bundle.total_bytes_included == 40
    assert bundle.files_included == 1
    assert bundle.files_total == 3
    assert bundle.truncated
    assert bundle.excluded_paths == ("src/app.js", "tools/small.py")


def test_budget_counts_utf8_bytes_not_characters() -> None:
    text = "é" * 3  # 6 bytes
    assert content_size(text) == 6

    bundle = build_context(_records({"a.md": text}), budget=5)
    assert bundle.files_included == 0
    assert bundle.total_bytes_included == 0

    bundle = build_context(_records({"a.md": text}), budget=6)
    assert bundle.included_contents == {"a.md": text}


def test_included_files_are_whole_and_within_budget() -> None:
    records = _records({f"f{i}.js": "a" * (i + 1) * 7 for i in range(10)})

    for budget in (0, 1, 7, 30, 100, 1000):
        bundle = build_context(records, budget=budget)
        assert bundle.total_bytes_included <= budget
        assert bundle.ordered_paths[: bundle.files_included] == tuple(
            bundle.included_contents
        )
        for rel, text in bundle.included_contents.items():
            assert text == records[rel].content


def test_build_context_accepts_inventory(tmp_path: Path) -> None:
    (tmp_path / "README.md").write_text("# demo\n", encoding="utf-8")
    (tmp_path / "main.py").write_text("print('hi')\n", encoding="utf-8")
    inv = FileInventory()
    inv.scan(tmp_path)

    bundle = build_context(inv, budget=100)

    assert bundle.ordered_paths == ("README.md", "main.py")
    assert bundle.files_included == 2
    assert bundle_token_estimate(bundle) > 0


def test_empty_inventory_gives_empty_bundle() -> None:
    bundle = build_context({}, budget=10)
    assert bundle.files_total == 0
    assert bundle.included_contents == {}
    assert not bundle.truncated
