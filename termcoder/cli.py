from __future__ import annotations

import argparse
import importlib.metadata as importlib_metadata
import json
import sys
from dataclasses import asdict
from pathlib import Path

from .config import Config, load_config
from .context import build_context
from .extract import extract_changes
from .generation import GenerationError
from .model import ChangeRecord, ContextBundle
from .prompt import build_prompt, render_file_contents
from .session import Session
from .tokens import TokenCounter, approx_token_count, format_top_files


def _termcoder_version() -> str:
    try:
        return importlib_metadata.version("termcoder")
    except importlib_metadata.PackageNotFoundError:
        return "0+unknown"


def _add_root_argument(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "root",
        type=Path,
        nargs="?",
        default=Path("."),
        help="Project root (default: .)",
    )


def _add_scan_overrides(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Extra exclusion rule: path substring or '*' wildcard (repeatable)",
    )
    p.add_argument(
        "--respect-gitignore",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Respect .gitignore (default: true via config)",
    )
    p.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Directory levels to descend below ROOT (default: 5 via config)",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="termcoder",
        description=(
            "Describe a change in plain language, review the proposed file "
            "edits, apply them with backups."
        ),
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"termcoder {_termcoder_version()}",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    chat = sub.add_parser("chat", help="Start an interactive session.")
    _add_root_argument(chat)
    _add_scan_overrides(chat)

    scan = sub.add_parser("scan", help="List the files that would be tracked.")
    _add_root_argument(scan)
    _add_scan_overrides(scan)
    scan.add_argument(
        "--print-skipped",
        action="store_true",
        help="Debug: print unreadable/oversized files with reasons",
    )

    context = sub.add_parser(
        "context",
        help="Render the context bundle (or the full prompt) without calling the service.",
    )
    _add_root_argument(context)
    _add_scan_overrides(context)
    context.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write to this file instead of stdout",
    )
    context.add_argument(
        "--budget",
        type=int,
        default=None,
        help="Byte budget for file contents (default: config context_budget)",
    )
    context.add_argument(
        "--request",
        type=str,
        default=None,
        help="Render the full prompt for this request instead of file contents only",
    )
    context.add_argument(
        "--top-files-len",
        type=int,
        default=0,
        help="Also print this many largest included files by tokens",
    )

    extract = sub.add_parser(
        "extract", help="Show the file changes found in a saved response."
    )
    extract.add_argument("response", type=Path, help="Saved generation response")
    extract.add_argument(
        "--json", action="store_true", help="Emit machine-readable JSON."
    )

    apply = sub.add_parser(
        "apply", help="Apply the file changes found in a saved response."
    )
    apply.add_argument("response", type=Path, help="Saved generation response")
    _add_root_argument(apply)
    apply.add_argument(
        "-y", "--yes", action="store_true", help="Apply without asking."
    )

    ask = sub.add_parser("ask", help="Send one request and review the proposed changes.")
    ask.add_argument("request", type=str, help="Change request in plain language")
    _add_root_argument(ask)
    _add_scan_overrides(ask)
    ask.add_argument(
        "-y", "--yes", action="store_true", help="Apply without asking."
    )
    ask.add_argument(
        "--save-response",
        type=Path,
        default=None,
        help="Also write the raw response to this file",
    )
    return p


def _print_top_level_help(parser: argparse.ArgumentParser) -> None:
    parser.print_help()
    print()
    print("Quick start examples:")
    print("  termcoder chat .")
    print('  termcoder ask "Add input validation to the signup form" .')
    print("  termcoder context . -o context.txt")
    print("  termcoder extract response.txt")
    print("  termcoder apply response.txt . --yes")
    print()
    print("Modified and deleted files are backed up under backups/ first.")


def _load_config_with_overrides(root: Path, args: argparse.Namespace) -> Config:
    cfg = load_config(root)
    exclude = getattr(args, "exclude", None)
    if exclude:
        cfg.exclude = cfg.exclude + [str(x) for x in exclude]
    respect = getattr(args, "respect_gitignore", None)
    if respect is not None:
        cfg.respect_gitignore = bool(respect)
    max_depth = getattr(args, "max_depth", None)
    if max_depth is not None:
        cfg.max_depth = max(0, int(max_depth))
    return cfg


def _require_dir(parser: argparse.ArgumentParser, cmd: str, root: Path) -> Path:
    if not root.exists() or not root.is_dir():
        parser.error(f"{cmd}: root is not a directory: {root}")
    return root.resolve()


def _read_response(parser: argparse.ArgumentParser, cmd: str, path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        parser.error(f"{cmd}: cannot read {path}: {e.strerror}")


def _emit_skip_warning(skipped: list[tuple[str, str]]) -> None:
    if not skipped:
        return
    preview = ", ".join(f"{rel} ({reason})" for rel, reason in skipped[:5])
    suffix = "" if len(skipped) <= 5 else ", ..."
    print(
        f"Warning: skipped {len(skipped)} file(s) while scanning: {preview}{suffix}",
        file=sys.stderr,
    )


def _print_context_summary(
    *, bundle: ContextBundle, rendered: str, encoding: str
) -> None:
    total_tokens: str
    try:
        total_tokens = f"{TokenCounter(encoding).count(rendered):,}"
    except Exception as e:
        total_tokens = f"~{approx_token_count(rendered):,}"
        print(
            f"Warning: token counting disabled ({e}); "
            "falling back to approximate counts.",
            file=sys.stderr,
        )

    print("", file=sys.stderr)
    print("Context Summary:", file=sys.stderr)
    print("────────────────", file=sys.stderr)
    print(
        f"{'Files':>12}: {bundle.files_included:,}/{bundle.files_total:,} included",
        file=sys.stderr,
    )
    print(
        f"{'Bytes':>12}: {bundle.total_bytes_included:,} of {bundle.budget:,} budget",
        file=sys.stderr,
    )
    print(f"{'Tokens':>12}: {total_tokens} tokens", file=sys.stderr)
    if bundle.truncated:
        preview = ", ".join(bundle.excluded_paths[:5])
        suffix = "" if len(bundle.excluded_paths) <= 5 else ", ..."
        print(
            f"Warning: budget reached; left out {len(bundle.excluded_paths)} "
            f"file(s): {preview}{suffix}",
            file=sys.stderr,
        )


def _record_json(rec: ChangeRecord) -> dict[str, object]:
    out = asdict(rec)
    out["payload_chars"] = len(rec.payload)
    return out


def _print_changes(records: list[ChangeRecord]) -> None:
    for i, rec in enumerate(records, 1):
        print(f"{i}. {rec.action.upper()} {rec.path}")
        print(f"   {rec.explanation}")
        if rec.action != "delete":
            if rec.has_code:
                print(
                    f"   Content: {rec.payload_lines} lines, "
                    f"{len(rec.payload)} characters"
                )
            else:
                print("   Content: none provided")


def main(argv: list[str] | None = None) -> None:  # noqa: C901
    parser = build_parser()
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    if not raw_argv:
        _print_top_level_help(parser)
        return

    args = parser.parse_args(raw_argv)

    if args.cmd == "chat":
        root = _require_dir(parser, "chat", args.root)
        cfg = _load_config_with_overrides(root, args)
        Session(root, cfg).run()

    elif args.cmd == "scan":
        root = _require_dir(parser, "scan", args.root)
        cfg = _load_config_with_overrides(root, args)
        session = Session(root, cfg)
        report = session.inventory.scan(root)
        for rel in sorted(session.inventory):
            print(rel)
        if args.print_skipped:
            print("Debug: skipped files:", file=sys.stderr)
            for rel, reason in report.skipped:
                print(f"  - {rel} ({reason})", file=sys.stderr)
        else:
            _emit_skip_warning(report.skipped)
        print(
            f"{report.file_count} file(s) tracked ({session.project.project_type}).",
            file=sys.stderr,
        )

    elif args.cmd == "context":
        root = _require_dir(parser, "context", args.root)
        cfg = _load_config_with_overrides(root, args)
        budget = cfg.context_budget if args.budget is None else int(args.budget)
        if budget <= 0:
            parser.error("context: --budget must be positive")
        session = Session(root, cfg)
        report = session.inventory.scan(root)
        _emit_skip_warning(report.skipped)
        bundle = build_context(session.inventory, budget)
        if args.request is not None:
            rendered = build_prompt(
                args.request, bundle, session.project.project_type
            )
        else:
            rendered = render_file_contents(bundle)

        if args.output is not None:
            args.output.write_text(rendered, encoding="utf-8")
            print(f"Wrote {args.output}.")
        else:
            sys.stdout.write(rendered)
        _print_context_summary(
            bundle=bundle, rendered=rendered, encoding=cfg.token_count_encoding
        )
        if args.top_files_len > 0:
            file_tokens = {
                rel: approx_token_count(text)
                for rel, text in bundle.included_contents.items()
            }
            print(format_top_files(file_tokens, args.top_files_len), file=sys.stderr)

    elif args.cmd == "extract":
        text = _read_response(parser, "extract", args.response)
        records = extract_changes(text)
        if args.json:
            print(json.dumps([_record_json(r) for r in records], indent=2))
        elif not records:
            print("No actionable changes found in the response.")
        else:
            _print_changes(records)

    elif args.cmd == "apply":
        root = _require_dir(parser, "apply", args.root)
        text = _read_response(parser, "apply", args.response)
        cfg = load_config(root)
        session = Session(root, cfg)
        session.inventory.scan(root)
        result = session.review_and_apply(text, assume_yes=bool(args.yes))
        if result is not None and result.error_count:
            raise SystemExit(1)

    elif args.cmd == "ask":
        root = _require_dir(parser, "ask", args.root)
        cfg = _load_config_with_overrides(root, args)
        session = Session(root, cfg)
        session.scan()
        try:
            response = session.generate_response(args.request)
        except GenerationError as e:
            raise SystemExit(f"ask: {e}\nHint: {e.hint}") from e
        if args.save_response is not None:
            args.save_response.write_text(response, encoding="utf-8")
        result = session.review_and_apply(response, assume_yes=bool(args.yes))
        if result is not None and result.error_count:
            raise SystemExit(1)


if __name__ == "__main__":
    main()
